# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Core listing operations - walk directories and print their contents.

This module provides the public ls() API, the directory-stream
providers and the DirectoryWalker class that drives the pending stack,
fills the entry table, applies the lazy stat policy and hands sorted
views to a renderer.
"""

from __future__ import annotations

import dataclasses
import errno
import fnmatch
import os
import stat
from typing import Optional, Protocol, Sequence

from ls_python.render import CollectingRenderer
from ls_python.session import ListingSession
from ls_python.sort import Collator
from ls_python.types import (
    DevIno,
    Dereference,
    Entry,
    FileType,
    Format,
    IgnoreMode,
    ListingConfig,
    ListingResult,
    PendingDirectory,
    RawEntry,
    Severity,
)
from ls_python.util import (
    attach,
    basename_is_dot_or_dotdot,
    debug,
    file_name_concat,
    quote,
    set_debug_level,
)


# =============================================================================
# Public API
# =============================================================================


def ls(
    *paths: str | bytes,
    config: ListingConfig | None = None,
    reader: DirectoryReader | None = None,
    collator: Collator | None = None,
    **kwargs,
) -> ListingResult:
    """List files and directories without printing anything.

    Args:
        *paths: Files and directories to list (default: '.')
        config: Optional ListingConfig for configuration
        reader: Directory-stream provider (default: os.scandir)
        collator: Name collator (default: the active locale)
        **kwargs: Override config fields (recursive, sort_key, etc.)

    Returns:
        ListingResult with the sorted view of every listed directory,
        the diagnostics and the final severity
    """
    cfg = _make_config(config, **kwargs)
    set_debug_level(cfg.verbose)
    session = ListingSession(cfg, collator=collator, on_diagnostic=None)
    renderer = CollectingRenderer(session)
    walker = DirectoryWalker(session, renderer, reader)
    severity = walker.list([os.fsencode(p) for p in paths])
    return ListingResult(severity, renderer.listings, session.diagnostics)


def _make_config(config: ListingConfig | None, **kwargs) -> ListingConfig:
    """Create a ListingConfig from an optional base config and overrides."""
    if config is None:
        return ListingConfig(**kwargs)
    return dataclasses.replace(config, **kwargs) if kwargs else config


# =============================================================================
# Directory-stream providers
# =============================================================================


class DirectoryStream(Protocol):
    def read(self) -> Optional[RawEntry]: ...

    def close(self) -> None: ...


class DirectoryReader(Protocol):
    def open(self, path: bytes) -> DirectoryStream: ...


class ScandirStream:
    """
    Read one directory with os.scandir.

    read() returns None at the end of the stream and raises OSError on a
    read error. os.scandir cannot resume after a failed read, so the
    stream ends there and later reads return None.
    """

    def __init__(self, path: bytes):
        self._iterator = os.scandir(path)
        self._done = False

    def read(self) -> Optional[RawEntry]:
        if self._done:
            return None
        try:
            dir_entry = next(self._iterator)
        except StopIteration:
            self._done = True
            return None
        except OSError:
            self._done = True
            self._iterator.close()
            raise
        return RawEntry(dir_entry.name, _type_hint(dir_entry), _inode_hint(dir_entry))

    def close(self) -> None:
        self._iterator.close()

    def __enter__(self) -> ScandirStream:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class ScandirReader:
    """Default directory-stream provider; names stay raw bytes."""

    def open(self, path: bytes) -> ScandirStream:
        return ScandirStream(path)


def _type_hint(dir_entry: os.DirEntry) -> FileType:
    try:
        if dir_entry.is_symlink():
            return FileType.SYMLINK
        if dir_entry.is_dir(follow_symlinks=False):
            return FileType.DIRECTORY
        if dir_entry.is_file(follow_symlinks=False):
            return FileType.REGULAR
    except OSError:
        pass
    return FileType.UNKNOWN


def _inode_hint(dir_entry: os.DirEntry) -> Optional[int]:
    try:
        return dir_entry.inode()
    except OSError:
        return None


# =============================================================================
# Ignore rules
# =============================================================================


class IgnoreRules:
    """
    Decide which names a directory read skips.

    Glob patterns follow fnmatch with a leading period in the name only
    matched by a literal leading period in the pattern.
    """

    def __init__(
        self,
        mode: IgnoreMode,
        ignore_patterns: Sequence[str] = (),
        hide_patterns: Sequence[str] = (),
    ):
        self.mode = mode
        self.ignore_patterns = [os.fsencode(p) for p in ignore_patterns]
        self.hide_patterns = [os.fsencode(p) for p in hide_patterns]

    @classmethod
    def for_config(cls, config: ListingConfig) -> IgnoreRules:
        return cls(config.ignore_mode, config.ignore_patterns, config.hide_patterns)

    def ignored(self, name: bytes) -> bool:
        if self._dotfile_ignored(name):
            return True
        if self.mode is IgnoreMode.DEFAULT and _patterns_match(self.hide_patterns, name):
            return True
        return _patterns_match(self.ignore_patterns, name)

    def _dotfile_ignored(self, name: bytes) -> bool:
        if self.mode is IgnoreMode.MINIMAL or not name.startswith(b"."):
            return False
        if self.mode is IgnoreMode.DEFAULT:
            return True
        return name in (b".", b"..")


def _patterns_match(patterns: Sequence[bytes], name: bytes) -> bool:
    for pattern in patterns:
        if name.startswith(b".") and not pattern.startswith(b"."):
            continue
        if fnmatch.fnmatchcase(name, pattern):
            return True
    return False


# =============================================================================
# Directory walker
# =============================================================================


class DirectoryWalker:
    """
    Walk the command-line arguments and the pending-directory stack.

    The walker owns no state of its own beyond the header flag; the entry
    table, cycle guard, pending stack and severity live in the session.
    """

    def __init__(
        self,
        session: ListingSession,
        renderer,
        reader: Optional[DirectoryReader] = None,
    ):
        self.session = session
        self.config = session.config
        self.policy = session.policy
        self.renderer = renderer
        self.reader = reader or ScandirReader()
        self.ignore_rules = IgnoreRules.for_config(self.config)
        self.dereference = self.config.effective_dereference
        self.print_dir_name = True

    def list(self, roots: Sequence[bytes]) -> Severity:
        """List ROOTS (default '.') and every directory they lead to."""
        session = self.session
        config = self.config

        if not roots:
            if config.immediate_dirs:
                self.gobble_file(b".", FileType.DIRECTORY, None, True, None)
            else:
                self.queue_directory(b".", None, True)
        else:
            for root in roots:
                self.gobble_file(root, FileType.UNKNOWN, None, True, None)

        view: list[Entry] = []
        arguments: list[Entry] = []
        if len(session.table):
            view = session.sort_files(list(session.table))
            arguments = view
            session.process_signals()
            if not config.immediate_dirs:
                view = self.extract_dirs_from_files(None, True, view)

        if view:
            # widths also cover the directory arguments extracted above
            self.renderer.print_files(view, in_directory=False, measured=arguments)
            self.renderer.end_file_arguments(bool(session.pending))
            session.process_signals()
        elif len(roots) <= 1 and len(session.pending) == 1:
            self.print_dir_name = False

        while session.pending:
            pending = session.pending.pop()
            if pending.is_marker:
                released = session.cycle_guard.release()
                debug(2, 0, f"leaving directory {pending.display_name!r} ({released.dev}, {released.ino})")
                continue
            self.print_dir(pending)
            self.print_dir_name = True

        self.renderer.flush()
        if session.cycle_guard is not None:
            session.cycle_guard.assert_empty()
        return session.severity

    # -------------------------------------------------------------------------
    # Pending directories
    # -------------------------------------------------------------------------

    def queue_directory(
        self,
        path: Optional[bytes],
        display_name: Optional[bytes],
        command_line_arg: bool,
        identity: Optional[DevIno] = None,
    ) -> None:
        """Push a directory (or, with no path, a marker) on the pending stack."""
        pending = PendingDirectory(path, display_name, command_line_arg, identity)
        self.session.pending.append(pending)
        if pending.is_marker:
            debug(2, 1, f"queued marker for {display_name!r}")
        else:
            debug(2, 1, f"queued directory {path!r}")

    def print_dir(self, pending: PendingDirectory) -> None:
        """Read, sort and print one pending directory."""
        session = self.session
        name = pending.path
        command_line_arg = pending.command_line_arg

        try:
            stream = self.reader.open(name)
        except OSError as e:
            self._file_failure(command_line_arg, f"cannot open directory {quote(name)}", name, e)
            return

        try:
            if session.cycle_guard is not None and not self._enter_directory(pending):
                return

            session.table.clear()
            self.renderer.begin_directory(
                pending.display_name or name, self.config.recursive or self.print_dir_name
            )
            debug(3, 0, f"reading directory {name!r}")
            self._read_entries(stream, name, command_line_arg)
        finally:
            stream.close()

        view = session.sort_files(list(session.table))
        session.process_signals()

        if self.config.recursive:
            view = self.extract_dirs_from_files(name, False, view)

        self.renderer.print_files(view, in_directory=True)
        session.process_signals()

    def _enter_directory(self, pending: PendingDirectory) -> bool:
        """Register PENDING with the cycle guard. Return False to skip it."""
        session = self.session
        name = pending.path
        identity = pending.identity
        if identity is None:
            try:
                identity = DevIno.of(os.stat(name))
            except OSError as e:
                self._file_failure(
                    pending.command_line_arg,
                    f"cannot determine device and inode of {quote(name)}",
                    name,
                    e,
                )
                return False

        if session.cycle_guard.visit(identity):
            debug(2, 1, f"loop detected at {name!r}")
            session.report(
                Severity.SERIOUS,
                f"{quote(name)}: not listing already-listed directory",
                name,
            )
            return False
        return True

    def _read_entries(
        self, stream: DirectoryStream, dirname: bytes, command_line_arg: bool
    ) -> None:
        if self.ignore_rules.mode is IgnoreMode.MINIMAL:
            for dot in (b".", b".."):
                if not self.ignore_rules.ignored(dot):
                    self.gobble_file(dot, FileType.DIRECTORY, None, False, dirname)

        while True:
            try:
                raw = stream.read()
            except OSError as e:
                self._file_failure(
                    command_line_arg, f"reading directory {quote(dirname)}", dirname, e
                )
                if e.errno == errno.EOVERFLOW:
                    continue
                break
            if raw is None:
                break
            if not self.ignore_rules.ignored(raw.name):
                self.gobble_file(raw.name, raw.type_hint, raw.inode, False, dirname)
            self.session.process_signals()

    def extract_dirs_from_files(
        self, dirname: Optional[bytes], command_line_arg: bool, view: list[Entry]
    ) -> list[Entry]:
        """
        Queue the directories of VIEW and return what is left to print.

        DIRNAME is the directory VIEW was read from, None for the
        command-line arguments. Subdirectories are pushed in reverse so
        they pop in sorted order, after a marker that releases DIRNAME's
        cycle-guard entry once they have all been listed. Only
        command-line directories are removed from the view.
        """
        if dirname is not None and self.session.cycle_guard is not None:
            self.queue_directory(None, dirname, False)

        skip_dots = dirname is not None
        for entry in reversed(view):
            if not entry.is_directory:
                continue
            if skip_dots and basename_is_dot_or_dotdot(entry.name):
                continue
            if dirname is None or entry.name.startswith(b"/"):
                path = entry.name
            else:
                path = file_name_concat(dirname, entry.name)
            identity = entry.identity if entry.stat_ok else None
            self.queue_directory(path, entry.link_target, command_line_arg, identity)

        return [e for e in view if e.file_type is not FileType.ARG_DIRECTORY]

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def _needs_stat(
        self, type_hint: FileType, inode: Optional[int], command_line_arg: bool
    ) -> bool:
        policy = self.policy
        if command_line_arg or policy.needs_stat:
            return True
        if policy.needs_type and type_hint is FileType.UNKNOWN:
            return True
        if (
            (policy.needs_inode or policy.needs_type)
            and type_hint in (FileType.SYMLINK, FileType.UNKNOWN)
            and (self.dereference is Dereference.ALWAYS or policy.needs_link_mode)
        ):
            return True
        return policy.needs_inode and inode is None

    def _stat(self, path: bytes, command_line_arg: bool) -> os.stat_result:
        match self.dereference:
            case Dereference.ALWAYS:
                return os.stat(path)
            case Dereference.COMMAND_LINE_ARGUMENTS if command_line_arg:
                return os.stat(path)
            case Dereference.COMMAND_LINE_SYMLINK_TO_DIR if command_line_arg:
                try:
                    st = os.stat(path)
                except OSError as e:
                    if e.errno not in (errno.ENOENT, errno.ELOOP):
                        raise
                    return os.lstat(path)
                if stat.S_ISDIR(st.st_mode):
                    return st
                return os.lstat(path)
        return os.lstat(path)

    def gobble_file(
        self,
        name: bytes,
        type_hint: FileType,
        inode: Optional[int],
        command_line_arg: bool,
        dirname: Optional[bytes],
    ) -> Optional[Entry]:
        """
        Add NAME to the entry table, fetching only the metadata needed.

        A command-line argument that cannot be stat'ed is reported as a
        serious error and dropped. An entry inside a directory is kept
        with stat_ok False and the failure counts as minor.
        """
        session = self.session
        entry = Entry(name=name, file_type=type_hint, inode=inode)
        full_name = name if dirname is None else attach(dirname, name)

        if self._needs_stat(type_hint, inode, command_line_arg):
            debug(4, 2, f"stat {full_name!r}")
            try:
                st = self._stat(full_name, command_line_arg)
            except OSError as e:
                self._file_failure(command_line_arg, f"cannot access {quote(full_name)}", full_name, e)
                if command_line_arg:
                    return None
                return session.table.add(entry)
            entry.stat = st
            entry.stat_ok = True
            entry.file_type = FileType.from_mode(st.st_mode)
            entry.inode = st.st_ino
        else:
            debug(4, 2, f"skipping stat of {full_name!r}")

        if entry.file_type is FileType.DIRECTORY and command_line_arg and not self.config.immediate_dirs:
            entry.file_type = FileType.ARG_DIRECTORY

        if entry.file_type is FileType.SYMLINK and (
            self.policy.needs_link_mode or self.config.format is Format.LONG
        ):
            self._read_link(entry, full_name, command_line_arg)

        return session.table.add(entry)

    def _read_link(self, entry: Entry, full_name: bytes, command_line_arg: bool) -> None:
        try:
            entry.link_target = os.readlink(full_name)
        except OSError as e:
            self._file_failure(
                command_line_arg, f"cannot read symbolic link {quote(full_name)}", full_name, e
            )
            return
        if not self.policy.needs_link_mode:
            return
        try:
            entry.link_mode = os.stat(full_name).st_mode
            entry.link_ok = True
        except OSError:
            # Dangling link; the referent simply has no mode
            entry.link_ok = False

    def _file_failure(
        self, serious: bool, message: str, path: bytes, error: OSError
    ) -> None:
        if error.strerror:
            message = f"{message}: {error.strerror}"
        self.session.report_access_error(message, path, serious)

