# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Type definitions for ls-python.

This module contains the enums, dataclasses and exceptions that define
the core data structures shared by the walker, the sort engine, the
column layout engine and the renderer.
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import NamedTuple, Optional


class FileType(Enum):
    """Classification of a directory entry."""

    FIFO = "fifo"
    CHAR_DEVICE = "chardev"
    DIRECTORY = "directory"
    BLOCK_DEVICE = "blockdev"
    REGULAR = "normal"
    SYMLINK = "symbolic_link"
    SOCKET = "sock"
    WHITEOUT = "whiteout"
    UNKNOWN = "unknown"
    ARG_DIRECTORY = "arg_directory"

    @classmethod
    def from_mode(cls, mode: int) -> FileType:
        """Map an st_mode value to a FileType."""
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISREG(mode):
            return cls.REGULAR
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISFIFO(mode):
            return cls.FIFO
        if stat.S_ISCHR(mode):
            return cls.CHAR_DEVICE
        if stat.S_ISBLK(mode):
            return cls.BLOCK_DEVICE
        if stat.S_ISSOCK(mode):
            return cls.SOCKET
        if stat.S_ISWHT(mode):
            return cls.WHITEOUT
        return cls.UNKNOWN


class SortKey(Enum):
    """Primary sort keys."""

    NAME = "name"
    EXTENSION = "extension"
    WIDTH = "width"
    SIZE = "size"
    VERSION = "version"
    MTIME = "mtime"
    CTIME = "ctime"
    ATIME = "atime"
    BTIME = "btime"
    NONE = "none"

    @property
    def is_time(self) -> bool:
        return self in (SortKey.MTIME, SortKey.CTIME, SortKey.ATIME, SortKey.BTIME)


class TimeType(Enum):
    """Which timestamp long format shows and -t sorts by."""

    MTIME = "mtime"
    CTIME = "ctime"
    ATIME = "atime"
    BTIME = "btime"

    @property
    def sort_key(self) -> SortKey:
        return SortKey[self.name]


class Dereference(Enum):
    """When to follow symbolic links."""

    NEVER = "never"
    COMMAND_LINE_ARGUMENTS = "command_line_arguments"
    COMMAND_LINE_SYMLINK_TO_DIR = "command_line_symlink_to_dir"
    ALWAYS = "always"


class IgnoreMode(Enum):
    """Which dotfiles are hidden."""

    DEFAULT = "default"  # hide every name starting with '.'
    DOT_AND_DOTDOT = "dot_and_dotdot"  # hide only '.' and '..'
    MINIMAL = "minimal"  # hide nothing


class Format(Enum):
    """Output layouts."""

    LONG = "long"
    ONE_PER_LINE = "single-column"
    MANY_PER_LINE = "vertical"
    HORIZONTAL = "across"
    WITH_COMMAS = "commas"


class Severity(IntEnum):
    """Overall run status; the value doubles as the process exit code."""

    SUCCESS = 0
    MINOR = 1
    SERIOUS = 2


class DevIno(NamedTuple):
    """Device/inode identity of a directory."""

    dev: int
    ino: int

    @classmethod
    def of(cls, st: os.stat_result) -> DevIno:
        return cls(st.st_dev, st.st_ino)


class RawEntry(NamedTuple):
    """One item yielded by a directory-stream provider."""

    name: bytes
    type_hint: FileType
    inode: Optional[int] = None


@dataclass(slots=True, eq=False)
class Entry:
    """
    One filesystem object discovered during traversal.

    An entry whose stat failed (or was never fetched) keeps stat_ok False
    and still renders using the type hint from the directory read.
    """

    name: bytes
    file_type: FileType = FileType.UNKNOWN
    stat: Optional[os.stat_result] = None
    stat_ok: bool = False
    inode: Optional[int] = None
    link_target: Optional[bytes] = None
    link_mode: Optional[int] = None
    link_ok: bool = False
    cached_width: Optional[int] = None

    @property
    def is_directory(self) -> bool:
        return self.file_type in (FileType.DIRECTORY, FileType.ARG_DIRECTORY)

    @property
    def is_linked_directory(self) -> bool:
        """True for directories and for symlinks whose referent is a directory."""
        if self.is_directory:
            return True
        return self.link_mode is not None and stat.S_ISDIR(self.link_mode)

    @property
    def mode(self) -> Optional[int]:
        return self.stat.st_mode if self.stat_ok else None

    @property
    def size(self) -> Optional[int]:
        return self.stat.st_size if self.stat_ok else None

    @property
    def identity(self) -> Optional[DevIno]:
        return DevIno.of(self.stat) if self.stat_ok else None

    def timestamp(self, key: SortKey) -> Optional[int]:
        """Return the timestamp for a time sort key in nanoseconds, if known."""
        if not self.stat_ok:
            return None
        match key:
            case SortKey.MTIME:
                return self.stat.st_mtime_ns
            case SortKey.CTIME:
                return self.stat.st_ctime_ns
            case SortKey.ATIME:
                return self.stat.st_atime_ns
            case SortKey.BTIME:
                birth = getattr(self.stat, "st_birthtime_ns", None)
                if birth is None:
                    birth = getattr(self.stat, "st_birthtime", None)
                    if birth is not None:
                        birth = int(birth * 1_000_000_000)
                return birth
        raise ValueError(f"not a time sort key: {key}")


@dataclass(slots=True)
class PendingDirectory:
    """
    A directory queued for later listing.

    A pending directory without a path is a marker: popping it releases
    the most recent CycleGuard entry.
    """

    path: Optional[bytes]
    display_name: Optional[bytes] = None
    command_line_arg: bool = False
    identity: Optional[DevIno] = None

    @property
    def is_marker(self) -> bool:
        return self.path is None


@dataclass(frozen=True, slots=True)
class ColumnLayout:
    """Result of the column layout computation."""

    columns: int
    column_widths: tuple[int, ...]
    line_length: int
    rows: int


@dataclass(frozen=True, slots=True)
class Diagnostic:
    """A non-fatal problem reported while listing."""

    severity: Severity
    message: str
    path: Optional[bytes] = None


@dataclass(frozen=True)
class StatPolicy:
    """
    Which metadata the active configuration needs.

    Attributes:
        needs_stat: stat every entry (sorting by size/time, long format)
        needs_type: stat entries whose type hint is unknown
        needs_link_mode: stat the referent of symlinks
        needs_inode: stat entries without an inode hint
    """

    needs_stat: bool = False
    needs_type: bool = False
    needs_link_mode: bool = False
    needs_inode: bool = False

    @classmethod
    def for_config(cls, config: ListingConfig) -> StatPolicy:
        """Derive the policy from what sorting and display require."""
        if config.stat_policy is not None:
            return config.stat_policy
        needs_stat = (
            config.sort_key is SortKey.SIZE
            or config.sort_key.is_time
            or config.format is Format.LONG
        )
        needs_type = not needs_stat and (config.recursive or config.dirs_first)
        return cls(
            needs_stat=needs_stat,
            needs_type=needs_type,
            needs_link_mode=config.dirs_first or config.format is Format.LONG,
            needs_inode=config.print_inode,
        )


@dataclass(frozen=True)
class ListingConfig:
    """
    Immutable configuration for a listing run.

    Attributes:
        recursive: List subdirectories recursively (-R)
        immediate_dirs: List directories themselves, not their contents (-d)
        dereference: Symlink-following policy; None picks the default
        ignore_mode: Which dotfiles to hide
        ignore_patterns: Glob patterns never listed (-I)
        hide_patterns: Glob patterns hidden unless -a/-A (--hide)
        sort_key: Primary sort key
        reverse: Reverse the primary sort key (-r)
        dirs_first: Group directories before files
        format: Output layout
        line_width: Display width for grid layouts; 0 means unlimited
        tabsize: Tab stop width used for column padding; 0 disables tabs
        print_inode: Show inode numbers (-i)
        hide_control_chars: Show non-printable characters as '?' (-q)
        time_type: Timestamp shown in long format
        stat_policy: Explicit lazy-stat policy; None derives it
        verbose: Debug level (0-5)
    """

    recursive: bool = False
    immediate_dirs: bool = False
    dereference: Optional[Dereference] = None
    ignore_mode: IgnoreMode = IgnoreMode.DEFAULT
    ignore_patterns: tuple[str, ...] = ()
    hide_patterns: tuple[str, ...] = ()
    sort_key: SortKey = SortKey.NAME
    reverse: bool = False
    dirs_first: bool = False
    format: Format = Format.ONE_PER_LINE
    line_width: int = 80
    tabsize: int = 8
    print_inode: bool = False
    hide_control_chars: bool = False
    time_type: TimeType = TimeType.MTIME
    stat_policy: Optional[StatPolicy] = None
    verbose: int = 0

    @property
    def effective_dereference(self) -> Dereference:
        """Resolve the default dereference policy as ls does."""
        if self.dereference is not None:
            return self.dereference
        if self.immediate_dirs or self.format is Format.LONG:
            return Dereference.NEVER
        return Dereference.COMMAND_LINE_SYMLINK_TO_DIR


@dataclass
class DirectoryListing:
    """The sorted view of one listed directory (or of the file arguments)."""

    name: Optional[bytes]
    entries: list[Entry] = field(default_factory=list)
    layout: Optional[ColumnLayout] = None


@dataclass
class ListingResult:
    """Result of a library-level listing run."""

    severity: Severity
    listings: list[DirectoryListing]
    diagnostics: list[Diagnostic]

    @property
    def success(self) -> bool:
        return self.severity is Severity.SUCCESS


class LsError(Exception):
    """A fatal error; the message is printed and the run exits with errno."""

    def __init__(self, message: str, errno: int = Severity.SERIOUS):
        super().__init__(message)
        self.message = message
        self.errno = int(errno)


class LsCLIError(LsError):
    """Invalid command-line usage."""


class LsProgrammingError(LsError):
    """An internal invariant was violated."""


class CollationError(Exception):
    """Locale collation could not compare two names."""

    def __init__(self, a: bytes, b: bytes, reason: str):
        super().__init__(reason)
        self.a = a
        self.b = b
        self.reason = reason
