# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Renderers - turn sorted views into output.

StreamRenderer writes the classic ls output formats to a binary stream.
CollectingRenderer keeps the sorted views (and their column layouts) as
DirectoryListing objects for the library API.
"""

from __future__ import annotations

import grp
import os
import pwd
import stat
import sys
import time
from typing import BinaryIO, Optional, Sequence

from ls_python.layout import calculate_columns
from ls_python.session import ListingSession
from ls_python.types import (
    ColumnLayout,
    DirectoryListing,
    Entry,
    FileType,
    Format,
    SortKey,
)
from ls_python.util import debug, display_text

SIX_MONTHS_IN_SECONDS = 31556952 // 2

_TYPE_LETTERS = {
    FileType.FIFO: "p",
    FileType.CHAR_DEVICE: "c",
    FileType.DIRECTORY: "d",
    FileType.ARG_DIRECTORY: "d",
    FileType.BLOCK_DEVICE: "b",
    FileType.REGULAR: "-",
    FileType.SYMLINK: "l",
    FileType.SOCKET: "s",
    FileType.WHITEOUT: "w",
    FileType.UNKNOWN: "?",
}


def is_grid_format(session: ListingSession) -> bool:
    """True when entries are laid out in columns rather than in a stream."""
    config = session.config
    return config.format in (Format.MANY_PER_LINE, Format.HORIZONTAL) and config.line_width > 0


def inode_text(entry: Entry) -> str:
    if entry.inode is not None:
        return str(entry.inode)
    if entry.stat_ok:
        return str(entry.stat.st_ino)
    return "?"


class _Frills:
    """Per-view measurements shared by every entry of one print."""

    def __init__(self, session: ListingSession, entries: Sequence[Entry]):
        self.session = session
        self.print_inode = session.config.print_inode
        self.inode_width = 0
        if self.print_inode:
            self.inode_width = max((len(inode_text(e)) for e in entries), default=0)

    def width(self, entry: Entry, commas: bool = False) -> int:
        """Screen width of the name plus its inode prefix."""
        width = self.session.width_of(entry)
        if self.print_inode:
            width += (len(inode_text(entry)) if commas else self.inode_width) + 1
        return width

    def text(self, entry: Entry, commas: bool = False) -> str:
        name = display_text(entry.name, self.session.config.hide_control_chars)
        if not self.print_inode:
            return name
        inode = inode_text(entry)
        if not commas:
            inode = inode.rjust(self.inode_width)
        return f"{inode} {name}"


def compute_layout(
    session: ListingSession,
    entries: Sequence[Entry],
    measured: Optional[Sequence[Entry]] = None,
) -> Optional[ColumnLayout]:
    """Column layout of ENTRIES for the grid formats, None for the others."""
    if not is_grid_format(session):
        return None
    frills = _Frills(session, entries if measured is None else measured)
    by_columns = session.config.format is Format.MANY_PER_LINE
    return calculate_columns(
        [frills.width(e) for e in entries], session.config.line_width, by_columns
    )


class StreamRenderer:
    """
    Write listings to a binary stream the way ls prints them.

    Directory headers are preceded by a blank line, except for the first
    header of the run.
    """

    def __init__(self, session: ListingSession, stream: Optional[BinaryIO] = None):
        self.session = session
        self.stream = stream if stream is not None else sys.stdout.buffer
        self._first_header = True

    # -------------------------------------------------------------------------
    # Interface used by the walker
    # -------------------------------------------------------------------------

    def begin_directory(self, name: bytes, show_header: bool) -> None:
        if not show_header:
            return
        if not self._first_header:
            self._write("\n")
        self._first_header = False
        self._write(display_text(name, self.session.config.hide_control_chars) + ":\n")

    def print_files(
        self,
        entries: Sequence[Entry],
        in_directory: bool,
        measured: Optional[Sequence[Entry]] = None,
    ) -> None:
        """
        Print a sorted view; IN_DIRECTORY adds the long-format total line.

        Column widths of the long format and of inode numbers are taken
        over MEASURED when given, so file arguments line up with the
        directory arguments that were extracted from them.
        """
        config = self.session.config
        if config.format is Format.LONG and in_directory:
            self._write(f"total {total_blocks(entries)}\n")
        if not entries:
            return
        measured = entries if measured is None else measured
        frills = _Frills(self.session, measured)
        match config.format:
            case Format.LONG:
                self._print_long(entries, frills, measured)
            case Format.ONE_PER_LINE:
                self._print_one_per_line(entries, frills)
            case Format.MANY_PER_LINE if config.line_width > 0:
                self._print_many_per_line(entries, frills)
            case Format.HORIZONTAL if config.line_width > 0:
                self._print_horizontal(entries, frills)
            case Format.WITH_COMMAS:
                self._print_with_separator(entries, frills, ",")
            case _:
                self._print_with_separator(entries, frills, " ")

    def end_file_arguments(self, directories_follow: bool) -> None:
        if directories_follow:
            self._write("\n")

    def flush(self) -> None:
        self.stream.flush()

    # -------------------------------------------------------------------------
    # Formats
    # -------------------------------------------------------------------------

    def _write(self, text: str) -> None:
        self.stream.write(os.fsencode(text))

    def _print_one_per_line(self, entries: Sequence[Entry], frills: _Frills) -> None:
        self._write("".join(frills.text(e) + "\n" for e in entries))

    def _indent(self, start: int, end: int) -> str:
        """Padding that moves the cursor from column START to column END."""
        tabsize = self.session.config.tabsize
        out = []
        while start < end:
            if tabsize and end // tabsize > (start + 1) // tabsize:
                out.append("\t")
                start += tabsize - start % tabsize
            else:
                out.append(" ")
                start += 1
        return "".join(out)

    def _print_many_per_line(self, entries: Sequence[Entry], frills: _Frills) -> None:
        layout = calculate_columns(
            [frills.width(e) for e in entries], self.session.config.line_width, True
        )
        n = len(entries)
        rows = layout.rows
        for row in range(rows):
            line = []
            col = 0
            index = row
            pos = 0
            while True:
                entry = entries[index]
                line.append(frills.text(entry))
                width = frills.width(entry)
                column_width = layout.column_widths[col]
                col += 1
                index += rows
                if index >= n:
                    break
                line.append(self._indent(pos + width, pos + column_width))
                pos += column_width
            line.append("\n")
            self._write("".join(line))

    def _print_horizontal(self, entries: Sequence[Entry], frills: _Frills) -> None:
        layout = calculate_columns(
            [frills.width(e) for e in entries], self.session.config.line_width, False
        )
        out = [frills.text(entries[0])]
        pos = 0
        width = frills.width(entries[0])
        column_width = layout.column_widths[0]
        for index in range(1, len(entries)):
            col = index % layout.columns
            if col == 0:
                out.append("\n")
                pos = 0
            else:
                out.append(self._indent(pos + width, pos + column_width))
                pos += column_width
            entry = entries[index]
            out.append(frills.text(entry, False))
            width = frills.width(entry)
            column_width = layout.column_widths[col]
        out.append("\n")
        self._write("".join(out))

    def _print_with_separator(self, entries: Sequence[Entry], frills: _Frills, sep: str) -> None:
        commas = sep == ","
        line_width = self.session.config.line_width
        out = []
        pos = 0
        for index, entry in enumerate(entries):
            length = frills.width(entry, commas) if line_width else 0
            if index:
                if not line_width or pos + length + 2 < line_width:
                    pos += 2
                    out.append(sep + " ")
                else:
                    pos = 0
                    out.append(sep + "\n")
            out.append(frills.text(entry, commas))
            pos += length
        out.append("\n")
        self._write("".join(out))

    def _print_long(
        self, entries: Sequence[Entry], frills: _Frills, measured: Sequence[Entry]
    ) -> None:
        time_key = self.session.config.time_type.sort_key
        now = time.time()
        rows = []
        for entry in entries:
            rows.append(
                (
                    inode_text(entry).rjust(frills.inode_width) + " " if frills.print_inode else "",
                    mode_string(entry),
                    *_long_fields(entry, time_key, now),
                    self._long_name(entry),
                )
            )
        shown = {id(e) for e in entries}
        fields = [r[2:7] for r in rows]
        fields += [_long_fields(e, time_key, now) for e in measured if id(e) not in shown]
        widths = [max(len(f[i]) for f in fields) for i in range(5)]
        nlink_w, owner_w, group_w, size_w, time_w = widths
        lines = []
        for inode, mode, nlink, owner, group, size, when, name in rows:
            lines.append(
                f"{inode}{mode} {nlink.rjust(nlink_w)} {owner.ljust(owner_w)} "
                f"{group.ljust(group_w)} {size.rjust(size_w)} {when.rjust(time_w)} {name}\n"
            )
        debug(5, 1, f"long format: {len(lines)} lines")
        self._write("".join(lines))

    def _long_name(self, entry: Entry) -> str:
        hide = self.session.config.hide_control_chars
        name = display_text(entry.name, hide)
        if entry.file_type is FileType.SYMLINK and entry.link_target is not None:
            name += " -> " + display_text(entry.link_target, hide)
        return name


class CollectingRenderer:
    """Keep every printed view as a DirectoryListing instead of writing it."""

    def __init__(self, session: ListingSession):
        self.session = session
        self.listings: list[DirectoryListing] = []
        self._current: Optional[bytes] = None

    def begin_directory(self, name: bytes, show_header: bool) -> None:
        self._current = name

    def print_files(
        self,
        entries: Sequence[Entry],
        in_directory: bool,
        measured: Optional[Sequence[Entry]] = None,
    ) -> None:
        if not in_directory and not entries:
            return
        name = self._current if in_directory else None
        layout = compute_layout(self.session, entries, measured)
        self.listings.append(DirectoryListing(name, list(entries), layout))

    def end_file_arguments(self, directories_follow: bool) -> None:
        pass

    def flush(self) -> None:
        pass


# =============================================================================
# Long format fields
# =============================================================================


def _long_fields(entry: Entry, time_key: SortKey, now: float) -> tuple[str, ...]:
    """Link count, owner, group, size and time columns of ENTRY."""
    return (
        str(entry.stat.st_nlink) if entry.stat_ok else "?",
        owner_name(entry),
        group_name(entry),
        size_text(entry),
        time_text(entry.timestamp(time_key), now),
    )


def mode_string(entry: Entry) -> str:
    if entry.stat_ok:
        return stat.filemode(entry.stat.st_mode)
    return _TYPE_LETTERS[entry.file_type] + "?????????"


def owner_name(entry: Entry) -> str:
    if not entry.stat_ok:
        return "?"
    uid = entry.stat.st_uid
    try:
        return pwd.getpwuid(uid).pw_name
    except KeyError:
        return str(uid)


def group_name(entry: Entry) -> str:
    if not entry.stat_ok:
        return "?"
    gid = entry.stat.st_gid
    try:
        return grp.getgrgid(gid).gr_name
    except KeyError:
        return str(gid)


def size_text(entry: Entry) -> str:
    if not entry.stat_ok:
        return "?"
    st = entry.stat
    if stat.S_ISCHR(st.st_mode) or stat.S_ISBLK(st.st_mode):
        return f"{os.major(st.st_rdev)}, {os.minor(st.st_rdev)}"
    return str(st.st_size)


def time_text(timestamp_ns: Optional[int], now: float) -> str:
    """Format a timestamp like ls: time of day when recent, year otherwise."""
    if timestamp_ns is None:
        return "?"
    when = timestamp_ns / 1_000_000_000
    recent = now - SIX_MONTHS_IN_SECONDS < when <= now
    fmt = "%b %e %H:%M" if recent else "%b %e  %Y"
    try:
        return time.strftime(fmt, time.localtime(when))
    except (OverflowError, OSError, ValueError):
        return str(timestamp_ns // 1_000_000_000)


def total_blocks(entries: Sequence[Entry]) -> int:
    """Disk usage of ENTRIES in 1024-byte blocks, rounded up."""
    blocks = sum(getattr(e.stat, "st_blocks", 0) for e in entries if e.stat_ok)
    return (blocks * 512 + 1023) // 1024
