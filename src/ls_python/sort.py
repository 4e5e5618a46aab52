# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Sort engine - order a snapshot of the entry table.

A comparator is assembled from a primary key function, the name
tie-break and a directories-first wrapper. Name comparison goes through
a Collator; when locale collation fails part-way through a sort the
partial result is thrown away and the whole sort is redone with the
byte-wise collator.
"""

from __future__ import annotations

import functools
import locale
from typing import Callable, Optional, Protocol, Sequence

from ls_python.types import CollationError, Entry, SortKey
from ls_python.util import debug, name_width, quote


# =============================================================================
# Collators
# =============================================================================


class Collator(Protocol):
    def compare(self, a: bytes, b: bytes) -> int: ...


class ByteCollator:
    """Compare raw names byte by byte. Never fails."""

    def compare(self, a: bytes, b: bytes) -> int:
        return (a > b) - (a < b)


class LocaleCollator:
    """
    Compare names with the collation rules of the active locale.

    In the C and POSIX locales collation is plain byte order and never
    fails. Otherwise names are decoded with the locale's codeset; a name
    that is not a valid byte sequence in that codeset cannot be collated
    and raises CollationError, as does anything locale.strcoll rejects.
    """

    def __init__(self, encoding: Optional[str] = None):
        self.bytewise = encoding is None and _collation_is_bytewise()
        self.encoding = encoding or _locale_codeset()

    def compare(self, a: bytes, b: bytes) -> int:
        if self.bytewise:
            return bytes_cmp(a, b)
        try:
            sa = a.decode(self.encoding)
            sb = b.decode(self.encoding)
            return locale.strcoll(sa, sb)
        except (UnicodeDecodeError, ValueError) as e:
            raise CollationError(a, b, str(e)) from e


def _collation_is_bytewise() -> bool:
    name = locale.setlocale(locale.LC_COLLATE)
    return name in ("C", "POSIX") or name.startswith(("C.", "POSIX."))


def _locale_codeset() -> str:
    try:
        return locale.nl_langinfo(locale.CODESET) or "ascii"
    except (AttributeError, ValueError):
        return locale.getpreferredencoding(False)


def bytes_cmp(a: bytes, b: bytes) -> int:
    return (a > b) - (a < b)


# =============================================================================
# Version comparison (filevercmp)
# =============================================================================


def _isdigit(c: int) -> bool:
    return 0x30 <= c <= 0x39


def _isalpha(c: int) -> bool:
    return 0x41 <= c <= 0x5A or 0x61 <= c <= 0x7A


def _file_prefixlen(s: bytes) -> int:
    """
    Return the length of S without its file suffix.

    A suffix is a run of '.' followed by a letter or '~', then letters,
    digits or '~', repeated up to the end of the string.
    """
    n = len(s)
    prefixlen = 0
    i = 0
    while i < n:
        i += 1
        prefixlen = i
        while i + 1 < n and s[i] == 0x2E and (_isalpha(s[i + 1]) or s[i + 1] == 0x7E):
            i += 2
            while i < n and (_isalpha(s[i]) or _isdigit(s[i]) or s[i] == 0x7E):
                i += 1
    return prefixlen


def _order(s: bytes, pos: int, length: int) -> int:
    if pos == length:
        return -1
    c = s[pos]
    if _isdigit(c):
        return 0
    if _isalpha(c):
        return c
    if c == 0x7E:  # '~' sorts before everything, even the end of the string
        return -2
    return c + 256


def _verrevcmp(s1: bytes, s1_len: int, s2: bytes, s2_len: int) -> int:
    p1 = p2 = 0
    while p1 < s1_len or p2 < s2_len:
        first_diff = 0
        while (p1 < s1_len and not _isdigit(s1[p1])) or (
            p2 < s2_len and not _isdigit(s2[p2])
        ):
            c1 = _order(s1, p1, s1_len)
            c2 = _order(s2, p2, s2_len)
            if c1 != c2:
                return c1 - c2
            p1 += 1
            p2 += 1
        while p1 < s1_len and s1[p1] == 0x30:
            p1 += 1
        while p2 < s2_len and s2[p2] == 0x30:
            p2 += 1
        while p1 < s1_len and p2 < s2_len and _isdigit(s1[p1]) and _isdigit(s2[p2]):
            if not first_diff:
                first_diff = s1[p1] - s2[p2]
            p1 += 1
            p2 += 1
        if p1 < s1_len and _isdigit(s1[p1]):
            return 1
        if p2 < s2_len and _isdigit(s2[p2]):
            return -1
        if first_diff:
            return first_diff
    return 0


def filevercmp(a: bytes, b: bytes) -> int:
    """
    Compare two file names as version strings.

    Digit runs compare numerically, '~' sorts before anything, and file
    suffixes such as '.tar.gz' are only consulted when the rest is equal.
    '.' sorts first, then '..', then other hidden names, then the rest.
    Locale independent; never fails.
    """
    if not a:
        return -1 if b else 0
    if not b:
        return 1

    if a[:1] == b".":
        if b[:1] != b".":
            return -1
        if a == b".":
            return -1 if b != b"." else 0
        if b == b".":
            return 1
        if a == b"..":
            return -1 if b != b".." else 0
        if b == b"..":
            return 1
    elif b[:1] == b".":
        return 1

    a_prefix = _file_prefixlen(a)
    b_prefix = _file_prefixlen(b)
    one_pass_only = a_prefix == len(a) and b_prefix == len(b)

    result = _verrevcmp(a, a_prefix, b, b_prefix)
    if result or one_pass_only:
        return result
    return _verrevcmp(a, len(a), b, len(b))


# =============================================================================
# Comparator assembly
# =============================================================================

EntryCmp = Callable[[Entry, Entry], int]


def _extension(name: bytes) -> bytes:
    dot = name.rfind(b".")
    return name[dot:] if dot >= 0 else b""


def _cmp_optional(a: Optional[int], b: Optional[int]) -> int:
    """Compare two optional values, larger first, unknown values last."""
    if a is None or b is None:
        return (a is None) - (b is None)
    return (b > a) - (b < a)


def _primary_key_cmp(
    key: SortKey, name_cmp: Callable[[bytes, bytes], int], width_of: Callable[[Entry], int]
) -> EntryCmp:
    match key:
        case SortKey.NAME:
            return lambda a, b: name_cmp(a.name, b.name)
        case SortKey.EXTENSION:
            return lambda a, b: name_cmp(_extension(a.name), _extension(b.name))
        case SortKey.WIDTH:
            return lambda a, b: width_of(a) - width_of(b)
        case SortKey.SIZE:
            return lambda a, b: _cmp_optional(a.size, b.size)
        case SortKey.VERSION:
            return lambda a, b: filevercmp(a.name, b.name)
        case SortKey.MTIME | SortKey.CTIME | SortKey.ATIME | SortKey.BTIME:
            return lambda a, b: _cmp_optional(a.timestamp(key), b.timestamp(key))
    raise ValueError(f"no comparator for sort key {key}")


def make_comparator(
    key: SortKey,
    reverse: bool = False,
    dirs_first: bool = False,
    collator: Optional[Collator] = None,
    width_of: Optional[Callable[[Entry], int]] = None,
) -> EntryCmp:
    """
    Build a total-order comparator over entries.

    The primary key is optionally reversed; ties fall back to the name
    (through the collator, except for version sorting which is locale
    independent) and finally to a byte-wise name comparison, neither of
    which is reversed. With dirs_first, linked directories come before
    everything else regardless of direction.
    """
    collator = collator or ByteCollator()
    name_cmp = collator.compare
    if width_of is None:
        width_of = _default_width
    primary = _primary_key_cmp(key, name_cmp, width_of)
    sign = -1 if reverse else 1
    tie_break = None if key in (SortKey.NAME, SortKey.VERSION) else name_cmp

    def compare(a: Entry, b: Entry) -> int:
        diff = primary(a, b)
        if diff:
            return sign * diff
        if tie_break is not None:
            diff = tie_break(a.name, b.name)
            if diff:
                return diff
        return bytes_cmp(a.name, b.name)

    if not dirs_first:
        return compare

    def dirs_first_compare(a: Entry, b: Entry) -> int:
        diff = b.is_linked_directory - a.is_linked_directory
        return diff if diff else compare(a, b)

    return dirs_first_compare


def _default_width(entry: Entry) -> int:
    if entry.cached_width is None:
        entry.cached_width = name_width(entry.name)
    return entry.cached_width


def sort_entries(
    entries: Sequence[Entry],
    key: SortKey = SortKey.NAME,
    reverse: bool = False,
    dirs_first: bool = False,
    *,
    collator: Optional[Collator] = None,
    width_of: Optional[Callable[[Entry], int]] = None,
    on_collation_error: Optional[Callable[[CollationError], None]] = None,
) -> list[Entry]:
    """Return the sorted view of ENTRIES without touching the sequence itself.

    Args:
        entries: The entry table (or any sequence of entries)
        key: Primary sort key; SortKey.NONE keeps read order
        reverse: Reverse the primary key
        dirs_first: Put (linked) directories first
        collator: Name collator, locale collation by default
        width_of: Display-width function for SortKey.WIDTH
        on_collation_error: Called once when the locale sort had to be
            abandoned in favour of byte-wise comparison

    Returns:
        A new list holding the same Entry objects in sorted order
    """
    if key is SortKey.NONE:
        return list(entries)

    if collator is None:
        collator = LocaleCollator()

    try:
        view = list(entries)
        cmp = make_comparator(key, reverse, dirs_first, collator, width_of)
        view.sort(key=functools.cmp_to_key(cmp))
        return view
    except CollationError as e:
        debug(
            3, 1, f"collation failed ({e.reason}), sorting byte-wise instead"
        )
        if on_collation_error is not None:
            on_collation_error(e)

    view = list(entries)
    cmp = make_comparator(key, reverse, dirs_first, ByteCollator(), width_of)
    view.sort(key=functools.cmp_to_key(cmp))
    return view


def collation_error_message(error: CollationError) -> str:
    return f"cannot compare file names {quote(error.a)} and {quote(error.b)}: {error.reason}"
