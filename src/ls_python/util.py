# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Utility functions for ls-python.

This module contains general-purpose helpers used throughout ls-python:
debug tracing, message quoting, display-width measurement and path joining.
"""

from __future__ import annotations

import os
import re
import sys
import unicodedata

VERSION = "9.5.1"
PROGRAM_NAME = "ls"

# Debug level is module-level state, like the verbosity of the CLI
_debug_level = 0

# Surrogate escapes left by os.fsdecode for bytes that do not decode
_UNDECODABLE = re.compile("[\udc80-\udcff]")


def set_debug_level(level: int) -> None:
    """Set verbosity level for debug()."""
    global _debug_level
    _debug_level = level


def debug(level: int, *args) -> None:
    """
    Log to STDERR based on debug_level setting.

    Verbosity rules:
        0: errors only
        >= 2: directories queued, loop decisions
        >= 3: directory reads and sorts
        >= 4: per-entry stat decisions
        >= 5: column layout candidates

    Supports two calling conventions:
        debug(level, msg)
        debug(level, indent_level, msg)
    """
    if len(args) >= 2 and isinstance(args[0], int):
        indent_level = args[0]
        msg = args[1]
    elif len(args) >= 1:
        indent_level = 0
        msg = args[0]
    else:
        return

    if _debug_level >= level:
        indent = "    " * indent_level
        print(f"{indent}{msg}", file=sys.stderr)


def quote(name: bytes | str) -> str:
    """
    Quote a file name for a diagnostic message.

    Always wraps the name in single quotes, shell style, so that names
    with spaces or leading dashes stay unambiguous. Bytes that do not
    decode are shown as backslash octal escapes.
    """
    if isinstance(name, bytes):
        name = os.fsdecode(name)
    name = _UNDECODABLE.sub(lambda m: "\\%03o" % (ord(m.group()) - 0xDC00), name)
    return "'" + name.replace("'", "'\\''") + "'"


def display_text(name: bytes, hide_control_chars: bool = False) -> str:
    """
    Return the text shown for a raw name.

    Undecodable bytes survive as surrogate escapes so the name can be
    written back byte-for-byte. With hide_control_chars, every
    non-printable character (and undecodable byte) becomes '?'.
    """
    text = os.fsdecode(name)
    if not hide_control_chars:
        return text
    return "".join("?" if _is_unprintable(ch) else ch for ch in text)


def name_width(name: bytes, hide_control_chars: bool = False) -> int:
    """Return the number of screen columns occupied by a displayed name."""
    width = 0
    for ch in display_text(name, hide_control_chars):
        width += char_width(ch)
    return width


def char_width(ch: str) -> int:
    """
    Return terminal column width for one character.

    Combining marks consume no columns, East Asian wide/fullwidth
    characters consume two, and control characters and undecodable
    bytes count as one.
    """
    if _is_unprintable(ch):
        return 1
    if unicodedata.combining(ch):
        return 0
    if unicodedata.east_asian_width(ch) in {"W", "F"}:
        return 2
    return 1


def _is_unprintable(ch: str) -> bool:
    if "\udc80" <= ch <= "\udcff":
        return True
    return unicodedata.category(ch) in ("Cc", "Cs")


def attach(dirname: bytes, name: bytes) -> bytes:
    """
    Put DIRNAME/NAME together, handling '.' and '/' properly.

    A dirname of '.' is dropped, absolute names are kept as-is, and no
    separator is doubled.
    """
    if name.startswith(b"/"):
        return name
    if dirname == b".":
        return name
    if dirname.endswith(b"/"):
        return dirname + name
    return dirname + b"/" + name


def basename_is_dot_or_dotdot(name: bytes) -> bool:
    """Return True if the last component of NAME is '.' or '..'."""
    base = name.rstrip(b"/").rsplit(b"/", 1)[-1]
    return base in (b".", b"..")


def file_name_concat(dirname: bytes, name: bytes) -> bytes:
    """Join DIRNAME and NAME with exactly one separator, keeping a leading './'."""
    if dirname.endswith(b"/"):
        return dirname + name
    return dirname + b"/" + name
