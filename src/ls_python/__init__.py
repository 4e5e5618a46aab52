# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
ls-python - Python implementation of the GNU ls listing engine

This package lists directories the way GNU ls does: recursive descent
with loop detection, locale-aware sorting with a byte-wise fallback,
and column layout for the grid formats.

Basic usage::

    from ls_python import ls

    result = ls("src", "README.md")
    for listing in result.listings:
        print(listing.name, [e.name for e in listing.entries])

Recursive listing, newest first::

    from ls_python import ls, SortKey

    result = ls("/etc", recursive=True, sort_key=SortKey.MTIME)
    if not result.success:
        for diagnostic in result.diagnostics:
            print(diagnostic.message)

With configuration reuse::

    from ls_python import ls, ListingConfig, Format

    config = ListingConfig(format=Format.MANY_PER_LINE, line_width=100)
    ls("a", config=config)
    ls("b", config=config, reverse=True)
"""

from ls_python.ls import ls
from ls_python.types import (
    Dereference,
    DirectoryListing,
    Entry,
    Format,
    IgnoreMode,
    ListingConfig,
    ListingResult,
    LsCLIError,
    LsError,
    LsProgrammingError,
    Severity,
    SortKey,
    TimeType,
)
from ls_python.util import VERSION as __version__

# CLI entry point
from ls_python.cli import main

__all__ = [
    "ls",
    "Dereference",
    "DirectoryListing",
    "Entry",
    "Format",
    "IgnoreMode",
    "ListingConfig",
    "ListingResult",
    "LsCLIError",
    "LsError",
    "LsProgrammingError",
    "Severity",
    "SortKey",
    "TimeType",
    "__version__",
    "main",
]
