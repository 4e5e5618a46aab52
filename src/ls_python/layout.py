# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Column layout engine - fit display names into as many columns as possible.

Every candidate column count is evaluated in a single pass over the
entries. A candidate is dropped as soon as its line grows wider than
the display, and one column is always accepted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ls_python.types import ColumnLayout
from ls_python.util import debug

MIN_COLUMN_WIDTH = 3  # one character plus the two-space gap
COLUMN_GAP = 2


@dataclass
class _Candidate:
    """Running state for one candidate column count."""

    columns: int
    valid: bool = True
    line_length: int = 0
    widths: list[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.widths = [MIN_COLUMN_WIDTH] * self.columns
        self.line_length = MIN_COLUMN_WIDTH * self.columns


def max_columns(entry_count: int, line_width: int) -> int:
    """Upper bound on the column count for ENTRY_COUNT names."""
    bound = max(1, line_width // MIN_COLUMN_WIDTH)
    return min(bound, entry_count) if entry_count else 1


def column_of(index: int, entry_count: int, columns: int, by_columns: bool) -> int:
    """Return the column entry INDEX lands in for a COLUMNS-wide grid."""
    if by_columns:
        rows = (entry_count + columns - 1) // columns
        return index // rows
    return index % columns


def calculate_columns(
    widths: Sequence[int], line_width: int, by_columns: bool = True
) -> ColumnLayout:
    """Choose the largest column count whose lines fit in LINE_WIDTH.

    Args:
        widths: Display width of each entry, in sorted order
        line_width: Available columns on the display
        by_columns: Fill columns first (-C) instead of rows first (-x)

    Returns:
        ColumnLayout with the column count, per-column widths (gap
        included except for the last column) and the resulting line
        length and row count
    """
    n = len(widths)
    if n == 0:
        return ColumnLayout(columns=1, column_widths=(0,), line_length=0, rows=0)

    candidates = [_Candidate(c) for c in range(1, max_columns(n, line_width) + 1)]

    for index, width in enumerate(widths):
        for cand in candidates:
            if not cand.valid:
                continue
            col = column_of(index, n, cand.columns, by_columns)
            real_width = width + (0 if col == cand.columns - 1 else COLUMN_GAP)
            if cand.widths[col] < real_width:
                cand.line_length += real_width - cand.widths[col]
                cand.widths[col] = real_width
                cand.valid = cand.line_length <= line_width

    chosen = candidates[0]
    for cand in reversed(candidates):
        if cand.valid:
            chosen = cand
            break

    debug(
        5,
        1,
        f"layout: {n} entries, width {line_width}: {chosen.columns} columns "
        f"({sum(c.valid for c in candidates)} of {len(candidates)} candidates fit)",
    )
    rows = (n + chosen.columns - 1) // chosen.columns
    return ColumnLayout(
        columns=chosen.columns,
        column_widths=tuple(chosen.widths),
        line_length=chosen.line_length,
        rows=rows,
    )
