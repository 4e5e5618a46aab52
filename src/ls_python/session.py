# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Per-run listing state.

A ListingSession bundles everything one run of the engine mutates: the
entry table, the cycle guard, the pending-directory stack, the worst
severity seen so far and the diagnostics. It is passed explicitly to
the walker, the sorter and the renderer.
"""

from __future__ import annotations

import sys
from typing import Callable, Iterator, Optional

from ls_python.signals import CancellationToken
from ls_python.sort import Collator, collation_error_message, sort_entries
from ls_python.types import (
    CollationError,
    DevIno,
    Diagnostic,
    Entry,
    ListingConfig,
    LsProgrammingError,
    PendingDirectory,
    Severity,
    StatPolicy,
)
from ls_python.util import PROGRAM_NAME, debug, name_width


class EntryTable:
    """Growable store for the entries of the directory being processed."""

    def __init__(self) -> None:
        self._entries: list[Entry] = []

    def add(self, entry: Entry) -> Entry:
        self._entries.append(entry)
        return entry

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Entry]:
        return iter(self._entries)


class CycleGuard:
    """
    Directories currently being visited, by device and inode.

    Pairs are released in strict LIFO order, driven by the marker
    entries on the pending stack.
    """

    def __init__(self) -> None:
        self._active: set[DevIno] = set()
        self._stack: list[DevIno] = []

    def visit(self, identity: DevIno) -> bool:
        """Record IDENTITY as active. Return True if it already was (a loop)."""
        if identity in self._active:
            return True
        self._active.add(identity)
        self._stack.append(identity)
        return False

    def release(self) -> DevIno:
        if not self._stack:
            raise LsProgrammingError("cycle guard released with nothing active")
        identity = self._stack.pop()
        try:
            self._active.remove(identity)
        except KeyError:
            raise LsProgrammingError(
                f"cycle guard lost track of device {identity.dev} inode {identity.ino}"
            ) from None
        return identity

    def assert_empty(self) -> None:
        if self._active or self._stack:
            raise LsProgrammingError(
                f"cycle guard still holds {len(self._active)} directories after listing"
            )


def print_diagnostic(diagnostic: Diagnostic) -> None:
    """Default reporter: print the message to stderr like ls does."""
    sys.stdout.flush()
    print(f"{PROGRAM_NAME}: {diagnostic.message}", file=sys.stderr)


class ListingSession:
    """
    Explicit context for one listing run.

    Attributes:
        config: The listing configuration
        policy: Which metadata entries need
        table: Entries of the directory currently being listed
        cycle_guard: Active directories, only when listing recursively
        pending: LIFO stack of directories still to list
        severity: Worst severity observed so far
        diagnostics: Every problem reported, in order
        collator: Name collator for sorting; None selects locale collation
        token: Pending-signal state polled at safe points
    """

    def __init__(
        self,
        config: ListingConfig,
        *,
        collator: Optional[Collator] = None,
        token: Optional[CancellationToken] = None,
        on_diagnostic: Optional[Callable[[Diagnostic], None]] = print_diagnostic,
        restore_output: Optional[Callable[[], None]] = None,
    ):
        self.config = config
        self.policy = StatPolicy.for_config(config)
        self.table = EntryTable()
        self.cycle_guard: Optional[CycleGuard] = CycleGuard() if config.recursive else None
        self.pending: list[PendingDirectory] = []
        self.severity = Severity.SUCCESS
        self.diagnostics: list[Diagnostic] = []
        self.collator = collator
        self.token = token or CancellationToken()
        self.on_diagnostic = on_diagnostic
        self.restore_output = restore_output or sys.stdout.flush

    def report(
        self, severity: Severity, message: str, path: Optional[bytes] = None
    ) -> None:
        """Record a diagnostic and raise the run's severity to at least SEVERITY."""
        diagnostic = Diagnostic(severity, message, path)
        self.diagnostics.append(diagnostic)
        if severity > self.severity:
            self.severity = severity
        if self.on_diagnostic is not None:
            self.on_diagnostic(diagnostic)

    def report_access_error(
        self, message: str, path: bytes, serious: bool
    ) -> None:
        self.report(Severity.SERIOUS if serious else Severity.MINOR, message, path)

    def process_signals(self) -> None:
        if self.token.pending:
            self.token.process(self.restore_output)

    def width_of(self, entry: Entry) -> int:
        """Display width of ENTRY's name, computed once and cached."""
        if entry.cached_width is None:
            entry.cached_width = name_width(entry.name, self.config.hide_control_chars)
        return entry.cached_width

    def sort_files(self, entries) -> list[Entry]:
        """Return the sorted view of ENTRIES using the session configuration."""
        config = self.config
        debug(3, 1, f"sorting {len(entries)} entries by {config.sort_key.value}")
        return sort_entries(
            entries,
            config.sort_key,
            config.reverse,
            config.dirs_first,
            collator=self.collator,
            width_of=self.width_of,
            on_collation_error=self._collation_failed,
        )

    def _collation_failed(self, error: CollationError) -> None:
        # Recovered by the byte-wise re-sort, so the exit status stays as is
        diagnostic = Diagnostic(Severity.SUCCESS, collation_error_message(error))
        self.diagnostics.append(diagnostic)
        if self.on_diagnostic is not None:
            self.on_diagnostic(diagnostic)
