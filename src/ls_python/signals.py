# Ls-Python - Python reimplementation of the GNU ls listing engine
# Copyright (C) 2025 Istvan Sarandi
# SPDX-License-Identifier: GPL-3.0-or-later

"""
Cooperative handling of asynchronous signals.

Signal handlers only record what arrived in a CancellationToken. The
listing engine polls the token at safe points (after each entry read,
after sorting, after printing) and acts on it there: flush output, then
either stop the process or re-deliver the terminating signal with its
default disposition.
"""

from __future__ import annotations

import signal
from typing import Callable, Optional

from ls_python.util import debug


def _catchable_signals() -> list[signal.Signals]:
    names = [
        "SIGTSTP",
        "SIGALRM",
        "SIGHUP",
        "SIGINT",
        "SIGPIPE",
        "SIGQUIT",
        "SIGTERM",
        "SIGPOLL",
        "SIGPROF",
        "SIGVTALRM",
        "SIGXCPU",
        "SIGXFSZ",
    ]
    return [getattr(signal, n) for n in names if hasattr(signal, n)]


class CancellationToken:
    """
    Pending-signal state shared between the handlers and the engine.

    Attributes:
        interrupt_signal: First terminating signal received, 0 if none
        stop_signal_count: Number of stop requests not yet acted upon
    """

    def __init__(self) -> None:
        self.interrupt_signal = 0
        self.stop_signal_count = 0

    def request_interrupt(self, signum: int) -> None:
        if not self.interrupt_signal:
            self.interrupt_signal = signum

    def request_stop(self) -> None:
        if not self.interrupt_signal:
            self.stop_signal_count += 1

    @property
    def pending(self) -> bool:
        return bool(self.interrupt_signal or self.stop_signal_count)

    def process(
        self,
        restore_output: Callable[[], None],
        deliver: Optional[Callable[[int], None]] = None,
    ) -> None:
        """
        Act on every pending request.

        RESTORE_OUTPUT flushes buffered output and resets any terminal
        state; it runs before each signal is delivered. Stops are handled
        first, one SIGSTOP per request; an interrupt is re-raised with
        the default disposition, which normally ends the process.
        """
        deliver = deliver or deliver_signal
        while self.pending:
            restore_output()
            if self.stop_signal_count:
                self.stop_signal_count -= 1
                debug(2, 0, "suspending on stop request")
                deliver(signal.SIGSTOP)
            else:
                sig = self.interrupt_signal
                self.interrupt_signal = 0
                debug(2, 0, f"re-delivering signal {sig}")
                deliver(sig)


def deliver_signal(sig: int) -> None:
    """Raise SIG in this process, with its default disposition unless it is SIGSTOP."""
    if sig != signal.SIGSTOP:
        signal.signal(sig, signal.SIG_DFL)
    signal.raise_signal(sig)


class SignalAdapter:
    """
    Install minimal handlers that feed a CancellationToken.

    Signals whose disposition is already "ignore" are left alone, and
    restore() puts every previous handler back.
    """

    def __init__(self, token: CancellationToken):
        self.token = token
        self._previous: dict[int, object] = {}

    def install(self) -> None:
        for sig in _catchable_signals():
            try:
                current = signal.getsignal(sig)
            except ValueError:
                continue
            if current is signal.SIG_IGN:
                continue
            handler = self._stop_handler if sig == getattr(signal, "SIGTSTP", None) else self._handler
            try:
                self._previous[sig] = signal.signal(sig, handler)
            except (OSError, ValueError):
                # Not the main thread, or a signal the platform won't let us catch
                continue

    def restore(self) -> None:
        while self._previous:
            sig, handler = self._previous.popitem()
            signal.signal(sig, handler)

    def _handler(self, signum: int, frame: Optional[object]) -> None:
        self.token.request_interrupt(signum)

    def _stop_handler(self, signum: int, frame: Optional[object]) -> None:
        self.token.request_stop()

    def __enter__(self) -> SignalAdapter:
        self.install()
        return self

    def __exit__(self, *exc_info) -> None:
        self.restore()
