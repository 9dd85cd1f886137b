from __future__ import annotations

# Outstanding-work set used by every tuning set.
#
# `start()` registers one unit of work *before* its thread is started, and the
# thread marks it done in a `finally`. `wait()` blocks on the same Condition
# until the count drops to zero, so there is no window where a launched action
# is invisible to the drain step.

import sys
import threading
from typing import Callable

from .errors import LaunchError

Action = Callable[[], None]


class WaitGroup:
    """Run callables on their own threads and wait for all of them to finish."""

    def __init__(self, *, name: str = "tuningset") -> None:
        self.name = name
        self._cond = threading.Condition()
        self._outstanding = 0
        self._launched = 0
        self._completed = 0

    @property
    def launched(self) -> int:
        with self._cond:
            return self._launched

    @property
    def completed(self) -> int:
        with self._cond:
            return self._completed

    @property
    def outstanding(self) -> int:
        with self._cond:
            return self._outstanding

    def start(self, fn: Action) -> None:
        """Register `fn` and run it concurrently.

        Raises:
            LaunchError: if the interpreter refuses to start another thread.
        """
        with self._cond:
            self._outstanding += 1
            self._launched += 1
            seq = self._launched

        t = threading.Thread(target=self._run, args=(fn, seq), name=f"{self.name}-{seq}", daemon=True)
        try:
            t.start()
        except RuntimeError as e:
            # Roll back so a later wait() does not block on work that never ran.
            with self._cond:
                self._outstanding -= 1
                self._launched -= 1
                self._cond.notify_all()
            raise LaunchError(f"could not start action #{seq}: {e}") from e

    def wait(self) -> None:
        """Block until every started callable has returned."""
        with self._cond:
            while self._outstanding > 0:
                self._cond.wait()

    def _run(self, fn: Action, seq: int) -> None:
        try:
            fn()
        except Exception as e:
            # Actions have no error channel; report and keep siblings running.
            print(f"[{self.name}] action #{seq} failed: {e!r}", file=sys.stderr)
        finally:
            with self._cond:
                self._outstanding -= 1
                self._completed += 1
                self._cond.notify_all()
