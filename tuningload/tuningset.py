from __future__ import annotations

# Common contract for all load shapes.
#
# A tuning set only decides *when* each action is launched. Every variant:
# - consumes the actions in input order,
# - launches each one exactly once on its own thread (via WaitGroup),
# - returns only after every launched action has returned.

import abc
import random
import time
from typing import Callable, Sequence

from .wait_group import Action, WaitGroup

Clock = Callable[[], float]
Sleep = Callable[[float], None]


def sleep_until(deadline: float, *, clock: Clock, sleep: Sleep) -> None:
    """Sleep until `deadline` on `clock`; no-op if it has already passed."""
    remaining = deadline - clock()
    if remaining > 0:
        sleep(remaining)


class TuningSet(abc.ABC):
    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = time.sleep,
    ) -> None:
        self.rng = rng
        self.clock = clock
        self.sleep = sleep

    @abc.abstractmethod
    def execute(self, actions: Sequence[Action]) -> None:
        """Launch every action according to the load shape and wait for all of them."""

    def _new_group(self) -> WaitGroup:
        return WaitGroup(name=type(self).__name__)
