"""Named counted wait-groups shared by the interpreter and listener threads."""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Optional

from . import bfx_constants as const

LOGGER = logging.getLogger("bfx.waiters")


class WaiterError(RuntimeError):
    """Raised for unknown waiter names or a count that would go negative."""


class WaitGroup:
    """Counter that lets threads block until it drops back to zero."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._count = 0
        self._cv = threading.Condition(threading.Lock())

    @property
    def count(self) -> int:
        with self._cv:
            return self._count

    def add(self, amount: int = 1) -> None:
        with self._cv:
            if self._count + amount < 0:
                raise WaiterError(f"waiter '{self.name}' count would go negative")
            self._count += amount
            if self._count == 0:
                self._cv.notify_all()

    def done(self) -> None:
        self.add(-1)

    def done_if_pending(self) -> bool:
        """Decrement only when the count is positive; report whether it did."""
        with self._cv:
            if self._count <= 0:
                return False
            self._count -= 1
            if self._count == 0:
                self._cv.notify_all()
            return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        with self._cv:
            return self._cv.wait_for(lambda: self._count == 0, timeout=timeout)


class EngineWaiters:
    """The ``program``, ``http-connection`` and ``write`` wait-groups."""

    def __init__(self, names: Iterable[str] = const.WAITER_NAMES) -> None:
        self._groups: Dict[str, WaitGroup] = {name: WaitGroup(name) for name in names}

    def group(self, name: str) -> WaitGroup:
        try:
            return self._groups[name]
        except KeyError:
            raise WaiterError(f"unknown waiter '{name}'") from None

    def add(self, name: str, amount: int = 1) -> None:
        self.group(name).add(amount)

    def done(self, name: str) -> None:
        self.group(name).done()

    def done_if_pending(self, name: str) -> bool:
        return self.group(name).done_if_pending()

    def wait(self, name: str, timeout: Optional[float] = None) -> bool:
        LOGGER.debug("waiting on %s (count=%d)", name, self.group(name).count)
        return self.group(name).wait(timeout)

    def count(self, name: str) -> int:
        return self.group(name).count
