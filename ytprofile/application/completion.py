import asyncio
import logging
from typing import Hashable, Iterable, Optional, Set

from ytprofile.domain.entities import Profile
from ytprofile.domain.ports import ProfileCallback


logger = logging.getLogger(__name__)


class AllOfLatch:
    """Settles once every registered key completed, or on the first failure.

    Must be created inside a running event loop. Completions and failures that
    arrive after the latch settled are ignored and reported as ``False``.
    """

    def __init__(self, keys: Iterable[Hashable]):
        self._pending: Set[Hashable] = set(keys)
        self._total = len(self._pending)
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        if not self._pending:
            self._future.set_result(None)

    @property
    def settled(self) -> bool:
        return self._future.done()

    @property
    def remaining(self) -> int:
        return len(self._pending)

    @property
    def total(self) -> int:
        return self._total

    def complete(self, key: Hashable) -> bool:
        """Mark ``key`` as done. Returns False if the latch already settled."""
        if self.settled:
            return False
        if key not in self._pending:
            raise KeyError(f"Unknown or already completed key: {key!r}")
        self._pending.discard(key)
        if not self._pending:
            self._future.set_result(None)
        return True

    def fail(self, error: BaseException) -> bool:
        """Settle with ``error``. Returns False if the latch already settled."""
        if self.settled:
            return False
        self._future.set_exception(error)
        return True

    async def wait(self) -> None:
        await self._future


class TerminalSignal:
    """Delivers a single success-or-failure notification to a ``done`` callback."""

    def __init__(self, done: ProfileCallback):
        self._done = done
        self._fired = False

    @property
    def fired(self) -> bool:
        return self._fired

    def success(self, profile: Profile) -> bool:
        return self._fire(None, profile)

    def failure(self, error: BaseException) -> bool:
        return self._fire(error, None)

    def _fire(self, error: Optional[BaseException], profile: Optional[Profile]) -> bool:
        if self._fired:
            kind = "failure" if error is not None else "success"
            logger.debug(f"Terminal signal already delivered; dropping late {kind}")
            return False
        self._fired = True
        self._done(error, profile)
        return True
