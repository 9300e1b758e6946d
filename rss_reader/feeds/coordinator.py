from __future__ import annotations

import asyncio
import logging
from typing import Callable, List, Optional, Sequence, Set

from .gate import SessionGate
from .models import CoordinatorState, FeedRecord

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class PersistenceCoordinator:
    """
    Applies reorder results locally at once and persists them to the store
    after a quiet period.

    Each `apply` replaces the local flat list, cancels the armed timer and
    arms a new one, so a burst of gestures collapses into a single write of
    the final order. Writes always carry the complete id list, which makes a
    late success of an older write harmless: a newer timer will follow with
    the newer order. If a write fails, every optimistic change since the last
    confirmed write is dropped and the canonical order is reloaded.

    Must be driven from one asyncio event loop.
    """

    def __init__(
        self,
        gate: SessionGate,
        secret: str,
        initial: Sequence[FeedRecord] = (),
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_change: Optional[Callable[[List[FeedRecord]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.gate = gate
        self.secret = secret
        self.debounce_seconds = debounce_seconds
        self.on_change = on_change
        self.on_error = on_error
        self.state = CoordinatorState.IDLE
        self.last_error: Optional[Exception] = None

        self._flat: List[FeedRecord] = list(initial)
        self._confirmed: List[FeedRecord] = list(initial)
        self._timer: Optional[asyncio.TimerHandle] = None
        self._writes_in_flight = 0
        self._tasks: Set[asyncio.Task] = set()
        self._settled = asyncio.Event()
        self._settled.set()

    @property
    def flat(self) -> List[FeedRecord]:
        return list(self._flat)

    @property
    def confirmed(self) -> List[FeedRecord]:
        return list(self._confirmed)

    @property
    def armed(self) -> bool:
        return self._timer is not None

    def apply(self, new_flat: Sequence[FeedRecord]) -> None:
        self._set_local(new_flat)
        self._disarm()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer)
        self.state = CoordinatorState.PENDING_WRITE
        self._settled.clear()

    def reset(self, canonical: Sequence[FeedRecord]) -> None:
        """Drop pending work and adopt `canonical` as confirmed state."""
        self._disarm()
        self._confirmed = list(canonical)
        self._set_local(canonical)
        self._settle()

    async def flush(self) -> None:
        """
        Wait for writes already in flight, then write the pending order now
        instead of waiting for the timer.
        """
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        if self._timer is None:
            return
        self._disarm()
        self._writes_in_flight += 1
        await self._write(list(self._flat))

    async def wait_idle(self) -> None:
        await self._settled.wait()

    async def close(self, flush: bool = True) -> None:
        if flush:
            await self.flush()
        else:
            self._disarm()
            self._settle()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _on_timer(self) -> None:
        self._timer = None
        self._writes_in_flight += 1
        task = asyncio.get_running_loop().create_task(self._write(list(self._flat)))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _write(self, snapshot: List[FeedRecord]) -> None:
        self.state = CoordinatorState.RECONCILING
        ids = [record.id for record in snapshot]
        try:
            # The store rejects an empty order; there is nothing to persist.
            if ids:
                await self.gate.reorder(ids, self.secret)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Persisting feed order failed, reloading canonical order: %s", exc)
            await self._rollback(exc)
        else:
            logger.debug("Persisted order of %s feeds", len(ids))
            self._confirmed = snapshot
            self.last_error = None
        finally:
            self._writes_in_flight -= 1
            self._settle()

    async def _rollback(self, exc: Exception) -> None:
        # Any newer optimistic change is dropped along with the failed one.
        self._disarm()
        self.last_error = exc
        try:
            canonical = await self.gate.list(self.secret)
        except Exception as reload_exc:  # noqa: BLE001
            logger.error("Reloading feeds after failed reorder also failed: %s", reload_exc)
            canonical = list(self._confirmed)
        self._confirmed = list(canonical)
        self._set_local(canonical)
        if self.on_error:
            self.on_error(exc)

    def _set_local(self, flat: Sequence[FeedRecord]) -> None:
        self._flat = list(flat)
        if self.on_change:
            self.on_change(list(self._flat))

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _settle(self) -> None:
        if self._timer is not None:
            self.state = CoordinatorState.PENDING_WRITE
        elif self._writes_in_flight:
            self.state = CoordinatorState.RECONCILING
        else:
            self.state = CoordinatorState.IDLE
            self._settled.set()
