from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from .coordinator import DEFAULT_DEBOUNCE_SECONDS, PersistenceCoordinator
from .errors import AuthError, ValidationError
from .gate import SessionGate
from .models import CategoryTree, CoordinatorState, FeedRecord, OrderMap
from .ordering import ReorderGesture, reorder_child, reorder_leaves, reorder_top_level, update_order_map
from .tree import ROOT_PATH, build_tree, derive_order_map, normalize_category

logger = logging.getLogger(__name__)


class FeedAdminSession:
    """
    Admin view of the feed list: unlocks with the secret, keeps the canonical
    flat list, exposes it as a category tree and turns drag gestures at any
    tree level into persisted reorders.
    """

    def __init__(
        self,
        gate: SessionGate,
        secret: str,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_change: Optional[Callable[[List[FeedRecord]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.gate = gate
        self.secret = secret
        self.debounce_seconds = debounce_seconds
        self.on_change = on_change
        self.on_error = on_error
        self.order_map: OrderMap = {}
        self.coordinator: Optional[PersistenceCoordinator] = None

    @property
    def unlocked(self) -> bool:
        return self.coordinator is not None

    @property
    def flat(self) -> List[FeedRecord]:
        return self._require_unlocked().flat

    @property
    def tree(self) -> CategoryTree:
        return build_tree(self.flat, self.order_map)

    @property
    def state(self) -> CoordinatorState:
        return self._require_unlocked().state

    @property
    def last_error(self) -> Optional[Exception]:
        return self.coordinator.last_error if self.coordinator else None

    async def unlock(self) -> CategoryTree:
        if not self.secret:
            raise AuthError("Admin secret is required")
        canonical = await self.gate.list(self.secret)
        self.coordinator = PersistenceCoordinator(
            self.gate,
            self.secret,
            canonical,
            debounce_seconds=self.debounce_seconds,
            on_change=self.on_change,
            on_error=self._on_rollback,
        )
        self._adopt_order(canonical)
        logger.info("Feed admin unlocked with %s feeds", len(canonical))
        return self.tree

    async def refresh(self) -> None:
        coordinator = self._require_unlocked()
        canonical = await self.gate.list(self.secret)
        coordinator.reset(canonical)
        self._adopt_order(canonical)

    async def close(self) -> None:
        if self.coordinator:
            await self.coordinator.close()

    # region reorder gestures
    def move_groups(self, new_group_order: Sequence[str]) -> None:
        coordinator = self._require_unlocked()
        new_flat = reorder_top_level(coordinator.flat, new_group_order)
        self.order_map = update_order_map(self.order_map, ROOT_PATH, new_group_order)
        coordinator.apply(new_flat)

    def move_children(self, parent_path: str, new_child_order: Sequence[str]) -> None:
        coordinator = self._require_unlocked()
        new_flat = reorder_child(coordinator.flat, parent_path, new_child_order)
        self.order_map = update_order_map(self.order_map, parent_path, new_child_order)
        coordinator.apply(new_flat)

    def move_feeds(self, parent_path: Optional[str], new_feed_ids: Sequence[str]) -> None:
        coordinator = self._require_unlocked()
        coordinator.apply(reorder_leaves(coordinator.flat, parent_path or "", new_feed_ids))

    def gesture(self, parent_path: Optional[str] = None, feeds: bool = False) -> ReorderGesture:
        """
        Handler for one sortable list in the view. With `feeds` it reorders
        the feeds filed directly under `parent_path`; otherwise it reorders
        the groups under `parent_path` (top-level groups when None).
        """
        if feeds:
            return lambda ordered_ids: self.move_feeds(parent_path, ordered_ids)
        if normalize_category(parent_path) is None:
            return lambda ordered_ids: self.move_groups(ordered_ids)
        return lambda ordered_ids: self.move_children(parent_path, ordered_ids)

    # endregion

    # region feed mutations
    async def save_feed(
        self,
        feed_id: str,
        url: str,
        category: Optional[str] = None,
        is_sub: bool = False,
        custom_title: Optional[str] = None,
    ) -> None:
        feed_id = (feed_id or "").strip()
        url = (url or "").strip()
        if not feed_id or not url:
            raise ValidationError("Missing ID or URL")
        self._require_unlocked()
        await self._mutate(
            self.gate.upsert(
                feed_id,
                url,
                normalize_category(category),
                bool(is_sub),
                (custom_title or "").strip() or None,
                self.secret,
            )
        )

    async def delete_feed(self, feed_id: str) -> None:
        if not feed_id:
            raise ValidationError("Missing ID")
        self._require_unlocked()
        await self._mutate(self.gate.remove(feed_id, self.secret))

    async def _mutate(self, call) -> None:
        coordinator = self._require_unlocked()
        # A pending reorder is written first so the refresh below cannot drop it.
        await coordinator.flush()
        try:
            await call
        except AuthError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.warning("Feed mutation failed, resynchronizing: %s", exc)
            await self._resync()
            raise
        await self.refresh()

    async def _resync(self) -> None:
        try:
            await self.refresh()
        except Exception as exc:  # noqa: BLE001
            logger.error("Resynchronizing feeds failed: %s", exc)

    # endregion

    def _adopt_order(self, canonical: Sequence[FeedRecord]) -> None:
        # Sibling order shown in the tree must match the canonical list.
        self.order_map = derive_order_map(build_tree(canonical))

    def _on_rollback(self, exc: Exception) -> None:
        self._adopt_order(self.coordinator.flat)
        if self.on_error:
            self.on_error(exc)

    def _require_unlocked(self) -> PersistenceCoordinator:
        if self.coordinator is None:
            raise AuthError("Feed admin is locked; call unlock() first")
        return self.coordinator
