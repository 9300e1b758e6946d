"""
Feed administration exports.
"""

from .config import FeedsConfig
from .coordinator import DEFAULT_DEBOUNCE_SECONDS, PersistenceCoordinator
from .errors import (
    AuthError,
    FeedAdminError,
    FeedNotFoundError,
    SecretNotConfiguredError,
    TransientNetworkError,
    ValidationError,
)
from .gate import HttpSessionGate, RepositorySessionGate, SessionGate
from .models import CategoryNode, CategoryTree, CoordinatorState, FeedRecord, OrderMap
from .ordering import ReorderGesture, reorder_child, reorder_leaves, reorder_top_level, update_order_map
from .repository import FeedRepository, InMemoryFeedRepository, SqlAlchemyFeedRepository
from .security import ADMIN_SECRET_HEADER, validate_admin_secret
from .session import FeedAdminSession
from .tree import (
    build_tree,
    derive_order_map,
    flatten_tree,
    normalize_category,
    order_child_names,
    split_category,
    visible_children,
)

__all__ = [
    "ADMIN_SECRET_HEADER",
    "AuthError",
    "CategoryNode",
    "CategoryTree",
    "CoordinatorState",
    "DEFAULT_DEBOUNCE_SECONDS",
    "FeedAdminError",
    "FeedAdminSession",
    "FeedNotFoundError",
    "FeedRecord",
    "FeedRepository",
    "FeedsConfig",
    "HttpSessionGate",
    "InMemoryFeedRepository",
    "OrderMap",
    "PersistenceCoordinator",
    "ReorderGesture",
    "RepositorySessionGate",
    "SecretNotConfiguredError",
    "SessionGate",
    "SqlAlchemyFeedRepository",
    "TransientNetworkError",
    "ValidationError",
    "build_tree",
    "derive_order_map",
    "flatten_tree",
    "normalize_category",
    "order_child_names",
    "reorder_child",
    "reorder_leaves",
    "reorder_top_level",
    "split_category",
    "update_order_map",
    "validate_admin_secret",
    "visible_children",
]
