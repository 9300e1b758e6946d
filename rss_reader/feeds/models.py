from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

CATEGORY_SEPARATOR = "/"

# parent path -> ordered immediate child names; "" is the root
OrderMap = Dict[str, List[str]]


class CoordinatorState(str, Enum):
    IDLE = "idle"
    PENDING_WRITE = "pending_write"
    RECONCILING = "reconciling"


@dataclass
class FeedRecord:
    id: str
    url: str
    category: Optional[str] = None
    custom_title: Optional[str] = None
    is_sub: bool = False
    allowed_media_hosts: List[str] = field(default_factory=list)
    display_order: int = 0
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedRecord":
        """
        Accepts the camelCase payloads the browser client sends as well as
        snake_case dicts produced by `to_admin_dict`.
        """
        custom_title = data.get("customTitle", data.get("custom_title"))
        is_sub = data.get("isSub", data.get("is_sub", False))
        hosts = data.get("allowedMediaHosts", data.get("allowed_media_hosts")) or []
        return cls(
            id=str(data.get("id") or ""),
            url=str(data.get("url") or ""),
            category=data.get("category"),
            custom_title=custom_title or None,
            is_sub=bool(is_sub),
            allowed_media_hosts=list(hosts),
            display_order=int(data.get("displayOrder", data.get("display_order", 0)) or 0),
        )

    def to_public_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "isSub": self.is_sub,
            "customTitle": self.custom_title or "",
            "canProxyImages": True,
        }

    def to_admin_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "category": self.category,
            "isSub": self.is_sub,
            "customTitle": self.custom_title or "",
            "allowedMediaHosts": list(self.allowed_media_hosts),
            "displayOrder": self.display_order,
        }


@dataclass
class CategoryNode:
    name: str
    full_path: str
    depth: int = 0
    feeds: List[FeedRecord] = field(default_factory=list)
    children: Dict[str, "CategoryNode"] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.feeds and not self.children

    def iter_feeds(self) -> Iterator[FeedRecord]:
        """Depth-first: own feeds, then each child's subtree in child order."""
        yield from self.feeds
        for child in self.children.values():
            yield from child.iter_feeds()

    def count_feeds(self) -> int:
        return len(self.feeds) + sum(child.count_feeds() for child in self.children.values())

    def to_dict(self, include_empty: bool = False) -> Dict[str, Any]:
        return {
            "name": self.name,
            "path": self.full_path,
            "depth": self.depth,
            "feeds": [f.to_public_dict() for f in self.feeds],
            "children": [
                child.to_dict(include_empty=include_empty)
                for child in self.children.values()
                if include_empty or not child.is_empty()
            ],
        }


@dataclass
class CategoryTree:
    root: Dict[str, CategoryNode] = field(default_factory=dict)
    ungrouped: List[FeedRecord] = field(default_factory=list)

    def top_level_names(self) -> List[str]:
        return list(self.root.keys())

    def node_at(self, path: str) -> Optional[CategoryNode]:
        parts = [p.strip() for p in (path or "").split(CATEGORY_SEPARATOR) if p.strip()]
        if not parts:
            return None
        current = self.root
        node: Optional[CategoryNode] = None
        for part in parts:
            node = current.get(part)
            if node is None:
                return None
            current = node.children
        return node

    def total_feeds(self) -> int:
        return len(self.ungrouped) + sum(node.count_feeds() for node in self.root.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "groups": [node.to_dict() for node in self.root.values() if not node.is_empty()],
            "ungrouped": [f.to_public_dict() for f in self.ungrouped],
        }
