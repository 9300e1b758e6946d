from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence

from .models import CATEGORY_SEPARATOR, CategoryNode, CategoryTree, FeedRecord, OrderMap

ROOT_PATH = ""


def split_category(category: Optional[str]) -> List[str]:
    if not category:
        return []
    segments = (segment.strip() for segment in category.split(CATEGORY_SEPARATOR))
    return [segment for segment in segments if segment]


def normalize_category(raw: Optional[str]) -> Optional[str]:
    """
    Collapse empty segments and surrounding separators. The store keeps
    whatever it is given, so callers normalize before persisting.
    "A//B" -> "A/B", "/A/" -> "A", "" or "/" -> None.
    """
    segments = split_category(raw)
    return CATEGORY_SEPARATOR.join(segments) if segments else None


def order_child_names(names: Iterable[str], known_order: Sequence[str]) -> List[str]:
    """
    Known names first, in `known_order`; names never ordered before follow,
    sorted alphabetically.
    """
    present = list(names)
    present_set = set(present)
    ordered: List[str] = []
    for name in known_order:
        if name in present_set and name not in ordered:
            ordered.append(name)
    seen = set(ordered)
    ordered.extend(sorted(name for name in present if name not in seen))
    return ordered


def build_tree(flat: Iterable[FeedRecord], order_map: Optional[OrderMap] = None) -> CategoryTree:
    """
    Single pass over the flat list. Node discovery order and every node's
    feed order follow the flat order; `order_map` only overrides sibling
    order for parents that have an entry in it.
    """
    tree = CategoryTree()
    for record in flat:
        segments = split_category(record.category)
        if not segments:
            tree.ungrouped.append(record)
            continue

        level = tree.root
        node: Optional[CategoryNode] = None
        for depth, segment in enumerate(segments):
            node = level.get(segment)
            if node is None:
                node = CategoryNode(
                    name=segment,
                    full_path=CATEGORY_SEPARATOR.join(segments[: depth + 1]),
                    depth=depth,
                )
                level[segment] = node
            level = node.children
        node.feeds.append(record)

    if order_map:
        apply_order_map(tree, order_map)
    return tree


def apply_order_map(tree: CategoryTree, order_map: OrderMap) -> None:
    tree.root = _reorder_siblings(tree.root, order_map.get(ROOT_PATH))
    stack = list(tree.root.values())
    while stack:
        node = stack.pop()
        node.children = _reorder_siblings(node.children, order_map.get(node.full_path))
        stack.extend(node.children.values())


def _reorder_siblings(
    children: Dict[str, CategoryNode], known_order: Optional[Sequence[str]]
) -> Dict[str, CategoryNode]:
    if known_order is None:
        return children
    return {name: children[name] for name in order_child_names(children.keys(), known_order)}


def flatten_tree(tree: CategoryTree) -> List[FeedRecord]:
    flat: List[FeedRecord] = []
    for node in tree.root.values():
        flat.extend(node.iter_feeds())
    flat.extend(tree.ungrouped)
    return flat


def derive_order_map(tree: CategoryTree) -> OrderMap:
    order_map: OrderMap = {ROOT_PATH: list(tree.root.keys())}
    stack = list(tree.root.values())
    while stack:
        node = stack.pop()
        if node.children:
            order_map[node.full_path] = list(node.children.keys())
            stack.extend(node.children.values())
    return order_map


def visible_children(children: Dict[str, CategoryNode]) -> List[CategoryNode]:
    # Empty leaves are legal but never rendered.
    return [node for node in children.values() if not node.is_empty()]
