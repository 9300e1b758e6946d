"""
Example: load feeds into a SQLite store, print the category tree, and
optionally reorder top-level groups through the admin session.

Usage:
    python3 feeds_demo.py --import feeds.json
    python3 feeds_demo.py --move-groups "World,Tech" --secret s3cret
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, List

from rss_reader.feeds import (
    CategoryNode,
    FeedAdminSession,
    FeedRecord,
    RepositorySessionGate,
    SqlAlchemyFeedRepository,
    build_tree,
    normalize_category,
    visible_children,
)


def load_feeds(path: Path) -> List[FeedRecord]:
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    records = [FeedRecord.from_dict(item) for item in data]
    for record in records:
        record.category = normalize_category(record.category)
    return records


def print_nodes(children: Dict[str, CategoryNode], indent: int = 0) -> None:
    for node in visible_children(children):
        print(f"{'  ' * indent}[{node.name}] ({node.count_feeds()})")
        for feed in node.feeds:
            print(f"{'  ' * (indent + 1)}- {feed.custom_title or feed.id}")
        print_nodes(node.children, indent + 1)


async def move_groups(repo: SqlAlchemyFeedRepository, secret: str, groups: List[str]) -> None:
    session = FeedAdminSession(RepositorySessionGate(repo, admin_secret=secret), secret, debounce_seconds=0)
    await session.unlock()
    session.move_groups(groups)
    await session.close()
    if session.last_error:
        raise session.last_error


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", default=Path("./data/feeds.db"), type=Path, help="SQLite DB path")
    parser.add_argument("--import", dest="import_path", type=Path, default=None, help="JSON list of feeds to upsert")
    parser.add_argument("--move-groups", default=None, help="Comma separated top-level group order")
    parser.add_argument("--secret", default="demo-secret", help="Admin secret for the local gate")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    args.db.parent.mkdir(parents=True, exist_ok=True)
    repo = SqlAlchemyFeedRepository(f"sqlite+pysqlite:///{args.db}")

    if args.import_path:
        if not args.import_path.exists():
            raise FileNotFoundError(f"Feed list not found: {args.import_path}")
        for record in load_feeds(args.import_path):
            repo.upsert_feed(record)

    if args.move_groups:
        groups = [name.strip() for name in args.move_groups.split(",") if name.strip()]
        asyncio.run(move_groups(repo, args.secret, groups))

    tree = build_tree(repo.list_feeds())
    print_nodes(tree.root)
    if tree.ungrouped:
        print("[ungrouped]")
        for feed in tree.ungrouped:
            print(f"  - {feed.custom_title or feed.id}")
    print(f"{tree.total_feeds()} feeds")


if __name__ == "__main__":
    main()
