from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_DATABASE_URL = "sqlite+pysqlite:///./data/feeds.db"


@dataclass
class FeedsConfig:
    database_url: str = DEFAULT_DATABASE_URL
    admin_secret: Optional[str] = None
    reorder_debounce_ms: int = 500

    @property
    def reorder_debounce_seconds(self) -> float:
        return self.reorder_debounce_ms / 1000.0

    @classmethod
    def from_env(cls) -> "FeedsConfig":
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            admin_secret=os.getenv("ADMIN_SECRET") or None,
            reorder_debounce_ms=int(os.getenv("REORDER_DEBOUNCE_MS", "500")),
        )
