from __future__ import annotations

from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException

from rss_reader.feeds import (
    AuthError,
    FeedRepository,
    FeedsConfig,
    SecretNotConfiguredError,
    SqlAlchemyFeedRepository,
    validate_admin_secret,
)


@lru_cache(maxsize=1)
def get_config() -> FeedsConfig:
    return FeedsConfig.from_env()


@lru_cache(maxsize=1)
def get_repo() -> FeedRepository:
    return SqlAlchemyFeedRepository(get_config().database_url)


def require_admin(
    x_admin_secret: Optional[str] = Header(default=None),
    config: FeedsConfig = Depends(get_config),
) -> None:
    try:
        validate_admin_secret(x_admin_secret, config.admin_secret)
    except SecretNotConfiguredError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc))
