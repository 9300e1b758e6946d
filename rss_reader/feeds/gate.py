from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from .errors import (
    AuthError,
    FeedNotFoundError,
    SecretNotConfiguredError,
    TransientNetworkError,
    ValidationError,
)
from .models import FeedRecord
from .repository import FeedRepository
from .security import ADMIN_SECRET_HEADER, validate_admin_secret

logger = logging.getLogger(__name__)


class SessionGate(Protocol):
    """
    Admin call contract of the feed store. Every call is authorized by the
    secret it carries; `reorder` takes the complete desired order.
    """

    async def list(self, secret: str) -> List[FeedRecord]:
        ...

    async def upsert(
        self,
        feed_id: str,
        url: str,
        category: Optional[str],
        is_sub: bool,
        custom_title: Optional[str],
        secret: str,
    ) -> None:
        ...

    async def remove(self, feed_id: str, secret: str) -> None:
        ...

    async def reorder(self, ids: Sequence[str], secret: str) -> None:
        ...


class RepositorySessionGate:
    """
    In-process gate that authorizes calls against the configured admin
    secret and forwards them to a repository.
    """

    def __init__(self, repository: FeedRepository, admin_secret: Optional[str]):
        self.repo = repository
        self.admin_secret = admin_secret

    async def list(self, secret: str) -> List[FeedRecord]:
        validate_admin_secret(secret, self.admin_secret)
        return self.repo.list_feeds()

    async def upsert(
        self,
        feed_id: str,
        url: str,
        category: Optional[str],
        is_sub: bool,
        custom_title: Optional[str],
        secret: str,
    ) -> None:
        validate_admin_secret(secret, self.admin_secret)
        existing = self.repo.get_feed(feed_id) if feed_id else None
        record = FeedRecord(
            id=feed_id,
            url=url,
            category=category,
            custom_title=custom_title,
            is_sub=is_sub,
            allowed_media_hosts=existing.allowed_media_hosts if existing else [],
        )
        self.repo.upsert_feed(record)

    async def remove(self, feed_id: str, secret: str) -> None:
        validate_admin_secret(secret, self.admin_secret)
        if not feed_id:
            raise ValidationError("Missing ID")
        self.repo.delete_feed(feed_id)

    async def reorder(self, ids: Sequence[str], secret: str) -> None:
        validate_admin_secret(secret, self.admin_secret)
        self.repo.reorder(list(ids))


class HttpSessionGate:
    """
    Gate backed by the feeds HTTP API. Transport failures and 5xx responses
    become `TransientNetworkError`; there is no request timeout and no retry.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=None)
        self._owns_client = client is None

    async def __aenter__(self) -> "HttpSessionGate":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def list(self, secret: str) -> List[FeedRecord]:
        data = await self._post("/feeds/admin", secret)
        return [FeedRecord.from_dict(item) for item in data]

    async def upsert(
        self,
        feed_id: str,
        url: str,
        category: Optional[str],
        is_sub: bool,
        custom_title: Optional[str],
        secret: str,
    ) -> None:
        payload = {
            "id": feed_id,
            "url": url,
            "category": category,
            "isSub": is_sub,
            "customTitle": custom_title,
        }
        await self._post("/feeds/upsert", secret, payload)

    async def remove(self, feed_id: str, secret: str) -> None:
        await self._post("/feeds/delete", secret, {"id": feed_id})

    async def reorder(self, ids: Sequence[str], secret: str) -> None:
        await self._post("/feeds/reorder", secret, {"ids": list(ids)})

    async def _post(self, path: str, secret: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        headers = {ADMIN_SECRET_HEADER: secret or ""}
        try:
            response = await self.client.post(path, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning("Request to %s failed: %s", path, exc)
            raise TransientNetworkError(f"Request to {path} failed: {exc}") from exc
        self._raise_for_status(response)
        return response.json()

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.is_success:
            return
        message = self._error_message(response)
        status = response.status_code
        if status == 401:
            raise AuthError(message)
        if status == 503:
            raise SecretNotConfiguredError(message)
        if status == 404:
            raise FeedNotFoundError(message)
        if status in (400, 422):
            raise ValidationError(message)
        raise TransientNetworkError(message)

    def _error_message(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"HTTP {response.status_code}"
        if isinstance(body, dict):
            detail = body.get("detail") or body.get("error")
            if isinstance(detail, str):
                return detail
        return f"HTTP {response.status_code}"
