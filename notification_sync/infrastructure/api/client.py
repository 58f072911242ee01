"""Async HTTP client for the notifications persistence API."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from notification_sync.config import Settings, get_settings
from notification_sync.domain.entities import Notification
from notification_sync.infrastructure.session import SessionProvider

from .schemas import NotificationListResponse, UnreadCountResponse

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "success"


class ApiRequestError(RuntimeError):
    """The persistence API call failed or answered with a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class NotificationPage:
    """Result of the bulk fetch."""

    notifications: tuple[Notification, ...]
    unread_count: int | None


class NotificationApiClient:
    """Thin wrapper over ``httpx.AsyncClient`` for the notification endpoints."""

    def __init__(
        self,
        session: SessionProvider,
        *,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._session = session
        self._page_size = settings.page_size
        self._client = httpx.AsyncClient(
            base_url=settings.api_base_url.rstrip("/"),
            timeout=settings.request_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_notifications(self) -> NotificationPage:
        """Fetch the newest page of notifications for the signed-in user."""

        body = await self._request(
            "GET", "/notifications", params={"page": 1, "limit": self._page_size}
        )
        try:
            parsed = NotificationListResponse.model_validate(body)
        except ValidationError as exc:
            raise ApiRequestError(f"Malformed notification list: {exc}") from exc
        return NotificationPage(
            notifications=tuple(item.to_entity() for item in parsed.data.notifications),
            unread_count=parsed.data.unread_count,
        )

    async def get_unread_count(self) -> int:
        body = await self._request("GET", "/notifications/unread-count")
        try:
            return UnreadCountResponse.model_validate(body).data.count
        except ValidationError as exc:
            raise ApiRequestError(f"Malformed unread count: {exc}") from exc

    async def mark_read(self, notification_id: str) -> None:
        await self._request("PUT", f"/notifications/{quote(notification_id, safe='')}/read")

    async def mark_all_read(self) -> None:
        await self._request("PUT", "/notifications/read-all")

    async def delete(self, notification_id: str) -> None:
        await self._request("DELETE", f"/notifications/{quote(notification_id, safe='')}")

    def _headers(self) -> dict[str, str]:
        try:
            token = self._session.get_access_token()
        except Exception as exc:
            logger.error("Could not obtain an access token: %s", exc)
            raise ApiRequestError(f"Failed to authenticate: {exc}") from exc
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {token}",
        }

    async def _request(
        self, method: str, path: str, *, params: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        headers = self._headers()
        logger.debug("Calling %s %s", method, path)
        try:
            response = await self._client.request(
                method, path, params=params, headers=headers
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s timed out", method, path)
            raise ApiRequestError(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise ApiRequestError(f"{method} {path} failed: {exc}") from exc

        if response.is_error:
            logger.warning(
                "%s %s responded with status %s", method, path, response.status_code
            )
            raise ApiRequestError(
                f"{method} {path} responded with status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise ApiRequestError(
                f"{method} {path} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc

        status = body.get("status") if isinstance(body, dict) else None
        if status != SUCCESS_STATUS:
            message = body.get("message") if isinstance(body, dict) else None
            logger.warning("%s %s returned status %r: %s", method, path, status, message)
            raise ApiRequestError(
                message or f"{method} {path} returned status {status!r}",
                status_code=response.status_code,
            )
        return body


__all__ = ["ApiRequestError", "NotificationApiClient", "NotificationPage"]
