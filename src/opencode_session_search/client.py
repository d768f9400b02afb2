"""HTTP client for the OpenCode server.

Provides:
- OpenCodeClient: async client for the session endpoints
- OpenCodeError / OpenCodeConnectionError: failures raised by the client

Only the read endpoints the index needs are wrapped:

    GET /global/health
    GET /session
    GET /session/{id}/message?limit=N
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar
from urllib.parse import quote

import httpx

from .config import get_default_directory, get_server_url
from .models import Message, Session

if TYPE_CHECKING:
    from collections.abc import Callable

DEFAULT_TIMEOUT = 30.0

T = TypeVar("T")


class OpenCodeError(Exception):
    """Raised when the OpenCode server answers with an error."""

    def __init__(self, code: str, message: str, status: int | None = None):
        super().__init__(message)
        self.code = code
        self.status = status


class OpenCodeConnectionError(OpenCodeError):
    """Raised when the OpenCode server cannot be reached."""

    def __init__(self, message: str):
        super().__init__("connection_error", message)


class OpenCodeClient:
    """
    Async client for a running ``opencode serve`` instance.

    Usage:
        async with OpenCodeClient() as client:
            sessions = await client.list_sessions()
            messages = await client.get_session_messages(sessions[0].id, 20)
    """

    def __init__(
        self,
        base_url: str | None = None,
        directory: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Server URL (uses config default if None)
            directory: Project directory scoping the requests
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use MockTransport)
        """
        self._base_url = (base_url or get_server_url()).rstrip("/")
        self._directory = directory or get_default_directory()
        headers = {"Accept": "application/json"}
        if self._directory:
            headers["x-opencode-directory"] = self._directory
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def directory(self) -> str | None:
        return self._directory

    async def __aenter__(self) -> OpenCodeClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(
        self, path: str, params: dict[str, str] | None = None
    ) -> Any:
        query = dict(params or {})
        if self._directory:
            query["directory"] = self._directory
        try:
            resp = await self._client.get(path, params=query or None)
        except httpx.TransportError as e:
            raise OpenCodeConnectionError(
                f"Cannot reach OpenCode server at {self._base_url}: {e}"
            ) from e
        if resp.status_code >= 400:
            raise OpenCodeError(
                "http_error",
                f"HTTP {resp.status_code}: {resp.text[:200]}",
                status=resp.status_code,
            )
        try:
            return resp.json()
        except ValueError as e:
            raise OpenCodeError(
                "invalid_response", f"Invalid JSON from {path}: {e}"
            ) from e

    async def health(self) -> dict[str, Any]:
        """Return ``{healthy, version}`` from the server."""
        data = await self._get("/global/health")
        if not isinstance(data, dict):
            raise OpenCodeError(
                "invalid_response", "Expected an object from /global/health"
            )
        return data

    async def list_sessions(self) -> list[Session]:
        """List all sessions known to the server (unordered)."""
        data = await self._get("/session")
        return _parse_items("/session", data, Session.from_api)

    async def get_session_messages(
        self, session_id: str, limit: int | None = None
    ) -> list[Message]:
        """
        Fetch a session's messages, oldest first.

        Args:
            session_id: Session to read
            limit: Only the most recent ``limit`` messages

        Returns:
            List of Message ordered most-recent-last

        Raises:
            OpenCodeError: ``invalid_response`` if the body is not a list
                of message objects
        """
        params = {"limit": str(limit)} if limit is not None else None
        path = f"/session/{quote(session_id, safe='')}/message"
        data = await self._get(path, params)
        return _parse_items(path, data, Message.from_api)


def _parse_items(
    path: str, data: Any, parse: Callable[[dict[str, Any]], T]
) -> list[T]:
    """Parse a JSON list response item by item.

    Raises:
        OpenCodeError: ``invalid_response`` for any other shape
    """
    if data is None:
        return []
    if not isinstance(data, list):
        raise OpenCodeError(
            "invalid_response",
            f"Expected a list from {path}, got {type(data).__name__}",
        )
    try:
        return [parse(item) for item in data]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise OpenCodeError(
            "invalid_response", f"Malformed item from {path}: {e!r}"
        ) from e
