"""Session and message shapes returned by the OpenCode server.

Only the fields the search index needs are kept. Everything is parsed
from the JSON the server returns for ``GET /session`` and
``GET /session/{id}/message``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Session:
    """A conversation thread owned by the OpenCode server."""

    id: str
    title: str = ""
    directory: str = ""
    updated_at: int = 0
    created_at: int = 0
    project_id: str = ""
    version: str = ""
    share_url: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Session:
        """
        Build a Session from the server's JSON shape.

        Args:
            data: ``{id, projectID, directory, title, version,
                time: {created, updated}, share?: {url}}``

        Returns:
            Session with missing strings normalized to ""
        """
        time_info = data.get("time") or {}
        share = data.get("share") or {}
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            directory=data.get("directory") or "",
            updated_at=int(time_info.get("updated") or 0),
            created_at=int(time_info.get("created") or 0),
            project_id=data.get("projectID") or "",
            version=data.get("version") or "",
            share_url=share.get("url"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain dict for JSON responses (CLI and MCP tools)."""
        return {
            "id": self.id,
            "title": self.title,
            "directory": self.directory,
            "updated": self.updated_at,
            "created": self.created_at,
            "share_url": self.share_url,
        }


@dataclass(frozen=True)
class MessagePart:
    """One segment of a message (text, tool call, file, ...)."""

    type: str
    text: str | None = None

    @property
    def is_text(self) -> bool:
        return self.type == "text" and bool(self.text)


@dataclass(frozen=True)
class Message:
    """A single message with its ordered parts."""

    id: str
    session_id: str
    role: str
    parts: list[MessagePart] = field(default_factory=list)

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Message:
        info = data.get("info") or {}
        parts = [
            MessagePart(type=p.get("type", ""), text=_text_of(p))
            for p in data.get("parts") or []
            if isinstance(p, dict)
        ]
        return cls(
            id=info.get("id", ""),
            session_id=info.get("sessionID", ""),
            role=info.get("role", ""),
            parts=parts,
        )


def _text_of(part: dict[str, Any]) -> str | None:
    text = part.get("text")
    return text if isinstance(text, str) else None
