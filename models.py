"""Data models for photoframe."""
from datetime import datetime, timezone
from typing import Any, Optional

from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso(value: Optional[datetime]) -> Optional[str]:
    """Format a timestamp the way the accounts file stores it."""
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class Image(SQLModel):
    """One media file under the content root."""
    id: str = Field(description="Path relative to the content root, '/'-separated")
    relative_path: str = Field(description="Relative path with native separators")
    folder: str = Field(default="", description="Parent directory relative to the content root")
    path: str = Field(description="Absolute path")

    @property
    def filename(self) -> str:
        return self.id.rsplit("/", 1)[-1]


class AccessAccount(SQLModel):
    """PIN-gated guest profile restricted to a set of folders."""
    id: str
    name: str
    pin: str
    assigned_folders: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    last_accessed: Optional[datetime] = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "pin": self.pin,
            "assignedFolders": list(self.assigned_folders),
            "createdAt": iso(self.created_at),
            "lastAccessed": iso(self.last_accessed),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "AccessAccount":
        return cls(
            id=str(record["id"]),
            name=str(record.get("name", "")),
            pin=str(record.get("pin", "")),
            assigned_folders=list(record.get("assignedFolders") or []),
            created_at=parse_iso(record.get("createdAt")) or utc_now(),
            last_accessed=parse_iso(record.get("lastAccessed")),
        )

    def session_info(self) -> dict[str, Any]:
        """Subset stored in the session and returned after PIN login."""
        return {"id": self.id, "name": self.name, "assignedFolders": list(self.assigned_folders)}
