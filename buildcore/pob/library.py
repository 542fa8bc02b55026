"""
Build library - the list of saved builds and which one is active.

Holds entries in memory only; the caller persists ``to_dict()`` wherever it
keeps settings and hands the dict back to ``from_dict()`` on startup.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from buildcore.pob.stored import StoredBuild, now_ms

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_build_id(timestamp: int) -> str:
    """Unique entry id: pob_{epoch ms}_{9 random chars}."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"pob_{timestamp}_{suffix}"


def default_build_name(build: StoredBuild) -> str:
    """'Class Ascendancy', or just the class when there is no ascendancy."""
    class_name = build.class_name or "Unknown"
    if build.ascendancy_name:
        return f"{class_name} {build.ascendancy_name}"
    return class_name


@dataclass
class BuildEntry:
    """A saved build with its display name and bookkeeping."""
    id: str
    name: str
    build: StoredBuild
    is_active: bool = False
    created_at: int = 0
    updated_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "build": self.build.to_dict(),
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildEntry":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            build=StoredBuild.from_dict(data.get("build", {})),
            is_active=data.get("is_active", False),
            created_at=data.get("created_at", 0),
            updated_at=data.get("updated_at", 0),
        )


class BuildLibrary:
    """
    Saved builds with at most one active entry.

    Usage:
        library = BuildLibrary.from_dict(saved_state)
        entry = library.add(stored_build)
        save(library.to_dict())
    """

    def __init__(
        self,
        entries: Optional[List[BuildEntry]] = None,
        active_id: Optional[str] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._entries: List[BuildEntry] = list(entries or [])
        self._clock = clock
        self.active_id: Optional[str] = None
        if active_id is not None and self.get_by_id(active_id) is not None:
            self.active_id = active_id
        for entry in self._entries:
            entry.is_active = entry.id == self.active_id

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, build: StoredBuild, name: Optional[str] = None) -> BuildEntry:
        """Add a build; it becomes the active entry."""
        now = self._clock()
        entry = BuildEntry(
            id=generate_build_id(now),
            name=name or default_build_name(build),
            build=build,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        for existing in self._entries:
            existing.is_active = False
        self._entries.append(entry)
        self.active_id = entry.id
        logger.info(f"Added build '{entry.name}' ({entry.id})")
        return entry

    def delete(self, build_id: str) -> bool:
        """
        Delete an entry.

        Deleting the active entry activates the most recently updated one
        left, if any.

        Returns:
            True if an entry was removed
        """
        remaining = [e for e in self._entries if e.id != build_id]
        if len(remaining) == len(self._entries):
            return False
        self._entries = remaining

        if self.active_id == build_id:
            self.active_id = None
            if remaining:
                newest = max(remaining, key=lambda e: e.updated_at)
                self.active_id = newest.id
            for entry in remaining:
                entry.is_active = entry.id == self.active_id

        logger.info(f"Deleted build {build_id}")
        return True

    def rename(self, build_id: str, new_name: str) -> bool:
        """Rename an entry; a blank name resets it to the default name."""
        entry = self.get_by_id(build_id)
        if entry is None:
            return False
        entry.name = new_name.strip() or default_build_name(entry.build)
        entry.updated_at = self._clock()
        return True

    def set_active(self, build_id: str) -> bool:
        """Make an entry the active one (unknown ids are ignored)."""
        if self.get_by_id(build_id) is None:
            logger.warning(f"Cannot activate unknown build {build_id}")
            return False

        now = self._clock()
        for entry in self._entries:
            entry.is_active = entry.id == build_id
            if entry.is_active:
                entry.updated_at = now
        self.active_id = build_id
        return True

    def get_active(self) -> Optional[StoredBuild]:
        entry = self.get_by_id(self.active_id) if self.active_id else None
        return entry.build if entry is not None else None

    def get_by_id(self, build_id: str) -> Optional[BuildEntry]:
        return next((e for e in self._entries if e.id == build_id), None)

    def all_builds(self) -> List[BuildEntry]:
        """Entries, most recently updated first."""
        return sorted(self._entries, key=lambda e: e.updated_at, reverse=True)

    def name_exists(self, name: str, exclude_id: Optional[str] = None) -> bool:
        """Case-insensitive check for a name already in use."""
        wanted = name.strip().lower()
        return any(
            e.name.lower() == wanted and e.id != exclude_id
            for e in self._entries
        )

    @classmethod
    def migrate_legacy(
        cls,
        legacy_build: StoredBuild,
        clock: Callable[[], int] = now_ms,
    ) -> "BuildLibrary":
        """Wrap a single stored build from the old settings format."""
        now = clock()
        entry = BuildEntry(
            id=generate_build_id(now),
            name=default_build_name(legacy_build),
            build=legacy_build,
            is_active=True,
            created_at=legacy_build.imported_at or now,
            updated_at=now,
        )
        logger.info(f"Migrated legacy build '{entry.name}'")
        return cls([entry], entry.id, clock)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "builds": [e.to_dict() for e in self._entries],
            "active_id": self.active_id,
        }

    @classmethod
    def from_dict(
        cls,
        data: Optional[Dict[str, Any]],
        clock: Callable[[], int] = now_ms,
    ) -> "BuildLibrary":
        """Restore from to_dict() output; None or junk gives an empty library."""
        if not isinstance(data, dict):
            return cls(clock=clock)
        builds = data.get("builds")
        if not isinstance(builds, list):
            builds = []

        entries: List[BuildEntry] = []
        for item in builds:
            if not isinstance(item, dict) or not isinstance(item.get("id"), str) or not item["id"]:
                logger.warning("Skipping saved build without an id")
                continue
            entries.append(BuildEntry.from_dict(item))
        return cls(entries, data.get("active_id"), clock)
