"""Holding area for drafts waiting on references that do not exist yet."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
import hashlib
import threading
from typing import Any, Dict, FrozenSet, Iterable, List, Optional


@dataclass(frozen=True)
class UnresolvedRecord:
    draft_key: str
    missing_keys: FrozenSet[str]
    draft: Any
    queued_at: str

    @classmethod
    def queue(cls, draft_key: str, missing_keys: Iterable[str], draft: Any) -> "UnresolvedRecord":
        return cls(
            draft_key=draft_key,
            missing_keys=frozenset(missing_keys),
            draft=draft,
            queued_at=datetime.now(timezone.utc).isoformat(),
        )

    def without(self, resolved_keys: Iterable[str]) -> "UnresolvedRecord":
        return replace(self, missing_keys=self.missing_keys - set(resolved_keys))


class InMemoryUnresolvedStore:
    def __init__(self) -> None:
        self._records: Dict[str, UnresolvedRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    async def fetch(self, draft_keys: Iterable[str]) -> List[UnresolvedRecord]:
        with self._lock:
            return [self._records[key] for key in draft_keys if key in self._records]

    async def save(self, record: UnresolvedRecord) -> UnresolvedRecord:
        with self._lock:
            self._records[record.draft_key] = record
        return record

    async def delete(self, draft_key: str) -> Optional[UnresolvedRecord]:
        with self._lock:
            return self._records.pop(draft_key, None)


class BackendUnresolvedStore:
    """Keeps waiting drafts as custom objects so a crashed run can be inspected."""

    def __init__(self, client, kind, logger, container: Optional[str] = None) -> None:
        self.client = client
        self.kind = kind
        self.logger = logger
        self.container = container or f"commerce-sync-unresolved-{kind.name}"

    async def fetch(self, draft_keys: Iterable[str]) -> List[UnresolvedRecord]:
        keys = list(draft_keys)
        if not keys:
            return []
        objects = await self.client.fetch_custom_objects(self.container, [_object_key(key) for key in keys])
        return [self._from_value(obj["value"]) for obj in objects]

    async def save(self, record: UnresolvedRecord) -> UnresolvedRecord:
        value = {
            "key": record.draft_key,
            "missingReferencedKeys": sorted(record.missing_keys),
            "draft": self.kind.draft_to_dict(record.draft),
            "queuedAt": record.queued_at,
        }
        await self.client.save_custom_object(self.container, _object_key(record.draft_key), value)
        self.logger.info(
            "unresolved_saved",
            extra={"event": "unresolved_saved", "draftKey": record.draft_key, "missingKeys": sorted(record.missing_keys)},
        )
        return record

    async def delete(self, draft_key: str) -> Optional[UnresolvedRecord]:
        deleted = await self.client.delete_custom_object(self.container, _object_key(draft_key))
        if deleted is None:
            return None
        return self._from_value(deleted["value"])

    def _from_value(self, value: Dict[str, Any]) -> UnresolvedRecord:
        return UnresolvedRecord(
            draft_key=value["key"],
            missing_keys=frozenset(value.get("missingReferencedKeys") or []),
            draft=self.kind.draft_from_dict(value["draft"]),
            queued_at=value.get("queuedAt", ""),
        )


def _object_key(draft_key: str) -> str:
    return hashlib.sha1(draft_key.encode("utf-8")).hexdigest()
