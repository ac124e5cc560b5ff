"""Batch synchronization of drafts against the backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .diff_engine import DiffContext
from .errors import ConflictError, DeferredDependencyError, DuplicateKeyError, ReferenceResolutionError, SyncError
from .key_cache import KeyIdCache
from .kinds import KINDS_BY_TYPE_ID, EntityKind
from .matcher import match, split_duplicates
from .models import ExistingEntity, UpdateAction
from .options import SyncOptions
from .references import ReferenceResolver
from .sync_statistics import SyncStatistics
from .unresolved_store import InMemoryUnresolvedStore, UnresolvedRecord
from .validator import is_empty, validate_batch


MAX_UPDATE_ATTEMPTS = 2


class SyncEngine:
    """Runs one kind of drafts through validate, resolve, match, diff and write.

    Batches run one after another; drafts inside a batch run concurrently.
    State such as the key cache and statistics belongs to a single call of
    ``sync``.
    """

    def __init__(
        self,
        kind: EntityKind,
        backend,
        options: Optional[SyncOptions] = None,
        logger=None,
        unresolved_store=None,
    ) -> None:
        self.kind = kind
        self.backend = backend
        self.options = options or SyncOptions()
        self.logger = logger or logging.getLogger("commerce_sync")
        self.unresolved_store = unresolved_store or InMemoryUnresolvedStore()
        self._reset()

    def _reset(self) -> None:
        self.statistics = SyncStatistics(self.kind.name)
        self.caches = self._build_caches()
        self.resolver = ReferenceResolver(self.caches, self.options.allow_uuid_keys)
        self._metadata: Dict[str, Any] = {}
        self._input_keys: Set[str] = set()
        self._created_keys: Set[str] = set()

    async def sync(self, drafts: Iterable[Any]) -> SyncStatistics:
        drafts = list(drafts)
        self._reset()
        self._input_keys = {draft.key for draft in drafts if draft is not None and not is_empty(draft.key)}
        self.statistics.start_timer()
        self.logger.info(
            "sync_started",
            extra={
                "event": "sync_started",
                "kind": self.kind.name,
                "draftCount": len(drafts),
                "batchSize": self.options.batch_size,
            },
        )

        for index, batch in enumerate(_batches(drafts, self.options.batch_size)):
            await self._process_batch(batch)
            self.logger.info(
                "batch_processed",
                extra={"event": "batch_processed", "kind": self.kind.name, "batchIndex": index, "batchSize": len(batch)},
            )

        await self._flush_waiting()
        self.statistics.stop_timer()
        self.logger.info(
            "sync_finished",
            extra={"event": "sync_finished", "kind": self.kind.name, "statistics": self.statistics.as_dict()},
        )
        return self.statistics

    def _build_caches(self) -> Dict[str, KeyIdCache]:
        caches: Dict[str, KeyIdCache] = {}
        for type_id in self.kind.referenced_type_ids | {self.kind.type_id}:
            caches[type_id] = KeyIdCache(
                self._key_fetcher(KINDS_BY_TYPE_ID[type_id]),
                capacity=self.options.cache_capacity,
                logger=self.logger,
            )
        return caches

    def _key_fetcher(self, kind: EntityKind):
        async def fetch(keys: Set[str]) -> Dict[str, str]:
            entities = await self.backend.fetch_many_by_keys(kind, keys)
            return {entity.key: entity.id for entity in entities if entity.key}

        return fetch

    async def _process_batch(self, batch: Sequence[Any]) -> None:
        self.statistics.increment_processed(len(batch))
        validation = validate_batch(batch, self.kind.validate)
        for draft, errors in validation.invalid:
            key = getattr(draft, "key", None)
            detail = "; ".join(str(error) for error in errors)
            self._fail(SyncError(f"Draft with key: '{key}' is invalid: {detail}"), draft)

        if not validation.valid:
            return
        try:
            await self._cache_referenced_keys(validation.valid)
        except Exception as exc:
            self._fail_all(SyncError("Failed to build a cache of keys to ids.", exc), validation.valid)
            return

        await self._sync_drafts(validation.valid, allow_deferral=True)
        await self._resolve_waiting()

    async def _cache_referenced_keys(self, drafts: Sequence[Any]) -> None:
        grouped: Dict[str, Set[str]] = {}
        for draft in drafts:
            for type_id, keys in self.kind.referenced_keys(draft).items():
                grouped.setdefault(type_id, set()).update(keys)
        await asyncio.gather(*(self.caches[type_id].fetch_and_cache(keys) for type_id, keys in grouped.items()))

    async def _sync_drafts(self, drafts: Sequence[Any], allow_deferral: bool) -> None:
        drafts, duplicates = split_duplicates(drafts)
        for draft in duplicates:
            message = f"Draft with key: '{draft.key}' appears more than once in the same batch."
            self._fail(DuplicateKeyError(message, draft.key), draft)
        if not drafts:
            return

        keys = {draft.key for draft in drafts}
        try:
            existing = await self.backend.fetch_many_by_keys(self.kind, keys)
        except Exception as exc:
            message = f"Failed to fetch existing {self.kind.name} with keys: '{', '.join(sorted(keys))}'."
            self._fail_all(SyncError(message, exc), drafts)
            return

        existing_by_key: Dict[str, ExistingEntity] = {}
        for entity in existing:
            existing_by_key[entity.key] = entity
            self.caches[self.kind.type_id].put(entity.key, entity.id)

        resolved = await asyncio.gather(*(self._resolve(draft, allow_deferral) for draft in drafts))
        result = match([draft for draft in resolved if draft is not None], existing_by_key)
        for draft in result.blank_keys:
            self._fail(SyncError("Draft key is blank (null/empty)."), draft)

        await asyncio.gather(
            *[self._create(draft) for draft in result.to_create],
            *[self._update(entity, draft) for entity, draft in result.to_update],
        )

    async def _resolve(self, draft: Any, allow_deferral: bool) -> Optional[Any]:
        if allow_deferral:
            missing = self._missing_dependencies(draft)
            if missing:
                await self._defer(draft, missing)
                return None
        try:
            return await self.kind.resolve_references(draft, self.resolver)
        except Exception as exc:
            message = f"Failed to resolve references on {self.kind.type_id} with key: '{draft.key}'."
            self._fail(ReferenceResolutionError(message, exc), draft)
            return None

    def _missing_dependencies(self, draft: Any) -> Set[str]:
        cache = self.caches[self.kind.type_id]
        dependencies = self.kind.dependency_keys(draft) - {draft.key}
        return {key for key in dependencies if key in self._input_keys and cache.get(key) is None}

    async def _defer(self, draft: Any, missing: Set[str]) -> None:
        try:
            await self.unresolved_store.save(UnresolvedRecord.queue(draft.key, missing, draft))
        except Exception as exc:
            message = f"Failed to persist draft with key: '{draft.key}' waiting on missing references."
            self._fail(SyncError(message, exc), draft)
            return
        for key in missing:
            self.statistics.add_missing_dependency(key, draft.key)
        self.logger.info(
            "draft_deferred",
            extra={"event": "draft_deferred", "kind": self.kind.name, "draftKey": draft.key, "missingKeys": sorted(missing)},
        )

    async def _create(self, draft: Any) -> None:
        to_create = self.options.apply_before_create_callback(draft)
        if to_create is None:
            self.statistics.increment_up_to_date()
            self.logger.info(
                "draft_create_skipped",
                extra={"event": "draft_create_skipped", "kind": self.kind.name, "draftKey": draft.key},
            )
            return
        try:
            created = await self.backend.create(self.kind, to_create)
        except Exception as exc:
            self._fail(SyncError(f"Failed to create draft with key: '{draft.key}'.", exc), draft)
            return

        self.caches[self.kind.type_id].put(created.key, created.id)
        if created.key:
            self._created_keys.add(created.key)
        self.statistics.increment_created()
        self.logger.info(
            "draft_created",
            extra={"event": "draft_created", "kind": self.kind.name, "draftKey": draft.key, "id": created.id},
        )

    async def _update(self, existing: ExistingEntity, draft: Any) -> None:
        key = draft.key
        try:
            metadata = await self._fetch_metadata(draft)
        except Exception as exc:
            message = f"Failed to fetch schema metadata for {self.kind.type_id} with key: '{key}'."
            self._fail(SyncError(message, exc), draft, existing)
            return

        for attempt in range(MAX_UPDATE_ATTEMPTS):
            context = DiffContext(
                on_warning=lambda warning, current=existing: self._warn(warning, draft, current),
                metadata=metadata,
            )
            try:
                actions = self.kind.diff(existing, draft, context)
            except Exception as exc:
                message = f"Failed to build update actions for {self.kind.type_id} with key: '{key}'."
                self._fail(SyncError(message, exc), draft, existing)
                return

            actions = self.options.apply_before_update_callback(actions, draft, existing)
            if not actions:
                self.statistics.increment_up_to_date()
                self.logger.info(
                    "draft_up_to_date",
                    extra={"event": "draft_up_to_date", "kind": self.kind.name, "draftKey": key},
                )
                return

            try:
                updated = await self.backend.update(self.kind, existing, actions)
            except ConflictError as exc:
                if attempt + 1 >= MAX_UPDATE_ATTEMPTS:
                    self._fail(self._update_error(key, exc), draft, existing, actions)
                    return
                refetched = await self._refetch_after_conflict(existing, draft, actions, exc)
                if refetched is None:
                    return
                existing = refetched
                continue
            except Exception as exc:
                self._fail(self._update_error(key, exc), draft, existing, actions)
                return

            self.caches[self.kind.type_id].put(updated.key, updated.id)
            self.statistics.increment_updated()
            self.logger.info(
                "draft_updated",
                extra={
                    "event": "draft_updated",
                    "kind": self.kind.name,
                    "draftKey": key,
                    "actionCount": len(actions),
                    "attempt": attempt + 1,
                },
            )
            return

    async def _refetch_after_conflict(
        self,
        existing: ExistingEntity,
        draft: Any,
        actions: List[UpdateAction],
        conflict: ConflictError,
    ) -> Optional[ExistingEntity]:
        self.logger.warning(
            "update_conflict_retry",
            extra={
                "event": "update_conflict_retry",
                "kind": self.kind.name,
                "draftKey": draft.key,
                "expectedVersion": conflict.expected_version,
                "actualVersion": conflict.actual_version,
            },
        )
        try:
            refetched = await self.backend.fetch_by_key(self.kind, draft.key)
        except Exception as exc:
            message = "Failed to fetch from the backend while retrying after concurrent modification."
            self._fail(self._update_error(draft.key, SyncError(message, exc)), draft, existing, actions)
            return None
        if refetched is None:
            message = "Not found when attempting to fetch while retrying after concurrent modification."
            self._fail(self._update_error(draft.key, SyncError(message)), draft, existing, actions)
            return None
        return refetched

    def _update_error(self, key: str, cause: BaseException) -> SyncError:
        return SyncError(f"Failed to update {self.kind.type_id} with key: '{key}'.", cause)

    async def _fetch_metadata(self, draft: Any) -> Optional[Any]:
        metadata_id = self.kind.metadata_id(draft)
        if metadata_id is None:
            return None
        if metadata_id not in self._metadata:
            self._metadata[metadata_id] = await self.kind.fetch_metadata(metadata_id, self.backend)
        return self._metadata[metadata_id]

    async def _resolve_waiting(self) -> None:
        """Sync waiting drafts whose dependencies were all created, repeating while creates unblock more."""
        while self._created_keys:
            created = self._created_keys
            self._created_keys = set()
            released: List[Tuple[str, str]] = []
            for dependency_key in created:
                for draft_key in self.statistics.pop_waiting_draft_keys(dependency_key):
                    released.append((dependency_key, draft_key))
            if not released:
                continue

            draft_keys = {draft_key for _, draft_key in released}
            try:
                records = await self.unresolved_store.fetch(draft_keys)
            except Exception as exc:
                self.logger.error(
                    "unresolved_fetch_failed",
                    extra={"event": "unresolved_fetch_failed", "kind": self.kind.name, "detail": str(exc)},
                )
                for dependency_key, draft_key in released:
                    self.statistics.add_missing_dependency(dependency_key, draft_key)
                continue

            still_waiting = self.statistics.waiting_draft_keys()
            self._fail_lost(draft_keys - still_waiting, records)
            ready = []
            for record in records:
                if record.draft_key in still_waiting:
                    await self._save_record(record.without(created))
                    continue
                await self._discard_record(record.draft_key)
                ready.append(record.draft)
            if ready:
                await self._sync_drafts(ready, allow_deferral=True)

    async def _flush_waiting(self) -> None:
        """Give every still-waiting draft one last attempt, then fail the ones that cannot resolve."""
        waiting = self.statistics.waiting_draft_keys()
        if not waiting:
            return
        records = await self._take_records(waiting)
        if records:
            self._input_keys = {record.draft_key for record in records}
            await self._sync_drafts([record.draft for record in records], allow_deferral=True)
            await self._resolve_waiting()

        leftover = self.statistics.waiting_draft_keys()
        if not leftover:
            return
        for record in await self._take_records(leftover):
            self._fail(DeferredDependencyError(record.draft_key, record.missing_keys), record.draft)

    async def _take_records(self, draft_keys: Set[str]) -> List[UnresolvedRecord]:
        for draft_key in draft_keys:
            self.statistics.remove_waiting_draft(draft_key)
        try:
            records = await self.unresolved_store.fetch(draft_keys)
        except Exception as exc:
            error = SyncError("Failed to fetch drafts waiting on missing references.", exc)
            for draft_key in sorted(draft_keys):
                self._fail(error, None)
            return []

        self._fail_lost(draft_keys, records)
        for record in records:
            await self._discard_record(record.draft_key)
        return records

    def _fail_lost(self, draft_keys: Set[str], records: Sequence[UnresolvedRecord]) -> None:
        found = {record.draft_key for record in records}
        for draft_key in sorted(draft_keys - found):
            self._fail(SyncError(f"Draft with key: '{draft_key}' waiting on missing references was lost."), None)

    async def _save_record(self, record: UnresolvedRecord) -> None:
        try:
            await self.unresolved_store.save(record)
        except Exception as exc:
            self.logger.warning(
                "unresolved_save_failed",
                extra={"event": "unresolved_save_failed", "draftKey": record.draft_key, "detail": str(exc)},
            )

    async def _discard_record(self, draft_key: str) -> None:
        try:
            await self.unresolved_store.delete(draft_key)
        except Exception as exc:
            self.logger.warning(
                "unresolved_delete_failed",
                extra={"event": "unresolved_delete_failed", "draftKey": draft_key, "detail": str(exc)},
            )

    def _fail(
        self,
        error: Exception,
        draft: Any,
        existing: Optional[ExistingEntity] = None,
        actions: Optional[List[UpdateAction]] = None,
    ) -> None:
        self.logger.error(
            "draft_failed",
            extra={
                "event": "draft_failed",
                "kind": self.kind.name,
                "draftKey": getattr(draft, "key", None),
                "detail": str(error),
            },
        )
        self.options.apply_error_callback(error, draft, existing, actions)
        self.statistics.increment_failed()

    def _fail_all(self, error: Exception, drafts: Sequence[Any]) -> None:
        for draft in drafts:
            self._fail(error, draft)

    def _warn(self, warning: Any, draft: Any, existing: Optional[ExistingEntity]) -> None:
        self.logger.warning(
            "draft_warning",
            extra={"event": "draft_warning", "kind": self.kind.name, "draftKey": draft.key, "detail": str(warning)},
        )
        self.options.apply_warning_callback(warning, draft, existing)


def _batches(drafts: Sequence[Any], size: int) -> List[Sequence[Any]]:
    return [drafts[start : start + size] for start in range(0, len(drafts), size)]
