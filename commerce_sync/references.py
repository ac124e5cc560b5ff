"""Rewriting key-based references into id-based ones."""

from __future__ import annotations

import re
from typing import Dict, Optional

from .errors import (
    BlankKeyError,
    ReferenceDoesNotExistError,
    ReferenceResolutionError,
    SelfReferenceError,
    UuidKeyNotAllowedError,
)
from .key_cache import KeyIdCache
from .models import Reference
from .validator import is_empty


UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_uuid(value: Optional[str]) -> bool:
    return bool(value) and UUID_PATTERN.match(value) is not None


class ReferenceResolver:
    def __init__(self, caches: Dict[str, KeyIdCache], allow_uuid_keys: bool = False) -> None:
        self.caches = caches
        self.allow_uuid_keys = allow_uuid_keys

    async def resolve_reference(
        self,
        field_name: str,
        reference: Optional[Reference],
        *,
        required: bool = False,
        owner_key: Optional[str] = None,
    ) -> Optional[Reference]:
        """Return the reference rewritten to carry the target's id.

        An absent optional reference stays absent. A reference that already
        carries an id is returned unchanged.
        """
        if reference is None:
            if required:
                raise BlankKeyError(field_name)
            return None
        if not is_empty(reference.id):
            return reference

        key = reference.key
        if is_empty(key):
            raise BlankKeyError(field_name)
        if owner_key is not None and key == owner_key:
            raise SelfReferenceError(field_name, key)
        if is_uuid(key):
            if not self.allow_uuid_keys:
                raise UuidKeyNotAllowedError(field_name, key)
            return Reference.of_id(reference.type_id, key)

        cache = self._cache_for(reference.type_id)
        entity_id = cache.get(key)
        if entity_id is None:
            fetched = await cache.fetch_and_cache([key])
            entity_id = fetched.get(key)
        if entity_id is None:
            raise ReferenceDoesNotExistError(field_name, key)
        return Reference(type_id=reference.type_id, id=entity_id, key=key)

    def _cache_for(self, type_id: str) -> KeyIdCache:
        cache = self.caches.get(type_id)
        if cache is None:
            raise ReferenceResolutionError(f"No key cache configured for reference type '{type_id}'.")
        return cache
