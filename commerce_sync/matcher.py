"""Partitioning resolved drafts into creates and updates."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence, Set, Tuple

from .models import ExistingEntity
from .validator import is_empty


@dataclass
class MatchResult:
    to_create: List[Any] = field(default_factory=list)
    to_update: List[Tuple[ExistingEntity, Any]] = field(default_factory=list)
    duplicates: List[Any] = field(default_factory=list)
    blank_keys: List[Any] = field(default_factory=list)


def split_duplicates(drafts: Sequence[Any]) -> Tuple[List[Any], List[Any]]:
    """Keep the first draft per key; later drafts with the same key are returned separately.

    Drafts with a blank key are kept so the caller can report them.
    """
    unique: List[Any] = []
    duplicates: List[Any] = []
    seen: Set[str] = set()
    for draft in drafts:
        key = draft.key
        if not is_empty(key) and key in seen:
            duplicates.append(draft)
            continue
        if not is_empty(key):
            seen.add(key)
        unique.append(draft)
    return unique, duplicates


def match(drafts: Sequence[Any], existing_by_key: Mapping[str, ExistingEntity]) -> MatchResult:
    """Split drafts by whether an entity with the same key exists.

    The first draft carrying a key wins; later drafts with the same key are
    reported as duplicates and never matched.
    """
    result = MatchResult()
    unique, result.duplicates = split_duplicates(drafts)
    for draft in unique:
        if is_empty(draft.key):
            result.blank_keys.append(draft)
            continue
        existing = existing_by_key.get(draft.key)
        if existing is None:
            result.to_create.append(draft)
        else:
            result.to_update.append((existing, draft))
    return result
