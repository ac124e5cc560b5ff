"""Shared building blocks for computing update actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from .errors import DuplicateKeyError
from .models import EnumValue, UpdateAction


ActionList = List[UpdateAction]

ENUM_DUPLICATE_MESSAGE = (
    "Enum Values have duplicated keys. Definition name: '{parent}', Duplicated enum value: '{key}'. "
    "Enum Values are expected to be unique inside their definition."
)


@dataclass
class DiffContext:
    """Side channel for a single diff: warnings, errors that do not abort it, and schema metadata."""

    on_warning: Optional[Callable[[Any], None]] = None
    metadata: Optional[Any] = None
    warnings: List[Any] = field(default_factory=list)

    def warn(self, warning: Any) -> None:
        self.warnings.append(warning)
        if self.on_warning is not None:
            self.on_warning(warning)


def _normalize(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return Decimal(str(value)).normalize()
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        if not value:
            return None
        return {key: _normalize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return tuple(_normalize(item) for item in value)
    return value


def values_equal(old: Any, new: Any) -> bool:
    return _normalize(old) == _normalize(new)


def build_update_action(old: Any, new: Any, factory: Callable[[], UpdateAction]) -> Optional[UpdateAction]:
    if values_equal(old, new):
        return None
    return factory()


def collect(*actions: Optional[UpdateAction]) -> ActionList:
    return [action for action in actions if action is not None]


def key_map(
    items: Iterable[Any],
    key_fn: Callable[[Any], str],
    duplicate_message: Callable[[str], str],
) -> Dict[str, Any]:
    mapped: Dict[str, Any] = {}
    for item in items:
        key = key_fn(item)
        if key in mapped:
            raise DuplicateKeyError(duplicate_message(key), key)
        mapped[key] = item
    return mapped


def build_order_action(
    old_keys: Sequence[str],
    new_keys: Sequence[str],
    factory: Callable[[List[str]], UpdateAction],
) -> Optional[UpdateAction]:
    """Emit a reorder carrying the full new order unless kept keys followed by added keys already match it."""
    new_key_set = set(new_keys)
    kept = [key for key in old_keys if key in new_key_set]
    kept_set = set(kept)
    added = [key for key in new_keys if key not in kept_set]
    if kept + added == list(new_keys):
        return None
    return factory(list(new_keys))


def reconcile_collection(
    old_items: Sequence[Any],
    new_items: Sequence[Any],
    key_fn: Callable[[Any], str],
    *,
    duplicate_message: Callable[[str], str],
    remove: Optional[Callable[[List[Any]], ActionList]],
    match: Callable[[Any, Any], ActionList],
    add: Callable[[Any], ActionList],
    order: Optional[Callable[[List[str]], UpdateAction]] = None,
    compatible: Optional[Callable[[Any, Any], bool]] = None,
    replace: Optional[Callable[[Any, Any], ActionList]] = None,
) -> ActionList:
    """Diff two keyed, ordered child collections.

    Emits removals, then changes to matching children, then additions, then
    a single reorder. A child whose type changed incompatibly is replaced
    (remove then add) and counts as added for ordering.
    """
    new_by_key = key_map(new_items, key_fn, duplicate_message)
    old_by_key = {key_fn(item): item for item in old_items}

    actions: ActionList = []
    removed = [item for item in old_items if key_fn(item) not in new_by_key]
    if removed and remove is not None:
        actions.extend(remove(removed))

    replaced = set()
    for old_item in old_items:
        key = key_fn(old_item)
        new_item = new_by_key.get(key)
        if new_item is None:
            continue
        if compatible is not None and replace is not None and not compatible(old_item, new_item):
            actions.extend(replace(old_item, new_item))
            replaced.add(key)
            continue
        actions.extend(match(old_item, new_item))

    for new_item in new_items:
        if key_fn(new_item) not in old_by_key:
            actions.extend(add(new_item))

    if order is not None:
        old_keys = [key_fn(item) for item in old_items if key_fn(item) not in replaced]
        reorder = build_order_action(old_keys, [key_fn(item) for item in new_items], order)
        if reorder is not None:
            actions.append(reorder)
    return actions


def build_enum_values_actions(
    definition_name: str,
    old_values: Sequence[EnumValue],
    new_values: Sequence[EnumValue],
    *,
    remove_many: Optional[Callable[[List[str]], UpdateAction]],
    change_label: Callable[[EnumValue], UpdateAction],
    add: Callable[[EnumValue], UpdateAction],
    change_order: Callable[[List[EnumValue]], UpdateAction],
) -> ActionList:
    """Enum reconciliation shared by every entity kind with enum-typed children.

    ``remove_many`` is None where the backend cannot remove enum values.
    """
    new_by_key = {value.key: value for value in new_values}

    def _remove(removed: List[EnumValue]) -> ActionList:
        return [remove_many([value.key for value in removed])]

    def _match(old: EnumValue, new: EnumValue) -> ActionList:
        return collect(build_update_action(old.label, new.label, lambda: change_label(new)))

    return reconcile_collection(
        old_values,
        new_values,
        lambda value: value.key,
        duplicate_message=lambda key: ENUM_DUPLICATE_MESSAGE.format(parent=definition_name, key=key),
        remove=_remove if remove_many is not None else None,
        match=_match,
        add=lambda value: [add(value)],
        order=lambda keys: change_order([new_by_key[key] for key in keys]),
    )
