"""Per-kind strategies: validation, references, diffing and serialization."""

from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, FrozenSet, List, Optional, Set

from . import serialization
from .category_diff import build_category_actions
from .diff_engine import DiffContext
from .models import CategoryDraft, ExistingEntity, ProductTypeDraft, TypeDraft, UpdateAction
from .product_type_diff import build_product_type_actions
from .references import ReferenceResolver
from .type_diff import build_type_actions
from .validator import (
    ValidationError,
    is_empty,
    validate_category_draft,
    validate_product_type_draft,
    validate_type_draft,
)


class EntityKind:
    name = ""
    type_id = ""
    endpoint = ""
    referenced_type_ids: FrozenSet[str] = frozenset()

    def validate(self, draft: Any) -> List[ValidationError]:
        return []

    def referenced_keys(self, draft: Any) -> Dict[str, Set[str]]:
        """Keys of unresolved references, grouped by reference type id."""
        return {}

    def dependency_keys(self, draft: Any) -> Set[str]:
        """Keys of same-kind entities the draft references; these may be created later in the run."""
        return set()

    async def resolve_references(self, draft: Any, resolver: ReferenceResolver) -> Any:
        return draft

    def metadata_id(self, draft: Any) -> Optional[str]:
        return None

    async def fetch_metadata(self, metadata_id: str, backend) -> Optional[Any]:
        return None

    def diff(self, existing: ExistingEntity, draft: Any, context: Optional[DiffContext] = None) -> List[UpdateAction]:
        raise NotImplementedError

    def draft_from_dict(self, data: Dict[str, Any]) -> Any:
        raise NotImplementedError

    def draft_to_dict(self, draft: Any) -> Dict[str, Any]:
        raise NotImplementedError

    def entity_from_dict(self, data: Dict[str, Any]) -> ExistingEntity:
        return serialization.entity_from_dict(data, self.draft_from_dict)


class TypeKind(EntityKind):
    name = "types"
    type_id = "type"
    endpoint = "types"

    def validate(self, draft: TypeDraft) -> List[ValidationError]:
        return validate_type_draft(draft)

    def diff(self, existing, draft, context=None):
        return build_type_actions(existing, draft, context)

    def draft_from_dict(self, data):
        return serialization.type_draft_from_dict(data)

    def draft_to_dict(self, draft):
        return serialization.type_draft_to_dict(draft)


class ProductTypeKind(EntityKind):
    name = "product-types"
    type_id = "product-type"
    endpoint = "product-types"

    def validate(self, draft: ProductTypeDraft) -> List[ValidationError]:
        return validate_product_type_draft(draft)

    def diff(self, existing, draft, context=None):
        return build_product_type_actions(existing, draft, context)

    def draft_from_dict(self, data):
        return serialization.product_type_draft_from_dict(data)

    def draft_to_dict(self, draft):
        return serialization.product_type_draft_to_dict(draft)


class CategoryKind(EntityKind):
    name = "categories"
    type_id = "category"
    endpoint = "categories"
    referenced_type_ids = frozenset({"category", "type"})

    def validate(self, draft: CategoryDraft) -> List[ValidationError]:
        return validate_category_draft(draft)

    def referenced_keys(self, draft: CategoryDraft) -> Dict[str, Set[str]]:
        keys: Dict[str, Set[str]] = {}
        if draft.parent is not None and is_empty(draft.parent.id) and not is_empty(draft.parent.key):
            keys.setdefault("category", set()).add(draft.parent.key)
        custom_type = draft.custom.type if draft.custom is not None else None
        if custom_type is not None and is_empty(custom_type.id) and not is_empty(custom_type.key):
            keys.setdefault("type", set()).add(custom_type.key)
        return keys

    def dependency_keys(self, draft: CategoryDraft) -> Set[str]:
        return self.referenced_keys(draft).get("category", set())

    async def resolve_references(self, draft: CategoryDraft, resolver: ReferenceResolver) -> CategoryDraft:
        parent = await resolver.resolve_reference("parent", draft.parent, owner_key=draft.key)
        custom = draft.custom
        if custom is not None:
            custom_type = await resolver.resolve_reference("custom.type", custom.type, required=True)
            custom = replace(custom, type=custom_type)
        return replace(draft, parent=parent, custom=custom)

    def metadata_id(self, draft: CategoryDraft) -> Optional[str]:
        if draft.custom is None or draft.custom.type is None:
            return None
        return draft.custom.type.id

    async def fetch_metadata(self, metadata_id: str, backend) -> Optional[Set[str]]:
        custom_type = await backend.fetch_by_id(TYPES, metadata_id)
        if custom_type is None:
            return None
        return {definition.name for definition in custom_type.state.field_definitions}

    def diff(self, existing, draft, context=None):
        return build_category_actions(existing, draft, context)

    def draft_from_dict(self, data):
        return serialization.category_draft_from_dict(data)

    def draft_to_dict(self, draft):
        return serialization.category_draft_to_dict(draft)


TYPES = TypeKind()
PRODUCT_TYPES = ProductTypeKind()
CATEGORIES = CategoryKind()

KINDS: Dict[str, EntityKind] = {kind.name: kind for kind in (TYPES, PRODUCT_TYPES, CATEGORIES)}
KINDS_BY_TYPE_ID: Dict[str, EntityKind] = {kind.type_id: kind for kind in KINDS.values()}


def get_kind(name: str) -> EntityKind:
    kind = KINDS.get(name)
    if kind is None:
        raise ValueError(f"Unknown entity kind: {name}. Expected one of: {', '.join(sorted(KINDS))}")
    return kind
