"""Update actions for categories."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .diff_engine import DiffContext, build_update_action, collect, values_equal
from .errors import AttributeMetadataMissingError
from .models import CategoryDraft, CustomFieldsDraft, ExistingEntity, Reference, UpdateAction


def build_category_actions(
    existing: ExistingEntity,
    draft: CategoryDraft,
    context: Optional[DiffContext] = None,
) -> List[UpdateAction]:
    context = context or DiffContext()
    old: CategoryDraft = existing.state

    actions = collect(
        build_update_action(old.name, draft.name, lambda: UpdateAction("changeName", {"name": draft.name})),
        build_update_action(old.slug, draft.slug, lambda: UpdateAction("changeSlug", {"slug": draft.slug})),
        build_update_action(
            old.description,
            draft.description,
            lambda: UpdateAction("setDescription", {"description": draft.description}),
        ),
        _parent_action(existing, draft, context),
        _order_hint_action(existing, draft, context),
        build_update_action(
            old.meta_title, draft.meta_title, lambda: UpdateAction("setMetaTitle", {"metaTitle": draft.meta_title})
        ),
        build_update_action(
            old.meta_description,
            draft.meta_description,
            lambda: UpdateAction("setMetaDescription", {"metaDescription": draft.meta_description}),
        ),
        build_update_action(
            old.meta_keywords,
            draft.meta_keywords,
            lambda: UpdateAction("setMetaKeywords", {"metaKeywords": draft.meta_keywords}),
        ),
        build_update_action(
            old.external_id,
            draft.external_id,
            lambda: UpdateAction("setExternalId", {"externalId": draft.external_id}),
        ),
    )
    actions.extend(build_custom_actions(old.custom, draft.custom, context))
    return actions


def _parent_action(existing: ExistingEntity, draft: CategoryDraft, context: DiffContext) -> Optional[UpdateAction]:
    old_id = _reference_id(existing.state.parent)
    new_id = _reference_id(draft.parent)
    if new_id is None and old_id is not None:
        context.warn(f"Cannot unset 'parent' field of category with id '{existing.id}'.")
        return None
    if old_id == new_id:
        return None
    return UpdateAction("changeParent", {"parent": draft.parent})


def _order_hint_action(existing: ExistingEntity, draft: CategoryDraft, context: DiffContext) -> Optional[UpdateAction]:
    if draft.order_hint is None and existing.state.order_hint is not None:
        context.warn(f"Cannot unset 'orderHint' field of category with id '{existing.id}'.")
        return None
    return build_update_action(
        existing.state.order_hint,
        draft.order_hint,
        lambda: UpdateAction("changeOrderHint", {"orderHint": draft.order_hint}),
    )


def build_custom_actions(
    old_custom: Optional[CustomFieldsDraft],
    new_custom: Optional[CustomFieldsDraft],
    context: DiffContext,
) -> List[UpdateAction]:
    """Custom type and custom field changes.

    ``context.metadata`` holds the field names declared by the resolved
    custom type; fields outside it are reported and skipped.
    """
    if new_custom is None:
        if old_custom is None:
            return []
        return [UpdateAction("setCustomType", {})]

    fields = _declared_fields(new_custom, context)
    if old_custom is None or _reference_id(old_custom.type) != _reference_id(new_custom.type):
        return [UpdateAction("setCustomType", {"type": new_custom.type, "fields": fields})]

    actions: List[UpdateAction] = []
    for name, value in fields.items():
        if not values_equal(old_custom.fields.get(name), value):
            actions.append(UpdateAction("setCustomField", {"name": name, "value": value}))
    for name in old_custom.fields:
        if name not in new_custom.fields:
            actions.append(UpdateAction("setCustomField", {"name": name}))
    return actions


def _declared_fields(custom: CustomFieldsDraft, context: DiffContext) -> Dict[str, Any]:
    declared = context.metadata
    if declared is None:
        return dict(custom.fields)
    type_name = custom.type.key if custom.type is not None else None
    fields: Dict[str, Any] = {}
    for name, value in custom.fields.items():
        if name not in declared:
            context.warn(AttributeMetadataMissingError(name, type_name))
            continue
        fields[name] = value
    return fields


def _reference_id(reference: Optional[Reference]) -> Optional[str]:
    if reference is None:
        return None
    return reference.id
