"""Update actions for custom field types."""

from __future__ import annotations

from typing import List, Optional

from .diff_engine import (
    DiffContext,
    build_enum_values_actions,
    build_update_action,
    collect,
    reconcile_collection,
    values_equal,
)
from .models import ExistingEntity, FieldDefinition, TypeDraft, UpdateAction


FIELD_DUPLICATE_MESSAGE = (
    "Field definitions have duplicated names. Duplicated field definition name: '{key}'. "
    "Field definitions names are expected to be unique inside their type."
)


def build_type_actions(
    existing: ExistingEntity,
    draft: TypeDraft,
    context: Optional[DiffContext] = None,
) -> List[UpdateAction]:
    context = context or DiffContext()
    old: TypeDraft = existing.state

    actions = collect(
        build_update_action(old.name, draft.name, lambda: UpdateAction("changeName", {"name": draft.name})),
        build_update_action(
            old.description,
            draft.description,
            lambda: UpdateAction("setDescription", {"description": draft.description}),
        ),
    )
    if not values_equal(sorted(old.resource_type_ids), sorted(draft.resource_type_ids)):
        context.warn(f"Cannot change 'resourceTypeIds' of type with key '{draft.key}'.")
    actions.extend(build_field_definitions_actions(old.field_definitions, draft.field_definitions))
    return actions


def build_field_definitions_actions(
    old_definitions: List[FieldDefinition],
    new_definitions: List[FieldDefinition],
) -> List[UpdateAction]:
    return reconcile_collection(
        old_definitions,
        new_definitions,
        lambda definition: definition.name,
        duplicate_message=lambda name: FIELD_DUPLICATE_MESSAGE.format(key=name),
        remove=lambda removed: [_remove_field(definition) for definition in removed],
        match=build_field_definition_actions,
        add=lambda definition: [_add_field(definition)],
        order=lambda names: UpdateAction("changeFieldDefinitionOrder", {"fieldNames": names}),
        compatible=lambda old, new: old.type.signature() == new.type.signature(),
        replace=lambda old, new: [_remove_field(old), _add_field(new)],
    )


def build_field_definition_actions(old: FieldDefinition, new: FieldDefinition) -> List[UpdateAction]:
    name = new.name
    actions = collect(
        build_update_action(
            old.label, new.label, lambda: UpdateAction("changeLabel", {"fieldName": name, "label": new.label})
        ),
        build_update_action(
            old.input_hint,
            new.input_hint,
            lambda: UpdateAction("changeInputHint", {"fieldName": name, "inputHint": new.input_hint}),
        ),
    )

    old_enum = old.type.enum_type()
    new_enum = new.type.enum_type()
    if old_enum is None or new_enum is None:
        return actions

    prefix = "Localized" if new_enum.is_localized_enum() else ""
    actions.extend(
        build_enum_values_actions(
            name,
            old_enum.values,
            new_enum.values,
            # removal of enum values is not supported for types
            remove_many=None,
            change_label=lambda value: UpdateAction(
                f"change{prefix}EnumValueLabel", {"fieldName": name, "value": value}
            ),
            add=lambda value: UpdateAction(f"add{prefix}EnumValue", {"fieldName": name, "value": value}),
            change_order=lambda values: UpdateAction(
                f"change{prefix}EnumValueOrder", {"fieldName": name, "keys": [value.key for value in values]}
            ),
        )
    )
    return actions


def _remove_field(definition: FieldDefinition) -> UpdateAction:
    return UpdateAction("removeFieldDefinition", {"fieldName": definition.name})


def _add_field(definition: FieldDefinition) -> UpdateAction:
    return UpdateAction("addFieldDefinition", {"fieldDefinition": definition})
