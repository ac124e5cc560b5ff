"""Update actions for product types."""

from __future__ import annotations

from typing import List, Optional

from .diff_engine import DiffContext, build_enum_values_actions, build_update_action, collect, reconcile_collection
from .models import AttributeDefinition, ExistingEntity, ProductTypeDraft, UpdateAction


ATTRIBUTE_DUPLICATE_MESSAGE = (
    "Attribute definitions have duplicated names. Duplicated attribute definition name: '{key}'. "
    "Attribute definitions names are expected to be unique inside their product type."
)


def build_product_type_actions(
    existing: ExistingEntity,
    draft: ProductTypeDraft,
    context: Optional[DiffContext] = None,
) -> List[UpdateAction]:
    old: ProductTypeDraft = existing.state
    actions = collect(
        build_update_action(old.name, draft.name, lambda: UpdateAction("changeName", {"name": draft.name})),
        build_update_action(
            old.description,
            draft.description,
            lambda: UpdateAction("changeDescription", {"description": draft.description}),
        ),
    )
    actions.extend(build_attributes_actions(old.attributes, draft.attributes))
    return actions


def build_attributes_actions(
    old_attributes: List[AttributeDefinition],
    new_attributes: List[AttributeDefinition],
) -> List[UpdateAction]:
    return reconcile_collection(
        old_attributes,
        new_attributes,
        lambda attribute: attribute.name,
        duplicate_message=lambda name: ATTRIBUTE_DUPLICATE_MESSAGE.format(key=name),
        remove=lambda removed: [_remove_attribute(attribute) for attribute in removed],
        match=build_attribute_actions,
        add=lambda attribute: [_add_attribute(attribute)],
        order=lambda names: UpdateAction("changeAttributeOrderByName", {"attributeNames": names}),
        compatible=lambda old, new: old.type.signature() == new.type.signature(),
        replace=lambda old, new: [_remove_attribute(old), _add_attribute(new)],
    )


def build_attribute_actions(old: AttributeDefinition, new: AttributeDefinition) -> List[UpdateAction]:
    name = new.name
    actions = collect(
        build_update_action(
            old.label, new.label, lambda: UpdateAction("changeLabel", {"attributeName": name, "label": new.label})
        ),
        build_update_action(
            old.input_tip,
            new.input_tip,
            lambda: UpdateAction("setInputTip", {"attributeName": name, "inputTip": new.input_tip}),
        ),
        build_update_action(
            old.is_searchable,
            new.is_searchable,
            lambda: UpdateAction("changeIsSearchable", {"attributeName": name, "isSearchable": new.is_searchable}),
        ),
        build_update_action(
            old.input_hint,
            new.input_hint,
            lambda: UpdateAction("changeInputHint", {"attributeName": name, "newValue": new.input_hint}),
        ),
        build_update_action(
            old.attribute_constraint,
            new.attribute_constraint,
            lambda: UpdateAction(
                "changeAttributeConstraint", {"attributeName": name, "newValue": new.attribute_constraint}
            ),
        ),
    )

    old_enum = old.type.enum_type()
    new_enum = new.type.enum_type()
    if old_enum is None or new_enum is None:
        return actions

    kind = "Localized" if new_enum.is_localized_enum() else "Plain"
    actions.extend(
        build_enum_values_actions(
            name,
            old_enum.values,
            new_enum.values,
            remove_many=lambda keys: UpdateAction("removeEnumValues", {"attributeName": name, "keys": keys}),
            change_label=lambda value: UpdateAction(
                f"change{kind}EnumValueLabel", {"attributeName": name, "newValue": value}
            ),
            add=lambda value: UpdateAction(f"add{kind}EnumValue", {"attributeName": name, "value": value}),
            change_order=lambda values: UpdateAction(
                f"change{kind}EnumValueOrder", {"attributeName": name, "values": values}
            ),
        )
    )
    return actions


def _remove_attribute(attribute: AttributeDefinition) -> UpdateAction:
    return UpdateAction("removeAttributeDefinition", {"name": attribute.name})


def _add_attribute(attribute: AttributeDefinition) -> UpdateAction:
    return UpdateAction("addAttributeDefinition", {"attribute": attribute})
