"""Conversion between backend JSON payloads and model objects."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from .models import (
    ENUM_TYPE_NAMES,
    AttributeDefinition,
    CategoryDraft,
    CustomFieldsDraft,
    EnumValue,
    ExistingEntity,
    FieldDefinition,
    FieldType,
    ProductTypeDraft,
    Reference,
    TypeDraft,
    UpdateAction,
)


def _drop_none(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in payload.items() if value is not None}


def reference_from_dict(data: Optional[Dict[str, Any]], default_type_id: str = "") -> Optional[Reference]:
    if data is None:
        return None
    return Reference(type_id=data.get("typeId") or default_type_id, id=data.get("id"), key=data.get("key"))


def reference_to_dict(reference: Optional[Reference]) -> Optional[Dict[str, Any]]:
    if reference is None:
        return None
    if reference.id:
        return {"typeId": reference.type_id, "id": reference.id}
    return {"typeId": reference.type_id, "key": reference.key}


def enum_value_from_dict(data: Dict[str, Any]) -> EnumValue:
    return EnumValue(key=data["key"], label=data.get("label"))


def enum_value_to_dict(value: EnumValue) -> Dict[str, Any]:
    return {"key": value.key, "label": value.label}


def field_type_from_dict(data: Dict[str, Any]) -> FieldType:
    element = data.get("elementType")
    return FieldType(
        name=data["name"],
        values=tuple(enum_value_from_dict(item) for item in data.get("values") or []),
        element_type=field_type_from_dict(element) if element else None,
        reference_type_id=data.get("referenceTypeId"),
    )


def field_type_to_dict(field_type: FieldType) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"name": field_type.name}
    if field_type.values or field_type.name in ENUM_TYPE_NAMES:
        payload["values"] = [enum_value_to_dict(value) for value in field_type.values]
    if field_type.element_type is not None:
        payload["elementType"] = field_type_to_dict(field_type.element_type)
    if field_type.reference_type_id:
        payload["referenceTypeId"] = field_type.reference_type_id
    return payload


def field_definition_from_dict(data: Dict[str, Any]) -> FieldDefinition:
    return FieldDefinition(
        name=data.get("name"),
        type=field_type_from_dict(data["type"]) if data.get("type") else None,
        label=data.get("label") or {},
        required=bool(data.get("required", False)),
        input_hint=data.get("inputHint", "SingleLine"),
    )


def field_definition_to_dict(definition: FieldDefinition) -> Dict[str, Any]:
    return {
        "name": definition.name,
        "type": field_type_to_dict(definition.type),
        "label": definition.label,
        "required": definition.required,
        "inputHint": definition.input_hint,
    }


def attribute_definition_from_dict(data: Dict[str, Any]) -> AttributeDefinition:
    return AttributeDefinition(
        name=data.get("name"),
        type=field_type_from_dict(data["type"]) if data.get("type") else None,
        label=data.get("label") or {},
        is_required=bool(data.get("isRequired", False)),
        attribute_constraint=data.get("attributeConstraint", "None"),
        input_tip=data.get("inputTip"),
        input_hint=data.get("inputHint", "SingleLine"),
        is_searchable=bool(data.get("isSearchable", True)),
    )


def attribute_definition_to_dict(attribute: AttributeDefinition) -> Dict[str, Any]:
    return _drop_none(
        {
            "name": attribute.name,
            "type": field_type_to_dict(attribute.type),
            "label": attribute.label,
            "isRequired": attribute.is_required,
            "attributeConstraint": attribute.attribute_constraint,
            "inputTip": attribute.input_tip,
            "inputHint": attribute.input_hint,
            "isSearchable": attribute.is_searchable,
        }
    )


def type_draft_from_dict(data: Dict[str, Any]) -> TypeDraft:
    return TypeDraft(
        key=data.get("key"),
        name=data.get("name") or {},
        resource_type_ids=tuple(data.get("resourceTypeIds") or []),
        description=data.get("description"),
        field_definitions=tuple(field_definition_from_dict(item) for item in data.get("fieldDefinitions") or []),
    )


def type_draft_to_dict(draft: TypeDraft) -> Dict[str, Any]:
    return _drop_none(
        {
            "key": draft.key,
            "name": draft.name,
            "description": draft.description,
            "resourceTypeIds": list(draft.resource_type_ids),
            "fieldDefinitions": [field_definition_to_dict(item) for item in draft.field_definitions],
        }
    )


def custom_fields_from_dict(data: Optional[Dict[str, Any]]) -> Optional[CustomFieldsDraft]:
    if data is None:
        return None
    return CustomFieldsDraft(type=reference_from_dict(data.get("type"), "type"), fields=dict(data.get("fields") or {}))


def custom_fields_to_dict(custom: Optional[CustomFieldsDraft]) -> Optional[Dict[str, Any]]:
    if custom is None:
        return None
    return {"type": reference_to_dict(custom.type), "fields": dict(custom.fields)}


def category_draft_from_dict(data: Dict[str, Any]) -> CategoryDraft:
    return CategoryDraft(
        key=data.get("key"),
        name=data.get("name") or {},
        slug=data.get("slug") or {},
        description=data.get("description"),
        parent=reference_from_dict(data.get("parent"), "category"),
        order_hint=data.get("orderHint"),
        external_id=data.get("externalId"),
        meta_title=data.get("metaTitle"),
        meta_description=data.get("metaDescription"),
        meta_keywords=data.get("metaKeywords"),
        custom=custom_fields_from_dict(data.get("custom")),
    )


def category_draft_to_dict(draft: CategoryDraft) -> Dict[str, Any]:
    return _drop_none(
        {
            "key": draft.key,
            "name": draft.name,
            "slug": draft.slug,
            "description": draft.description,
            "parent": reference_to_dict(draft.parent),
            "orderHint": draft.order_hint,
            "externalId": draft.external_id,
            "metaTitle": draft.meta_title,
            "metaDescription": draft.meta_description,
            "metaKeywords": draft.meta_keywords,
            "custom": custom_fields_to_dict(draft.custom),
        }
    )


def product_type_draft_from_dict(data: Dict[str, Any]) -> ProductTypeDraft:
    return ProductTypeDraft(
        key=data.get("key"),
        name=data.get("name"),
        description=data.get("description"),
        attributes=tuple(attribute_definition_from_dict(item) for item in data.get("attributes") or []),
    )


def product_type_draft_to_dict(draft: ProductTypeDraft) -> Dict[str, Any]:
    return _drop_none(
        {
            "key": draft.key,
            "name": draft.name,
            "description": draft.description,
            "attributes": [attribute_definition_to_dict(item) for item in draft.attributes],
        }
    )


def entity_from_dict(data: Dict[str, Any], draft_from_dict: Callable[[Dict[str, Any]], Any]) -> ExistingEntity:
    return ExistingEntity(
        id=data["id"],
        version=int(data["version"]),
        key=data.get("key"),
        state=draft_from_dict(data),
    )


def to_json(value: Any) -> Any:
    if isinstance(value, Reference):
        return reference_to_dict(value)
    if isinstance(value, EnumValue):
        return enum_value_to_dict(value)
    if isinstance(value, FieldDefinition):
        return field_definition_to_dict(value)
    if isinstance(value, AttributeDefinition):
        return attribute_definition_to_dict(value)
    if isinstance(value, FieldType):
        return field_type_to_dict(value)
    if isinstance(value, (list, tuple)):
        return [to_json(item) for item in value]
    if isinstance(value, dict):
        return {key: to_json(item) for key, item in value.items()}
    return value


def action_to_dict(action: UpdateAction) -> Dict[str, Any]:
    payload = {"action": action.action}
    payload.update({key: to_json(value) for key, value in action.payload.items()})
    return payload
