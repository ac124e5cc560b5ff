"""Drafts, existing entities, references and update actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


ENUM_TYPE_NAMES = {"Enum", "LocalizedEnum", "enum", "lenum"}
LOCALIZED_ENUM_TYPE_NAMES = {"LocalizedEnum", "lenum"}


@dataclass(frozen=True)
class Reference:
    """Pointer to another entity, by stable key before resolution and by id after."""

    type_id: str
    id: Optional[str] = None
    key: Optional[str] = None

    @classmethod
    def of_key(cls, type_id: str, key: str) -> "Reference":
        return cls(type_id=type_id, key=key)

    @classmethod
    def of_id(cls, type_id: str, id: str) -> "Reference":
        return cls(type_id=type_id, id=id)


@dataclass(frozen=True)
class EnumValue:
    key: str
    label: Any


@dataclass(frozen=True)
class FieldType:
    name: str
    values: Tuple[EnumValue, ...] = ()
    element_type: Optional["FieldType"] = None
    reference_type_id: Optional[str] = None

    def signature(self) -> str:
        """Type identity ignoring enum values; a changed signature cannot be updated in place."""
        if self.element_type is not None:
            return f"{self.name}<{self.element_type.signature()}>"
        if self.reference_type_id:
            return f"{self.name}<{self.reference_type_id}>"
        return self.name

    def enum_type(self) -> Optional["FieldType"]:
        if self.name in ENUM_TYPE_NAMES:
            return self
        if self.element_type is not None and self.element_type.name in ENUM_TYPE_NAMES:
            return self.element_type
        return None

    def is_localized_enum(self) -> bool:
        return self.name in LOCALIZED_ENUM_TYPE_NAMES

    def with_values(self, values: Tuple[EnumValue, ...]) -> "FieldType":
        if self.name in ENUM_TYPE_NAMES:
            return FieldType(self.name, values, None, self.reference_type_id)
        if self.element_type is not None:
            return FieldType(self.name, (), self.element_type.with_values(values), self.reference_type_id)
        return self


@dataclass(frozen=True)
class FieldDefinition:
    name: str
    type: FieldType
    label: Dict[str, str]
    required: bool = False
    input_hint: str = "SingleLine"


@dataclass(frozen=True)
class AttributeDefinition:
    name: str
    type: FieldType
    label: Dict[str, str]
    is_required: bool = False
    attribute_constraint: str = "None"
    input_tip: Optional[Dict[str, str]] = None
    input_hint: str = "SingleLine"
    is_searchable: bool = True


@dataclass(frozen=True)
class TypeDraft:
    key: Optional[str]
    name: Dict[str, str]
    resource_type_ids: Tuple[str, ...] = ()
    description: Optional[Dict[str, str]] = None
    field_definitions: Tuple[FieldDefinition, ...] = ()


@dataclass(frozen=True)
class CustomFieldsDraft:
    type: Optional[Reference]
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CategoryDraft:
    key: Optional[str]
    name: Dict[str, str]
    slug: Dict[str, str]
    description: Optional[Dict[str, str]] = None
    parent: Optional[Reference] = None
    order_hint: Optional[str] = None
    external_id: Optional[str] = None
    meta_title: Optional[Dict[str, str]] = None
    meta_description: Optional[Dict[str, str]] = None
    meta_keywords: Optional[Dict[str, str]] = None
    custom: Optional[CustomFieldsDraft] = None


@dataclass(frozen=True)
class ProductTypeDraft:
    key: Optional[str]
    name: str
    description: str
    attributes: Tuple[AttributeDefinition, ...] = ()


@dataclass(frozen=True)
class ExistingEntity:
    """Backend entity: id, optimistic-locking version, key and a draft-shaped state."""

    id: str
    version: int
    key: Optional[str]
    state: Any


@dataclass(frozen=True)
class UpdateAction:
    action: str
    payload: Dict[str, Any] = field(default_factory=dict)
