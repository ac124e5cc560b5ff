"""Draft validation helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from .models import CategoryDraft, ProductTypeDraft, TypeDraft


@dataclass(frozen=True)
class ValidationError(Exception):
    field: str
    message: str

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, tuple, dict)) and not value:
        return True
    return False


@dataclass
class BatchValidation:
    valid: List[Any] = field(default_factory=list)
    invalid: List[Tuple[Any, List[ValidationError]]] = field(default_factory=list)


def validate_batch(
    drafts: Sequence[Any],
    validate_draft: Callable[[Any], List[ValidationError]],
) -> BatchValidation:
    result = BatchValidation()
    for draft in drafts:
        if draft is None:
            result.invalid.append((draft, [ValidationError("draft", "draft is null")]))
            continue
        errors: List[ValidationError] = []
        if is_empty(getattr(draft, "key", None)):
            errors.append(ValidationError("key", "draft key is blank (null/empty)"))
        errors.extend(validate_draft(draft))
        if errors:
            result.invalid.append((draft, errors))
        else:
            result.valid.append(draft)
    return result


def validate_type_draft(draft: TypeDraft) -> List[ValidationError]:
    errors: List[ValidationError] = []
    if is_empty(draft.name):
        errors.append(ValidationError("name", "name is required"))
    for index, definition in enumerate(draft.field_definitions):
        errors.extend(_validate_definition(f"fieldDefinitions[{index}]", definition.name, definition.type))
    return errors


def validate_category_draft(draft: CategoryDraft) -> List[ValidationError]:
    errors: List[ValidationError] = []
    if is_empty(draft.name):
        errors.append(ValidationError("name", "name is required"))
    if is_empty(draft.slug):
        errors.append(ValidationError("slug", "slug is required"))
    return errors


def validate_product_type_draft(draft: ProductTypeDraft) -> List[ValidationError]:
    errors: List[ValidationError] = []
    if is_empty(draft.name):
        errors.append(ValidationError("name", "name is required"))
    if draft.description is None:
        errors.append(ValidationError("description", "description is required"))
    for index, attribute in enumerate(draft.attributes):
        errors.extend(_validate_definition(f"attributes[{index}]", attribute.name, attribute.type))
    return errors


def _validate_definition(path: str, name: Optional[str], field_type: Any) -> List[ValidationError]:
    errors: List[ValidationError] = []
    if is_empty(name):
        errors.append(ValidationError(f"{path}.name", "name is required"))
    if field_type is None:
        errors.append(ValidationError(f"{path}.type", "type is required"))
        return errors
    enum_type = field_type.enum_type()
    if enum_type is not None:
        for value_index, value in enumerate(enum_type.values):
            if is_empty(value.key):
                errors.append(ValidationError(f"{path}.type.values[{value_index}].key", "enum key is blank"))
    return errors
