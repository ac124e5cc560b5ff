"""Error taxonomy surfaced through the sync callbacks."""

from __future__ import annotations

from typing import Iterable, Optional


class SyncError(Exception):
    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message} Reason: {self.cause}"
        return self.message


class ReferenceResolutionError(SyncError):
    pass


class BlankKeyError(ReferenceResolutionError):
    def __init__(self, field_name: str) -> None:
        super().__init__(f"Reference key of field '{field_name}' is blank (null/empty).")
        self.field_name = field_name


class ReferenceDoesNotExistError(ReferenceResolutionError):
    def __init__(self, field_name: str, key: str) -> None:
        super().__init__(f"Referenced entity of field '{field_name}' with key '{key}' doesn't exist.")
        self.field_name = field_name
        self.key = key


class SelfReferenceError(ReferenceResolutionError):
    def __init__(self, field_name: str, key: str) -> None:
        super().__init__(f"Field '{field_name}' of the draft with key '{key}' references the draft itself.")
        self.field_name = field_name
        self.key = key


class UuidKeyNotAllowedError(ReferenceResolutionError):
    def __init__(self, field_name: str, key: str) -> None:
        super().__init__(
            f"Found a UUID '{key}' in the reference field '{field_name}'. Expecting a key without a UUID value. "
            "If you want to allow UUID values for reference keys, enable allow_uuid_keys."
        )
        self.field_name = field_name
        self.key = key


class DeferredDependencyError(SyncError):
    def __init__(self, draft_key: str, missing_keys: Iterable[str]) -> None:
        self.draft_key = draft_key
        self.missing_keys = sorted(missing_keys)
        super().__init__(
            f"Draft with key '{draft_key}' is waiting on missing references: {', '.join(self.missing_keys)}."
        )


class DuplicateKeyError(SyncError):
    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(message)
        self.key = key


class AttributeMetadataMissingError(SyncError):
    def __init__(self, field_name: str, schema_name: Optional[str] = None) -> None:
        where = f" of '{schema_name}'" if schema_name else ""
        super().__init__(f"Field '{field_name}' is not declared in the schema{where}.")
        self.field_name = field_name


class BackendError(SyncError):
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message, cause)
        self.status_code = status_code
        self.detail = detail


class ConflictError(BackendError):
    def __init__(
        self,
        message: str,
        expected_version: Optional[int] = None,
        actual_version: Optional[int] = None,
    ) -> None:
        super().__init__(message, status_code=409)
        self.expected_version = expected_version
        self.actual_version = actual_version


class BackendValidationError(BackendError):
    pass
