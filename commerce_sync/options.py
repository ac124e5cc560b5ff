"""Run options and caller callbacks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .models import ExistingEntity, UpdateAction


ErrorCallback = Callable[[Exception, Any, Optional[ExistingEntity], Optional[List[UpdateAction]]], None]
WarningCallback = Callable[[Any, Any, Optional[ExistingEntity]], None]
BeforeCreateCallback = Callable[[Any], Optional[Any]]
BeforeUpdateCallback = Callable[[List[UpdateAction], Any, ExistingEntity], Optional[List[UpdateAction]]]

DEFAULT_BATCH_SIZE = 30
DEFAULT_CACHE_CAPACITY = 10_000


@dataclass
class SyncOptions:
    batch_size: int = DEFAULT_BATCH_SIZE
    cache_capacity: int = DEFAULT_CACHE_CAPACITY
    allow_uuid_keys: bool = False
    error_callback: Optional[ErrorCallback] = None
    warning_callback: Optional[WarningCallback] = None
    before_create_callback: Optional[BeforeCreateCallback] = None
    before_update_callback: Optional[BeforeUpdateCallback] = None

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.cache_capacity < 1:
            raise ValueError("cache_capacity must be at least 1")

    @classmethod
    def from_config(cls, config, **callbacks: Any) -> "SyncOptions":
        return cls(
            batch_size=config.batch_size,
            cache_capacity=config.cache_capacity,
            allow_uuid_keys=config.allow_uuid_keys,
            **callbacks,
        )

    def apply_error_callback(
        self,
        error: Exception,
        draft: Any = None,
        existing: Optional[ExistingEntity] = None,
        actions: Optional[List[UpdateAction]] = None,
    ) -> None:
        if self.error_callback is not None:
            self.error_callback(error, draft, existing, actions)

    def apply_warning_callback(self, warning: Any, draft: Any = None, existing: Optional[ExistingEntity] = None) -> None:
        if self.warning_callback is not None:
            self.warning_callback(warning, draft, existing)

    def apply_before_create_callback(self, draft: Any) -> Optional[Any]:
        """Returns the draft to create, or None when the caller vetoes creation."""
        if self.before_create_callback is None:
            return draft
        return self.before_create_callback(draft)

    def apply_before_update_callback(
        self,
        actions: List[UpdateAction],
        draft: Any,
        existing: ExistingEntity,
    ) -> List[UpdateAction]:
        if not actions or self.before_update_callback is None:
            return actions
        filtered = self.before_update_callback(actions, draft, existing)
        return list(filtered) if filtered else []
