from typing import Any

from pydantic import Field, field_validator

from schemafx.models.base import DomainModel, RecordModel, ensure_non_empty_text
from schemafx.models.enums import PermissionLevel, PermissionTargetType


def normalize_email(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError("email must be a string")
    email = value.strip().lower()
    if "@" not in email:
        raise ValueError("email must contain '@'")
    return email


class PermissionTarget(DomainModel):
    """An entity access levels are granted against: an app or a connection."""

    target_type: PermissionTargetType
    target_id: str

    @field_validator("target_id")
    @classmethod
    def _validate_target_id(cls, value: str) -> str:
        return ensure_non_empty_text(value, "target_id")

    @property
    def cache_key(self) -> tuple[str, str]:
        return (self.target_type.value, self.target_id)


class AppPermission(RecordModel):
    id: str = Field(min_length=1)
    target_type: PermissionTargetType
    target_id: str = Field(min_length=1)
    email: str
    level: PermissionLevel

    @field_validator("email", mode="before")
    @classmethod
    def _normalize_email(cls, value: Any) -> str:
        return normalize_email(value)

    @property
    def target(self) -> PermissionTarget:
        return PermissionTarget(target_type=self.target_type, target_id=self.target_id)

    def grants(self, required: PermissionLevel) -> bool:
        return self.level.rank >= required.rank


class AppConnection(RecordModel):
    """Stored credentials a table uses to reach its connector."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    connector: str = Field(min_length=1)
    content: str | None = None


__all__ = ["AppConnection", "AppPermission", "PermissionTarget", "normalize_email"]
