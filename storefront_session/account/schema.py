"""Pydantic models for the authenticated account session."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..output_sanitizer import redact_phone


class AccountUser(BaseModel):
    """Authenticated user record. Dumped by alias for the `user` storage key."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    display_name: Optional[str] = Field(default=None, alias="displayName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    is_verified: bool = Field(default=False, alias="isVerified")
    role: Optional[str] = None

    @classmethod
    def from_api(cls, raw: dict[str, Any]) -> "AccountUser":
        """Build from the backend's snake_case user payload."""
        user_id = raw.get("id") or raw.get("uid")
        if not user_id:
            raise ValueError("User payload has no id")
        return cls(
            id=str(user_id),
            display_name=raw.get("display_name") or raw.get("displayName") or raw.get("name"),
            phone_number=raw.get("phone_number") or raw.get("phoneNumber"),
            photo_url=raw.get("photo_url") or raw.get("photoURL"),
            is_verified=bool(raw.get("is_verified", raw.get("isVerified", False))),
            role=raw.get("role"),
        )

    def to_dict(self) -> dict:
        """Display form for tool output. Phone number masked."""
        data = self.model_dump(exclude_none=True)
        if self.phone_number:
            data["phone_number"] = redact_phone(self.phone_number)
        return data


class AccountSession(BaseModel):
    """A user and the bearer token issued for them. Never one without the other."""
    model_config = ConfigDict(frozen=True)

    user: AccountUser
    token: str
    refresh_token: Optional[str] = None
