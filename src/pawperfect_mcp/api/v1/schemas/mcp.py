from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class AuthenticateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    admin_key: str | None = Field(default=None, alias="adminKey")
    owner_id: int | None = Field(default=None, alias="ownerId")

    def credential(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class AuthenticateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role: str
    token: str
    owner_id: int | None = Field(default=None, alias="ownerId")


class ContextRequest(BaseModel):
    contexts: list[str] | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)


class BookingStatusRequest(BaseModel):
    status: str
