from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

Role = Literal["patient", "staff", "admin"]


class CurrentUser(BaseModel):
    """The authenticated caller, resolved from a bearer token."""

    model_config = ConfigDict(frozen=True)

    auth_user_id: str
    user_id: str
    user_profile_id: str
    email: str | None = None
    role: Role
    first_name: str | None = None
    last_name: str | None = None
    email_confirmed: bool = False
    access_token: str

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part).strip()
