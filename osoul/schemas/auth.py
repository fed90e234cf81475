from pydantic import Field, field_validator

from osoul.constants import ROLES, Role
from osoul.schemas.common import CamelModel


class LoginRequest(CamelModel):
    email: str
    password: str


class UserOut(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: str


class AuthResponse(CamelModel):
    user: UserOut
    token: str


class MeResponse(CamelModel):
    user: UserOut


class RegisterRequest(CamelModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    role: str = Role.VIEWER.value

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("must be a valid email")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        v = (v or "").strip().lower()
        if v not in ROLES:
            raise ValueError(f"must be one of {sorted(ROLES)}")
        return v


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
