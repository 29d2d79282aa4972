"""User input/output schemas. The password hash never appears in a response."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator

from reader_api.schemas.common import ListOptions, reject_null


class UserBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr | None = None
    avatar: str | None = None
    bio: str | None = None


class UserCreate(UserBase):
    # bcrypt accepts max 72 bytes
    password: str = Field(..., min_length=1, max_length=72)


class UserUpdate(BaseModel):
    username: str | None = Field(None, min_length=1, max_length=50)
    email: EmailStr | None = None
    password: str | None = Field(None, min_length=1, max_length=72)
    avatar: str | None = None
    bio: str | None = None
    is_active: bool | None = None

    @field_validator("username", "password", "is_active")
    @classmethod
    def _not_null(cls, value):
        return reject_null(value)


class UserQuery(ListOptions):
    limit: int = Field(50, ge=1)
    is_active: bool | None = True


class UserResponse(UserBase):
    id: int
    is_active: bool
    last_login_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
