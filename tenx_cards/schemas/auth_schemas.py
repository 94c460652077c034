import uuid
from typing import Annotated
from datetime import datetime

from pydantic import BaseModel, Field, StringConstraints

Email = Annotated[
    str,
    StringConstraints(strip_whitespace=True, to_lower=True, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$"),
]


class RegisterRequest(BaseModel):
    email: Email
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: Email
    password: str = Field(min_length=3)


class UpdatePasswordRequest(BaseModel):
    password: str = Field(min_length=8)


class UserResponse(BaseModel):
    id: uuid.UUID
    email: str
    created_at: datetime


class RegisterResponse(BaseModel):
    user: UserResponse
    message: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_at: int


class LoginResponse(BaseModel):
    user: UserResponse
    session: TokenResponse


class MessageResponse(BaseModel):
    message: str
