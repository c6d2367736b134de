"""Login and registration wire models."""

from __future__ import annotations

from pydantic import BaseModel


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: str
    phone: str


class User(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone: str | None = None
    created_at: str
    updated_at: str


class AuthResponse(BaseModel):
    """Response of both the login and register endpoints."""

    access_token: str
    refresh_token: str
    user: User
