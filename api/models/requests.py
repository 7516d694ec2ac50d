"""
API Request Models
==================

Pydantic models for API request validation.

Fields are optional at this level: presence checks happen in the auth
service so that missing values produce the API's own 400 responses.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class RegisterRequest(BaseModel):
    """Text fields of the multipart registration form."""

    fullname: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    """Login credentials. Email is required; username is an alternate lookup key."""

    email: Optional[str] = Field(default=None, description="Registered email address")
    username: Optional[str] = Field(default=None, description="Registered username")
    password: Optional[str] = Field(default=None, description="Plain text password")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "a@x.com",
                "password": "p1"
            }
        }
    )


class RefreshTokenRequest(BaseModel):
    """Body form of the refresh request, used when no refreshToken cookie is sent."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
