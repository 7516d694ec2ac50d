"""
User Models
===========

Client-facing user shapes. A PublicUser is a stored User with the secret
fields (password hash and refresh token) left out.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from models import TokenPair, User


SECRET_FIELDS = {"password", "refresh_token"}


class PublicUser(BaseModel):
    """Sanitized user record returned by the API."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "_id": "665f1c2e9b1e8a3d4c5b6a79",
                "fullname": "A B",
                "email": "a@x.com",
                "username": "ab",
                "avatar": "https://res.cloudinary.com/demo/image/upload/avatar.png",
                "coverImage": "",
                "createdAt": "2024-06-04T10:30:00Z",
                "updatedAt": "2024-06-04T10:30:00Z"
            }
        }
    )

    id: str = Field(..., alias="_id")
    fullname: str
    email: str
    username: str
    avatar: str
    cover_image: str = Field(default="", alias="coverImage")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls.model_validate(user.model_dump(by_alias=True, exclude=SECRET_FIELDS))

    def to_response(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SessionResult(BaseModel):
    """Outcome of a successful login: the sanitized user and its new tokens."""
    user: PublicUser
    tokens: TokenPair
