"""
Domain Models for ClipShare API
===============================

This module defines the core data structures used throughout the application.
Field aliases match the camelCase keys stored in MongoDB and returned to
clients (`_id`, `coverImage`, `refreshToken`, ...), while Python code uses
snake_case attribute names.

Design Principle: These models are "pure" - they have no dependencies on
external services, databases, or frameworks.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    """
    A registered user as stored in the document store.

    Attributes:
        id: Document id (string form of the ObjectId)
        fullname: Display name
        email: Unique email address
        username: Unique, lowercased handle
        password: bcrypt hash, never returned to clients
        avatar: URL of the avatar image on the asset host
        cover_image: URL of the cover image, or "" when none was uploaded
        refresh_token: The single currently valid refresh token, if any
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    fullname: str
    email: str
    username: str
    password: str
    avatar: str
    cover_image: str = Field(default="", alias="coverImage")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")


class Like(BaseModel):
    """
    Join record between a user and the one item they liked.

    Exactly one of video, comment or tweet is set.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = Field(default=None, alias="_id")
    video: Optional[str] = None
    comment: Optional[str] = None
    tweet: Optional[str] = None
    liked_by: str = Field(..., alias="likedBy")
    created_at: datetime = Field(default_factory=utc_now, alias="createdAt")
    updated_at: datetime = Field(default_factory=utc_now, alias="updatedAt")

    @model_validator(mode="after")
    def check_single_target(self) -> "Like":
        targets = [t for t in (self.video, self.comment, self.tweet) if t]
        if len(targets) != 1:
            raise ValueError("A like must reference exactly one of video, comment or tweet")
        return self

    @property
    def target_type(self) -> str:
        """Name of the liked item type ('video', 'comment' or 'tweet')."""
        if self.video:
            return "video"
        if self.comment:
            return "comment"
        return "tweet"


class UploadedAsset(BaseModel):
    """Result of a successful upload to the remote asset store."""
    url: str
    public_id: str
    size: int = 0


class TokenPair(BaseModel):
    """An access token and the refresh token issued alongside it."""
    access_token: str
    refresh_token: str
