"""
API Response Models
===================

Pydantic models for API responses.

Every response uses the same envelope:
    success: {statusCode, data, message, success: true}
    error:   {statusCode, message, success: false}
"""

from pydantic import BaseModel, Field, ConfigDict, model_validator
from typing import Any

from api.models.user import PublicUser


class ApiResponse(BaseModel):
    """Success envelope. `success` is derived from the status code."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "statusCode": 200,
                "data": {},
                "message": "Success",
                "success": True
            }
        }
    )

    status_code: int = Field(..., alias="statusCode")
    data: Any = Field(default=None)
    message: str = Field(default="Success")
    success: bool = Field(default=True)

    @model_validator(mode="before")
    @classmethod
    def derive_success(cls, values):
        if isinstance(values, dict) and "success" not in values:
            code = values.get("statusCode", values.get("status_code", 200))
            values = {**values, "success": code < 400}
        return values


class ErrorResponse(BaseModel):
    """Error envelope, documented for OpenAPI."""

    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode")
    message: str
    success: bool = Field(default=False)


class TokenData(BaseModel):
    """Token pair as returned in response bodies."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")
    refresh_token: str = Field(..., alias="refreshToken")


class LoginData(TokenData):
    """Login payload: the sanitized user alongside both tokens."""

    user: PublicUser
