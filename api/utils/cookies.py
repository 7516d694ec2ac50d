"""
Auth Cookie Helpers
===================

Both tokens travel as http-only cookies as well as in the JSON body, so
cookie-based browsers and bearer-token clients are both served. The Secure
flag is only set in production.
"""

from fastapi import Response

from config import Settings
from models import TokenPair


ACCESS_TOKEN_COOKIE = "accessToken"
REFRESH_TOKEN_COOKIE = "refreshToken"


def cookie_options(settings: Settings) -> dict:
    return {
        "httponly": True,
        "secure": settings.is_production,
    }


def set_auth_cookies(response: Response, tokens: TokenPair, settings: Settings) -> None:
    options = cookie_options(settings)
    response.set_cookie(ACCESS_TOKEN_COOKIE, tokens.access_token, **options)
    response.set_cookie(REFRESH_TOKEN_COOKIE, tokens.refresh_token, **options)


def clear_auth_cookies(response: Response, settings: Settings) -> None:
    options = cookie_options(settings)
    response.delete_cookie(ACCESS_TOKEN_COOKIE, **options)
    response.delete_cookie(REFRESH_TOKEN_COOKIE, **options)
