import logging
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response
from starlette.requests import cookie_parser

from .models import User
from .schemas import UserRead
from .tokens import TokenService
from .users import UserStore, get_user_store


logger = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "auth_token"


def read_token(cookie_header: Optional[str], cookie_name: str = DEFAULT_COOKIE_NAME) -> Optional[str]:
    if not cookie_header:
        return None
    return cookie_parser(cookie_header).get(cookie_name) or None


async def resolve_user(
    cookie_header: Optional[str],
    tokens: TokenService,
    store: UserStore,
    cookie_name: str = DEFAULT_COOKIE_NAME,
) -> Optional[User]:
    """Map a raw Cookie header to a user, or None for anonymous.

    No database call is made unless the cookie carries a token that
    verifies. A valid token whose user no longer exists is anonymous too.
    """
    token = read_token(cookie_header, cookie_name)
    if token is None:
        return None
    user_id = tokens.verify(token)
    if user_id is None:
        return None
    user = await store.get_by_id(user_id)
    if user is None:
        logger.info("Session token for unknown user %s", user_id)
    return user


def get_token_service(request: Request) -> TokenService:
    return request.app.state.tokens


# Dependency to get the current user (None for anonymous requests).
# Handlers get a detached snapshot, unaffected by commits and rollbacks
# later in the request.
async def get_current_user(
    request: Request,
    tokens: TokenService = Depends(get_token_service),
    store: UserStore = Depends(get_user_store),
) -> Optional[UserRead]:
    user = await resolve_user(
        request.headers.get("cookie"),
        tokens,
        store,
        request.app.state.settings.COOKIE_NAME,
    )
    return UserRead.model_validate(user) if user is not None else None


def login_redirect_exception() -> HTTPException:
    return HTTPException(status_code=302, headers={"Location": "/login"})


# Dependency to enforce authentication on HTML routes
async def require_html_user(user: Optional[UserRead] = Depends(get_current_user)) -> UserRead:
    if user is None:
        raise login_redirect_exception()
    return user


# -------------------------
# Cookie transport
# -------------------------
def set_auth_cookie(response: Response, request: Request, token: str) -> None:
    settings = request.app.state.settings
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value=token,
        max_age=settings.TOKEN_LIFETIME_SECONDS,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


def clear_auth_cookie(response: Response, request: Request) -> None:
    settings = request.app.state.settings
    response.set_cookie(
        key=settings.COOKIE_NAME,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )
