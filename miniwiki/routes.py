import logging
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from .models import User
from .schemas import UserRead
from .rendering import templates
from .services.page_acl import can_mutate
from .services.pages import CommentLimitReached, CommentTooLong, EditForbidden, PageService, get_page_service
from .session import (
    clear_auth_cookie,
    get_current_user,
    get_token_service,
    require_html_user,
    set_auth_cookie,
)
from .tokens import TokenService
from .users import InvalidPassword, UsernameTaken, UserStore, get_user_store

logger = logging.getLogger(__name__)

router = APIRouter()


def _render(request: Request, name: str, title: str, user: Optional[UserRead], status_code: int = 200, **context):
    context.update({
        "title": title,
        "user": user,
        "app_title": request.app.state.settings.APP_TITLE,
    })
    return templates.TemplateResponse(request, name, context, status_code=status_code)


def _page_url(slug: str) -> str:
    return f"/wiki/{quote(slug, safe='')}"


def _login_redirect() -> RedirectResponse:
    return RedirectResponse(url="/login", status_code=302)


def _session_redirect(request: Request, tokens: TokenService, user: User) -> RedirectResponse:
    resp = RedirectResponse(url="/wiki", status_code=302)
    set_auth_cookie(resp, request, tokens.issue(user.id))
    return resp


# ----------------------
# Authentication
# ----------------------
@router.get("/register", response_class=HTMLResponse)
async def register_page(request: Request, user: Optional[UserRead] = Depends(get_current_user)):
    return _render(request, "register.html", "Register", user)


@router.post("/register")
async def register_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    store: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
):
    # Logged-in users are not stopped from creating another account.
    if not username or not password:
        return _render(
            request, "register.html", "Register", None, status_code=400,
            error="Username and password are required.", username=username,
        )
    try:
        new_user = await store.create(username, password)
    except UsernameTaken:
        return _render(
            request, "register.html", "Register", None, status_code=409,
            error="Username already taken.", username=username,
        )
    except InvalidPassword:
        return _render(
            request, "register.html", "Register", None, status_code=400,
            error="Password contains characters that are not allowed.", username=username,
        )
    return _session_redirect(request, tokens, new_user)


@router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request, user: Optional[UserRead] = Depends(get_current_user)):
    return _render(request, "login.html", "Login", user)


@router.post("/login")
async def login_submit(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    store: UserStore = Depends(get_user_store),
    tokens: TokenService = Depends(get_token_service),
):
    user = await store.authenticate(username, password)
    if user is None:
        return _render(
            request, "login.html", "Login", None, status_code=401,
            error="Invalid username or password.", username=username,
        )
    logger.info("User %s logged in", user.id)
    return _session_redirect(request, tokens, user)


@router.post("/logout")
async def logout(request: Request):
    # The token itself stays valid until it expires; only the cookie goes.
    resp = RedirectResponse(url="/login", status_code=302)
    clear_auth_cookie(resp, request)
    return resp


# ----------------------
# Wiki
# ----------------------
@router.get("/", response_class=HTMLResponse)
@router.post("/", response_class=HTMLResponse)
@router.get("/wiki", response_class=HTMLResponse)
@router.post("/wiki", response_class=HTMLResponse)
async def wiki_index(
    request: Request,
    user: Optional[UserRead] = Depends(get_current_user),
    pages: PageService = Depends(get_page_service),
):
    slugs = await pages.list_slugs()
    return _render(request, "index.html", "Wiki", user, slugs=slugs)


@router.get("/wiki/new", response_class=HTMLResponse)
async def new_page_form(request: Request, user: UserRead = Depends(require_html_user)):
    return _render(request, "new.html", "New Wiki Page", user)


@router.post("/wiki/new")
async def new_page_submit(slug: str = Form(""), user: UserRead = Depends(require_html_user)):
    if not slug:
        return PlainTextResponse("Slug is required", status_code=400)
    return RedirectResponse(url=f"{_page_url(slug)}/edit", status_code=302)


@router.get("/wiki/{slug}/edit", response_class=HTMLResponse)
async def edit_page_form(
    request: Request,
    slug: str,
    user: UserRead = Depends(require_html_user),
    pages: PageService = Depends(get_page_service),
):
    try:
        page = await pages.get_editable_page(user, slug)
    except EditForbidden as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    content = page.content if page is not None else ""
    return _render(request, "edit.html", f"Edit {slug}", user, slug=slug, content=content)


@router.post("/wiki/{slug}/edit")
async def edit_page_submit(
    slug: str,
    content: str = Form(""),
    user: UserRead = Depends(require_html_user),
    pages: PageService = Depends(get_page_service),
):
    try:
        await pages.save_page(user, slug, content)
    except EditForbidden as exc:
        return PlainTextResponse(exc.message, status_code=exc.status_code)
    return RedirectResponse(url=_page_url(slug), status_code=302)


async def _render_page(
    request: Request,
    pages: PageService,
    page,
    user: Optional[UserRead],
    status_code: int = 200,
    error: Optional[str] = None,
):
    comments = await pages.list_comments(page.slug)
    return _render(
        request, "page.html", page.title, user, status_code=status_code,
        page=page,
        comments=comments,
        can_edit=can_mutate(user, page),
        comment_max_length=pages.comment_max_length,
        comment_limit=pages.comment_limit,
        error=error,
    )


@router.get("/wiki/{slug}", response_class=HTMLResponse)
async def view_page(
    request: Request,
    slug: str,
    user: Optional[UserRead] = Depends(get_current_user),
    pages: PageService = Depends(get_page_service),
):
    page = await pages.get_page_view(slug)
    if page is None:
        # a missing page is one waiting to be written
        return RedirectResponse(url=f"{_page_url(slug)}/edit", status_code=302)
    return await _render_page(request, pages, page, user)


@router.post("/wiki/{slug}")
async def add_comment(
    request: Request,
    slug: str,
    content: str = Form(""),
    user: Optional[UserRead] = Depends(get_current_user),
    pages: PageService = Depends(get_page_service),
):
    page = await pages.get_page_view(slug)
    if page is None:
        return RedirectResponse(url=f"{_page_url(slug)}/edit", status_code=302)
    if user is None:
        return _login_redirect()
    try:
        await pages.add_comment(user, slug, content)
    except (CommentTooLong, CommentLimitReached) as exc:
        return await _render_page(request, pages, page, user, status_code=exc.status_code, error=exc.message)
    # PRG: 303 makes the browser come back with a GET
    return RedirectResponse(url=str(request.url), status_code=303)
