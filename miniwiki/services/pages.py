# services/pages.py
import logging
from typing import List, Optional

from fastapi import Depends, Request
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from miniwiki.database import get_db
from miniwiki.models import Comment, User, WikiPage
from miniwiki.schemas import CommentView, PageView, UserRead
from miniwiki.services.page_acl import can_mutate

logger = logging.getLogger(__name__)


def comment_length(content: str) -> int:
    """Length in UTF-16 code units, the way browsers count form input."""
    return len(content.encode("utf-16-le", "surrogatepass")) // 2


class PageError(Exception):
    """A request the page rules refuse; carries the HTTP status to answer with."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class EditForbidden(PageError):
    status_code = 403

    def __init__(self, slug: str):
        super().__init__("You do not have permission to edit this page.")
        self.slug = slug


class CommentTooLong(PageError):
    status_code = 400

    def __init__(self, limit: int):
        super().__init__(f"Comment cannot exceed {limit} characters.")
        self.limit = limit


class CommentLimitReached(PageError):
    status_code = 403

    def __init__(self, limit: int):
        super().__init__("Comment limit reached for this page.")
        self.limit = limit


class PageService:
    def __init__(self, session: AsyncSession, comment_max_length: int = 100, comment_limit: int = 20):
        self.session = session
        self.comment_max_length = comment_max_length
        self.comment_limit = comment_limit

    # ---------- pages ----------
    async def list_slugs(self) -> List[str]:
        result = await self.session.execute(select(WikiPage.slug).order_by(WikiPage.id))
        return list(result.scalars().all())

    async def get_page(self, slug: str) -> Optional[WikiPage]:
        result = await self.session.execute(select(WikiPage).where(WikiPage.slug == slug))
        return result.scalar_one_or_none()

    async def get_page_view(self, slug: str) -> Optional[PageView]:
        q = (
            select(WikiPage, User.username)
            .outerjoin(User, WikiPage.author_id == User.id)
            .where(WikiPage.slug == slug)
        )
        row = (await self.session.execute(q)).first()
        if row is None:
            return None
        page, author_username = row
        view = PageView.model_validate(page)
        view.author_username = author_username
        return view

    async def get_editable_page(self, user: UserRead, slug: str) -> Optional[WikiPage]:
        """Existing page for the editor, None if the slug is still free."""
        page = await self.get_page(slug)
        if page is not None and not can_mutate(user, page):
            raise EditForbidden(slug)
        return page

    async def save_page(self, user: UserRead, slug: str, content: str) -> WikiPage:
        page = await self.get_editable_page(user, slug)
        if page is None:
            page = WikiPage(slug=slug, title=slug, content=content, author_id=user.id)
            self.session.add(page)
            try:
                await self.session.commit()
            except IntegrityError:
                # someone created the slug between our lookup and insert
                await self.session.rollback()
                page = await self.get_editable_page(user, slug)
                if page is None:
                    raise
                return await self._update_content(page, content)
            logger.info("Page %r created by user %s", slug, user.id)
            return page
        return await self._update_content(page, content)

    async def _update_content(self, page: WikiPage, content: str) -> WikiPage:
        await self.session.execute(
            update(WikiPage)
            .where(WikiPage.id == page.id)
            .values(content=content, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        await self.session.refresh(page)
        logger.info("Page %r updated by user %s", page.slug, page.author_id)
        return page

    # ---------- comments ----------
    async def list_comments(self, slug: str) -> List[CommentView]:
        q = (
            select(Comment, User.username)
            .join(User, Comment.author_id == User.id)
            .where(Comment.wiki_page_slug == slug)
            .order_by(Comment.id.asc())
        )
        rows = (await self.session.execute(q)).all()
        out: List[CommentView] = []
        for comment, username in rows:
            view = CommentView(
                id=comment.id,
                wiki_page_slug=comment.wiki_page_slug,
                author_id=comment.author_id,
                author_username=username,
                content=comment.content,
                created_at=comment.created_at,
            )
            out.append(view)
        return out

    async def count_comments(self, slug: str) -> int:
        q = select(func.count(Comment.id)).where(Comment.wiki_page_slug == slug)
        return int((await self.session.execute(q)).scalar_one())

    async def add_comment(self, user: UserRead, slug: str, content: str) -> Comment:
        if comment_length(content) > self.comment_max_length:
            logger.info("Comment on %r by user %s rejected: too long", slug, user.id)
            raise CommentTooLong(self.comment_max_length)

        # Row lock on the page serializes concurrent comments on Postgres;
        # SQLite ignores FOR UPDATE.
        await self.session.execute(
            select(WikiPage.id).where(WikiPage.slug == slug).with_for_update()
        )
        if await self.count_comments(slug) >= self.comment_limit:
            await self.session.rollback()
            logger.info("Comment on %r by user %s rejected: page is full", slug, user.id)
            raise CommentLimitReached(self.comment_limit)

        comment = Comment(wiki_page_slug=slug, author_id=user.id, content=content)
        self.session.add(comment)
        await self.session.commit()
        logger.info("Comment %s added to %r by user %s", comment.id, slug, user.id)
        return comment


async def get_page_service(request: Request, session: AsyncSession = Depends(get_db)) -> PageService:
    settings = request.app.state.settings
    yield PageService(
        session,
        comment_max_length=settings.COMMENT_MAX_LENGTH,
        comment_limit=settings.COMMENT_LIMIT_PER_PAGE,
    )
