from sqlalchemy import Column, Integer, String, ForeignKey, Text, DateTime, func, Index
from sqlalchemy.orm import relationship

from .database import Base


# ---------------------------
# USER MODEL
# ---------------------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    pages = relationship("WikiPage", back_populates="author")
    comments = relationship("Comment", back_populates="author")


# ---------------------------
# WIKI PAGE MODEL
# ---------------------------
class WikiPage(Base):
    __tablename__ = "wiki_pages"

    id = Column(Integer, primary_key=True, index=True)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
    author_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), nullable=False)

    author = relationship("User", back_populates="pages")
    comments = relationship(
        "Comment",
        back_populates="page",
        order_by="Comment.id",
        passive_deletes=True,
    )


# ---------------------------
# COMMENT MODEL
# ---------------------------
class Comment(Base):
    __tablename__ = "comments"
    __table_args__ = (
        Index("ix_comments_wiki_page_slug", "wiki_page_slug"),
    )

    id = Column(Integer, primary_key=True)
    wiki_page_slug = Column(
        String(255),
        ForeignKey("wiki_pages.slug", ondelete="CASCADE"),
        nullable=False,
    )
    author_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)  # length enforced by PageService
    created_at = Column(DateTime, server_default=func.now(), nullable=False)

    page = relationship("WikiPage", back_populates="comments")
    author = relationship("User", back_populates="comments")
