# services/page_acl.py
from typing import Optional


def can_mutate(user: Optional[object], resource: Optional[object]) -> bool:
    """Only the author of a page may change it; anonymous users never can."""
    if user is None or resource is None:
        return False
    author_id = getattr(resource, "author_id", None)
    return author_id is not None and author_id == user.id
