from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from posts_api.models import TITLE_MAX_LENGTH


class PostBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=TITLE_MAX_LENGTH, description="Post title (1-255 chars).")
    body: str = Field(..., min_length=1, description="Post body (non-empty).")


class PostIn(PostBase):
    """
    Schema for creating or replacing a post.

    Surrounding whitespace is trimmed before the length checks, so a blank value
    is reported as missing. Unknown keys are ignored.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")


class PostOut(PostBase):
    """Schema returned for a post."""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Database ID of the post.")
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PageLink(BaseModel):
    url: str | None
    label: str
    active: bool


class PostPage(BaseModel):
    """One page of posts plus the metadata needed to navigate the others."""
    current_page: int
    data: List[PostOut]
    first_page_url: str
    # "from" is a keyword, hence the alias.
    from_: int | None = Field(None, alias="from")
    last_page: int
    last_page_url: str
    links: List[PageLink]
    next_page_url: str | None
    path: str
    per_page: int
    prev_page_url: str | None
    to: int | None
    total: int

    model_config = ConfigDict(populate_by_name=True)
