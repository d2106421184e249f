# dinecircle/domains/reviews/models.py
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel


class ReviewAccess(str, Enum):
    """How much of an author's content a viewer may see."""

    owner = "owner"
    shared_group = "shared_group"
    none = "none"


class ReviewCursor(BaseModel):
    """Keyset position: the last row of the previous page."""

    created_at: datetime
    id: Optional[str] = None


class ReviewAuthor(BaseModel):
    id: str
    name: str
    full_name: Optional[str] = None
    email: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ReviewAuthor":
        # Email is never used as a display name
        return cls(
            id=row["id"],
            name=row.get("full_name") or row.get("name") or "User",
            full_name=row.get("full_name"),
            email=row.get("email"),
            avatar_url=row.get("avatar_url"),
        )


class ReviewResponse(BaseModel):
    """A review row with its restaurant and author joined in."""

    id: str
    author_id: str
    restaurant_id: Optional[str] = None
    group_id: Optional[str] = None
    created_at: datetime
    restaurant: Optional[dict[str, Any]] = None
    author: Optional[ReviewAuthor] = None

    model_config = {"extra": "allow"}

    @classmethod
    def from_row(
        cls, row: dict[str, Any], author: Optional[ReviewAuthor] = None
    ) -> "ReviewResponse":
        data = {
            k: v
            for k, v in row.items()
            if k not in ("restaurants", "restaurant", "author")
        }
        return cls(**data, restaurant=row.get("restaurants"), author=author)


class PaginationMetadata(BaseModel):
    """Offset pagination metadata for list responses.

    ``page`` is None for keyset (cursor) pages, which have no page number.
    """

    page: Optional[int] = None
    limit: int
    total: int
    totalPages: int


class UserReviewsResponse(BaseModel):
    reviews: List[ReviewResponse]
    pagination: PaginationMetadata
    nextCursor: Optional[ReviewCursor] = None
    hasMore: bool = False


class FeedResponse(BaseModel):
    reviews: List[ReviewResponse]
    nextCursor: Optional[ReviewCursor] = None
    hasMore: bool = False
