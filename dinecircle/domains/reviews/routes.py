# dinecircle/domains/reviews/routes.py
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from supabase import AsyncClient

from dinecircle.core.database import get_db
from dinecircle.core.settings import settings
from dinecircle.domains.auth.dependencies import get_current_user_id
from dinecircle.domains.reviews.models import (
    FeedResponse,
    ReviewCursor,
    UserReviewsResponse,
)
from dinecircle.domains.reviews.repository import ReviewRepository
from dinecircle.domains.reviews.visibility import VisibilityResolver

router = APIRouter(tags=["Reviews"])


def _cursor(
    cursor_created_at: Optional[datetime], cursor_id: Optional[str]
) -> Optional[ReviewCursor]:
    if cursor_created_at is None:
        return None
    return ReviewCursor(created_at=cursor_created_at, id=cursor_id)


@router.get(
    "/users/{user_id}/reviews",
    response_model=UserReviewsResponse,
    operation_id="getUserReviews",
)
async def get_user_reviews(
    user_id: str,
    page: int = Query(1, ge=1, le=1000, description="Page number (offset mode)"),
    limit: int = Query(
        settings.REVIEWS_DEFAULT_LIMIT, ge=1, le=100, description="Reviews per page"
    ),
    cursor_created_at: Optional[datetime] = Query(
        None, description="created_at of the last review already seen"
    ),
    cursor_id: Optional[str] = Query(
        None, description="id of the last review already seen (tie-breaker)"
    ),
    viewer_id: str = Depends(get_current_user_id),
    db: AsyncClient = Depends(get_db),
) -> UserReviewsResponse:
    """
    Get a user's reviews as visible to the caller.

    Own profile shows everything; a caller sharing any group with the author
    sees all of the author's reviews; otherwise the list is empty.
    """
    resolver = VisibilityResolver(ReviewRepository(db))
    return await resolver.visible_reviews(
        author_id=user_id,
        viewer_id=viewer_id,
        page=page,
        limit=limit,
        cursor=_cursor(cursor_created_at, cursor_id),
    )


@router.get(
    "/reviews/feed",
    response_model=FeedResponse,
    operation_id="getFollowingFeed",
)
async def get_following_feed(
    limit: int = Query(
        settings.FEED_DEFAULT_LIMIT, ge=1, le=100, description="Reviews per page"
    ),
    cursor_created_at: Optional[datetime] = Query(None),
    cursor_id: Optional[str] = Query(None),
    viewer_id: str = Depends(get_current_user_id),
    db: AsyncClient = Depends(get_db),
) -> FeedResponse:
    """Home timeline of reviews by users the caller follows."""
    resolver = VisibilityResolver(ReviewRepository(db))
    return await resolver.following_feed(
        viewer_id=viewer_id,
        limit=limit,
        cursor=_cursor(cursor_created_at, cursor_id),
    )
