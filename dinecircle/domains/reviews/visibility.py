"""
Per-viewer visibility of other users' reviews.

Two independent relations gate what a viewer sees, one per endpoint:

* Profile listings (``visible_reviews``): owner sees everything; a viewer who
  shares at least one group with the author sees *all* of the author's
  reviews, including ones posted under groups the viewer is not in; anyone
  else sees nothing.
* Home timeline (``following_feed``): reviews by users the viewer follows.
  Group overlap plays no part.
"""

import asyncio
import math
from typing import Any, Optional

from dinecircle.domains.reviews.models import (
    FeedResponse,
    PaginationMetadata,
    ReviewAccess,
    ReviewCursor,
    ReviewResponse,
    UserReviewsResponse,
)
from dinecircle.domains.reviews.repository import ReviewStore


class VisibilityResolver:
    def __init__(self, store: ReviewStore):
        self.store = store

    async def resolve_access(self, viewer_id: str, author_id: str) -> ReviewAccess:
        if viewer_id == author_id:
            return ReviewAccess.owner

        viewer_groups, author_groups = await asyncio.gather(
            self.store.get_group_ids(viewer_id),
            self.store.get_group_ids(author_id),
        )
        if viewer_groups & author_groups:
            return ReviewAccess.shared_group
        return ReviewAccess.none

    async def visible_reviews(
        self,
        author_id: str,
        viewer_id: str,
        page: int = 1,
        limit: int = 10,
        cursor: Optional[ReviewCursor] = None,
    ) -> UserReviewsResponse:
        """
        Reviews by ``author_id`` that ``viewer_id`` may see.

        Args:
            author_id: Whose reviews to list
            viewer_id: The authenticated caller
            page: 1-based page for offset pagination (first page)
            limit: Page size
            cursor: Keyset position; takes precedence over ``page``

        Returns:
            Page of reviews, offset metadata (``page`` is None in cursor mode)
            and the keyset cursor to continue
        """
        access = await self.resolve_access(viewer_id, author_id)
        page_number = None if cursor else page

        if access is ReviewAccess.none:
            # Provably empty: skip both the page and the count query
            return UserReviewsResponse(
                reviews=[],
                pagination=PaginationMetadata(
                    page=page_number,
                    limit=limit,
                    total=0,
                    totalPages=0,
                ),
                nextCursor=None,
                hasMore=False,
            )

        rows, total = await asyncio.gather(
            self.store.list_reviews(
                [author_id],
                limit=limit,
                offset=(page - 1) * limit,
                cursor=cursor,
            ),
            self.store.count_reviews(author_id),
        )
        reviews = await self._format(rows)

        return UserReviewsResponse(
            reviews=reviews,
            pagination=PaginationMetadata(
                page=page_number,
                limit=limit,
                total=total,
                totalPages=math.ceil(total / limit) if limit else 0,
            ),
            nextCursor=_next_cursor(reviews),
            hasMore=len(reviews) == limit,
        )

    async def following_feed(
        self,
        viewer_id: str,
        limit: int = 20,
        cursor: Optional[ReviewCursor] = None,
    ) -> FeedResponse:
        """Home timeline: reviews by followed users, newest first."""
        following = await self.store.get_following_ids(viewer_id)
        if not following:
            return FeedResponse(reviews=[], nextCursor=None, hasMore=False)

        rows = await self.store.list_reviews(following, limit=limit, cursor=cursor)
        reviews = await self._format(rows)

        return FeedResponse(
            reviews=reviews,
            nextCursor=_next_cursor(reviews),
            hasMore=len(reviews) == limit,
        )

    async def _format(self, rows: list[dict[str, Any]]) -> list[ReviewResponse]:
        if not rows:
            return []
        author_ids = list(dict.fromkeys(row["author_id"] for row in rows))
        authors = await self.store.get_authors(author_ids)
        return [ReviewResponse.from_row(row, authors.get(row["author_id"])) for row in rows]


def _next_cursor(reviews: list[ReviewResponse]) -> Optional[ReviewCursor]:
    if not reviews:
        return None
    last = reviews[-1]
    return ReviewCursor(created_at=last.created_at, id=last.id)
