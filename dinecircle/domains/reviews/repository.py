# dinecircle/domains/reviews/repository.py
import logging
from typing import Any, Optional, Protocol

from supabase import AsyncClient

from dinecircle.core.database import execute
from dinecircle.domains.reviews.models import ReviewAuthor, ReviewCursor
from dinecircle.shared.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

REVIEW_COLUMNS = (
    "*, restaurants(id, name, address, city, cuisine, google_data, "
    "google_place_id, google_maps_url, lat, lng, price_level)"
)


class ReviewStore(Protocol):
    """Read access to memberships, follows and reviews."""

    async def get_group_ids(self, user_id: str) -> set[str]: ...

    async def get_following_ids(self, user_id: str) -> list[str]: ...

    async def list_reviews(
        self,
        author_ids: list[str],
        limit: int,
        offset: int = 0,
        cursor: Optional[ReviewCursor] = None,
    ) -> list[dict[str, Any]]: ...

    async def count_reviews(self, author_id: str) -> int: ...

    async def get_authors(self, user_ids: list[str]) -> dict[str, ReviewAuthor]: ...


class ReviewRepository:
    """Supabase-backed ``ReviewStore``."""

    def __init__(self, db: AsyncClient):
        self.db = db

    async def get_group_ids(self, user_id: str) -> set[str]:
        try:
            response = await execute(
                self.db.table("user_groups").select("group_id").eq("user_id", user_id)
            )
        except Exception:
            logger.error(f"Failed to load groups for user {user_id}", exc_info=True)
            raise ExternalServiceError("Failed to fetch group memberships")
        return {row["group_id"] for row in response.data or []}

    async def get_following_ids(self, user_id: str) -> list[str]:
        try:
            response = await execute(
                self.db.table("follows")
                .select("following_id")
                .eq("follower_id", user_id)
            )
        except Exception:
            logger.error(f"Failed to load follows for user {user_id}", exc_info=True)
            raise ExternalServiceError("Failed to fetch follows")
        return [row["following_id"] for row in response.data or []]

    async def list_reviews(
        self,
        author_ids: list[str],
        limit: int,
        offset: int = 0,
        cursor: Optional[ReviewCursor] = None,
    ) -> list[dict[str, Any]]:
        """
        Reviews by the given authors, newest first.

        With a cursor the page is selected by keyset on (created_at, id);
        otherwise by offset.
        """
        query = self.db.table("reviews").select(REVIEW_COLUMNS)
        if len(author_ids) == 1:
            query = query.eq("author_id", author_ids[0])
        else:
            query = query.in_("author_id", author_ids)

        if cursor:
            created_at = cursor.created_at.isoformat()
            if cursor.id:
                query = query.or_(
                    f'created_at.lt."{created_at}",'
                    f'and(created_at.eq."{created_at}",id.lt.{cursor.id})'
                )
            else:
                query = query.lt("created_at", created_at)

        query = query.order("created_at", desc=True).order("id", desc=True)
        if cursor:
            query = query.limit(limit)
        else:
            query = query.range(offset, offset + limit - 1)

        try:
            response = await execute(query)
        except Exception:
            logger.error(f"Error fetching reviews for {author_ids}", exc_info=True)
            raise ExternalServiceError("Failed to fetch reviews")
        return list(response.data or [])

    async def count_reviews(self, author_id: str) -> int:
        try:
            response = await execute(
                self.db.table("reviews")
                .select("id", count="exact", head=True)
                .eq("author_id", author_id)
            )
        except Exception:
            logger.error(f"Error counting reviews for {author_id}", exc_info=True)
            raise ExternalServiceError("Failed to fetch reviews")
        return response.count or 0

    async def get_authors(self, user_ids: list[str]) -> dict[str, ReviewAuthor]:
        """Author display info; missing on lookup failure rather than fatal."""
        if not user_ids:
            return {}
        try:
            response = await execute(
                self.db.table("users")
                .select("id, name, full_name, email, avatar_url")
                .in_("id", user_ids)
            )
        except Exception:
            logger.warning(f"Error fetching author data for {user_ids}", exc_info=True)
            return {}
        return {row["id"]: ReviewAuthor.from_row(row) for row in response.data or []}
