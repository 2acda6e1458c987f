import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from rankit.domain.entities import (
    Category, PublishedItem, PublishedRanking, RankingMetadata, validate_score,
)
from rankit.domain.errors import PublicationFailure
from rankit.domain.ports import RankingStore

logger = logging.getLogger(__name__)


class SupabaseRankingStore(RankingStore):
    """Ranking store backed by the backend's PostgREST HTTP surface.

    Authorization and row-level policies are enforced by the backend; this
    adapter only forwards the user's session token.
    """

    def __init__(self,
                 url: str,
                 anon_key: str,
                 access_token: Optional[str] = None,
                 user_id: Optional[str] = None,
                 timeout: float = 10,
                 session: Optional[requests.Session] = None):
        """Initialize the store.

        Args:
            url: Project URL, e.g. https://xyz.supabase.co
            anon_key: Public anon key sent as the apikey header
            access_token: Signed-in user's JWT; falls back to the anon key
            user_id: Signed-in user's id, required for publishing
            timeout: Per-request timeout in seconds
            session: Optional requests session (tests inject a mock)
        """
        self.rest_url = f"{url.rstrip('/')}/rest/v1"
        self.anon_key = anon_key
        self.access_token = access_token
        self.user_id = user_id
        self.timeout = timeout
        self._session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            'apikey': self.anon_key,
            'Authorization': f"Bearer {self.access_token or self.anon_key}",
            'Content-Type': 'application/json',
            'Prefer': 'return=representation',
        }

    def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            response = self._session.request(
                method, f"{self.rest_url}{path}",
                headers=self._headers(), timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            raise PublicationFailure(f"Backend request failed: {e}")

        if not response.ok:
            try:
                message = response.json().get('message', response.text)
            except ValueError:
                message = response.text
            raise PublicationFailure(f"Backend error {response.status_code}: {message}")

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise PublicationFailure(f"Backend returned invalid JSON: {e}")

    def create_ranking_with_items(self, metadata: RankingMetadata,
                                  items: Sequence[PublishedItem]) -> PublishedRanking:
        if not self.user_id:
            raise PublicationFailure("Must be logged in to publish a ranking")

        rows = self._request('POST', '/rankings', json={
            'user_id': self.user_id,
            'title': metadata.title,
            'description': metadata.description,
            'category_id': metadata.category_id,
            'cover_image': metadata.cover_image,
            'media_type': metadata.media_type.value,
        })
        if not rows:
            raise PublicationFailure("Backend did not return the created ranking")
        ranking = rows[0] if isinstance(rows, list) else rows
        ranking_id = ranking['id']

        records = [dict(item.to_record(), ranking_id=ranking_id) for item in items]
        try:
            self._request('POST', '/ranking_items', json=records)
        except PublicationFailure:
            self._rollback_ranking(ranking_id)
            raise

        logger.info(f"Created ranking {ranking_id} with {len(records)} items")
        return PublishedRanking(id=ranking_id, title=ranking.get('title', metadata.title), item_count=len(records))

    def _rollback_ranking(self, ranking_id: str) -> None:
        """Remove a ranking whose items could not be stored."""
        try:
            self._request('DELETE', '/rankings', params={'id': f"eq.{ranking_id}"})
            logger.warning(f"Rolled back ranking {ranking_id} after item insert failure")
        except PublicationFailure as e:
            logger.error(f"Failed to roll back ranking {ranking_id}: {e}")

    def update_item_score(self, item_id: str, score: int) -> None:
        validate_score(score)
        self._request('PATCH', '/ranking_items', params={'id': f"eq.{item_id}"}, json={'score': score})

    def list_categories(self) -> List[Category]:
        rows = self._request('GET', '/categories', params={'select': '*', 'order': 'name.asc'}) or []
        return [
            Category(
                id=str(row['id']),
                name=row['name'],
                slug=row.get('slug'),
                description=row.get('description'),
            )
            for row in rows
        ]
