import logging
from typing import Any, Dict, List, Optional

import requests

from rankit.domain.entities import ExternalSource, MediaDetails, MediaSearchResult, MediaType
from rankit.domain.errors import NotFound, RateLimited, SearchFailure
from rankit.domain.ports import MediaCatalog
from rankit.infrastructure.providers.tmdb import parse_retry_after, parse_year

logger = logging.getLogger(__name__)


def _isbn(info: Dict[str, Any]) -> Optional[str]:
    identifiers = info.get('industryIdentifiers') or []
    for wanted in ('ISBN_13', 'ISBN_10'):
        for ident in identifiers:
            if ident.get('type') == wanted:
                return ident.get('identifier')
    return None


def _https(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    return url.replace('http:', 'https:', 1)


class GoogleBooksProvider(MediaCatalog):
    """Google Books adapter serving book media."""

    BASE_URL = "https://www.googleapis.com/books/v1"

    def __init__(self,
                 api_key: Optional[str] = None,
                 lang_restrict: Optional[str] = 'es',
                 max_results: int = 20,
                 timeout: float = 10,
                 session: Optional[requests.Session] = None):
        """Initialize Google Books provider.

        Args:
            api_key: Optional API key; the volumes endpoint works without one
            lang_restrict: Two-letter language filter for search results
            max_results: Page size for searches
            timeout: Per-request timeout in seconds
            session: Optional requests session (tests inject a mock)
        """
        self.api_key = api_key
        self.lang_restrict = lang_restrict
        self.max_results = max_results
        self.timeout = timeout
        self._session = session or requests.Session()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None,
             not_found: bool = False) -> Dict[str, Any]:
        query = dict(params or {})
        if self.api_key:
            query['key'] = self.api_key
        try:
            response = self._session.get(f"{self.BASE_URL}{path}", params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise SearchFailure(f"Google Books request failed: {e}")

        if response.status_code == 429:
            raise RateLimited(retry_after_ms=parse_retry_after(response.headers.get('Retry-After')))
        if response.status_code == 404:
            if not_found:
                raise NotFound(f"Google Books resource not found: {path}")
            raise SearchFailure(f"Google Books endpoint not found: {path}")
        if not response.ok:
            raise SearchFailure(f"Google Books API error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise SearchFailure(f"Google Books returned invalid JSON: {e}")

    @staticmethod
    def _check_type(media_type: MediaType) -> None:
        if media_type is not MediaType.BOOK:
            raise ValueError(f"Google Books does not serve {media_type.value} media")

    def _volume_fields(self, volume: Dict[str, Any], cover_url: Optional[str]) -> Dict[str, Any]:
        info = volume.get('volumeInfo') or {}
        title = info.get('title', '')
        subtitle = info.get('subtitle')
        authors = info.get('authors')
        return dict(
            external_id=volume['id'],
            external_source=ExternalSource.GOOGLE_BOOKS,
            title=f"{title}: {subtitle}" if subtitle else title,
            media_type=MediaType.BOOK,
            original_title=title,
            description=info.get('description'),
            cover_image_url=_https(cover_url),
            release_year=parse_year(info.get('publishedDate')),
            author=', '.join(authors) if authors else None,
            isbn=_isbn(info),
            page_count=info.get('pageCount'),
            publisher=info.get('publisher'),
            genres=info.get('categories') or [],
            external_rating=info.get('averageRating'),
            language=info.get('language'),
        )

    def search(self, query: str, media_type: MediaType = MediaType.BOOK, page: int = 1) -> List[MediaSearchResult]:
        self._check_type(media_type)
        params = {
            'q': query,
            'maxResults': self.max_results,
            'startIndex': (max(page, 1) - 1) * self.max_results,
            'orderBy': 'relevance',
        }
        if self.lang_restrict:
            params['langRestrict'] = self.lang_restrict

        data = self._get("/volumes", params)
        results = []
        try:
            for volume in data.get('items') or []:
                links = (volume.get('volumeInfo') or {}).get('imageLinks') or {}
                thumbnail = links.get('thumbnail')
                cover = links.get('medium') or links.get('large') or (
                    thumbnail.replace('zoom=1', 'zoom=2') if thumbnail else None
                )
                results.append(MediaSearchResult(**self._volume_fields(volume, cover)))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SearchFailure(f"Google Books returned a malformed volume: {e!r}")
        return results

    def get_details(self, external_id: str, media_type: MediaType = MediaType.BOOK) -> MediaDetails:
        self._check_type(media_type)
        volume = self._get(f"/volumes/{external_id}", not_found=True)
        links = (volume.get('volumeInfo') or {}).get('imageLinks') or {}
        thumbnail = links.get('thumbnail')
        cover = links.get('large') or links.get('medium') or (
            thumbnail.replace('zoom=1', 'zoom=3') if thumbnail else None
        )
        return MediaDetails(**self._volume_fields(volume, cover))

    def trending(self, media_type: MediaType = MediaType.BOOK, window: str = 'week') -> List[MediaSearchResult]:
        """Google Books has no trending feed."""
        self._check_type(media_type)
        return []
