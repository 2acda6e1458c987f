import logging
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Dict, List, Optional

import requests

from rankit.domain.entities import ExternalSource, MediaDetails, MediaSearchResult, MediaType
from rankit.domain.errors import NotFound, RateLimited, SearchFailure
from rankit.domain.ports import MediaCatalog

logger = logging.getLogger(__name__)


def parse_year(date_value: Optional[str]) -> Optional[int]:
    """Return the leading year of an ISO-like date string, if any."""
    if not date_value:
        return None
    try:
        return int(date_value.split('-')[0])
    except ValueError:
        return None


def parse_retry_after(value: Optional[str], default_ms: int = 1000) -> int:
    """Milliseconds to wait from a Retry-After header (delta seconds or HTTP date)."""
    if not value:
        return default_ms
    try:
        return max(int(value), 0) * 1000
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default_ms
    if when is None:
        return default_ms
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    delta = (when - datetime.now(timezone.utc)).total_seconds()
    return max(int(delta * 1000), 0)


class TMDBProvider(MediaCatalog):
    """The Movie Database adapter serving movies and series."""

    BASE_URL = "https://api.themoviedb.org/3"
    IMAGE_BASE_URL = "https://image.tmdb.org/t/p"
    TRENDING_LIMIT = 20

    def __init__(self,
                 api_key: Optional[str],
                 language: str = 'es-ES',
                 timeout: float = 10,
                 session: Optional[requests.Session] = None):
        """Initialize TMDB provider.

        Args:
            api_key: TMDB v3 API key. Without it every search yields no results.
            language: Language used for titles, overviews and genre names
            timeout: Per-request timeout in seconds
            session: Optional requests session (tests inject a mock)
        """
        self.api_key = api_key
        self.language = language
        self.timeout = timeout
        self._session = session or requests.Session()
        self._genres: Dict[str, Dict[int, str]] = {}

    @staticmethod
    def _kind(media_type: MediaType) -> str:
        if media_type is MediaType.MOVIE:
            return 'movie'
        if media_type is MediaType.SERIES:
            return 'tv'
        raise ValueError(f"TMDB does not serve {media_type.value} media")

    def image_url(self, path: Optional[str], size: str = 'w500') -> Optional[str]:
        if not path:
            return None
        return f"{self.IMAGE_BASE_URL}/{size}{path}"

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None,
             not_found: bool = False) -> Dict[str, Any]:
        """GET a TMDB endpoint.

        A 404 raises NotFound only when ``not_found`` is set (detail lookups);
        everywhere else it is a plain SearchFailure.
        """
        query = {'api_key': self.api_key, 'language': self.language}
        query.update(params or {})
        try:
            response = self._session.get(f"{self.BASE_URL}{path}", params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise SearchFailure(f"TMDB request failed: {e}")

        if response.status_code == 429:
            raise RateLimited(retry_after_ms=parse_retry_after(response.headers.get('Retry-After')))
        if response.status_code == 404:
            if not_found:
                raise NotFound(f"TMDB resource not found: {path}")
            raise SearchFailure(f"TMDB endpoint not found: {path}")
        if not response.ok:
            raise SearchFailure(f"TMDB API error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise SearchFailure(f"TMDB returned invalid JSON: {e}")

    def _load_genres(self, kind: str) -> Dict[int, str]:
        """Genre id -> name map, fetched once per kind.

        A failed fetch is not cached, so the next search retries it.
        """
        if self._genres.get(kind):
            return self._genres[kind]
        try:
            data = self._get(f"/genre/{kind}/list")
            genres = {g['id']: g['name'] for g in data.get('genres') or [] if 'id' in g and 'name' in g}
        except (SearchFailure, TypeError, AttributeError) as e:
            logger.warning(f"Failed to fetch TMDB {kind} genres: {e}")
            return {}
        self._genres[kind] = genres
        return genres

    def _result_to_domain(self, payload: Dict[str, Any], media_type: MediaType,
                          genres: Dict[int, str]) -> MediaSearchResult:
        if media_type is MediaType.SERIES:
            title = payload.get('name', '')
            original_title = payload.get('original_name')
            date_value = payload.get('first_air_date')
        else:
            title = payload.get('title', '')
            original_title = payload.get('original_title')
            date_value = payload.get('release_date')

        return MediaSearchResult(
            external_id=str(payload['id']),
            external_source=ExternalSource.TMDB,
            title=title,
            media_type=media_type,
            original_title=original_title,
            description=payload.get('overview'),
            cover_image_url=self.image_url(payload.get('poster_path')),
            release_year=parse_year(date_value),
            genres=[genres[g] for g in payload.get('genre_ids', []) if g in genres],
            external_rating=payload.get('vote_average'),
            language=payload.get('original_language'),
        )

    def search(self, query: str, media_type: MediaType, page: int = 1) -> List[MediaSearchResult]:
        kind = self._kind(media_type)
        if not self.api_key:
            logger.warning("TMDB API key not configured")
            return []

        genres = self._load_genres(kind)
        data = self._get(f"/search/{kind}", {
            'query': query,
            'page': page,
            'include_adult': 'false',
        })
        return self._map_results(data, media_type, genres)

    def _map_results(self, data: Dict[str, Any], media_type: MediaType,
                     genres: Dict[int, str], limit: Optional[int] = None) -> List[MediaSearchResult]:
        try:
            items = (data.get('results') or [])[:limit]
            return [self._result_to_domain(item, media_type, genres) for item in items]
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise SearchFailure(f"TMDB returned a malformed result: {e!r}")

    def trending(self, media_type: MediaType, window: str = 'week') -> List[MediaSearchResult]:
        kind = self._kind(media_type)
        if window not in ('day', 'week'):
            raise ValueError(f"Unsupported trending window: {window}")
        if not self.api_key:
            return []

        genres = self._load_genres(kind)
        data = self._get(f"/trending/{kind}/{window}")
        return self._map_results(data, media_type, genres, limit=self.TRENDING_LIMIT)

    def get_details(self, external_id: str, media_type: MediaType) -> MediaDetails:
        kind = self._kind(media_type)
        if not self.api_key:
            raise SearchFailure("TMDB API key not configured")

        data = self._get(f"/{kind}/{external_id}", {'append_to_response': 'credits,videos'},
                         not_found=True)
        credits = data.get('credits') or {}
        cast = [c['name'] for c in (credits.get('cast') or [])[:10] if c.get('name')]

        trailer_key = next(
            (v.get('key') for v in (data.get('videos') or {}).get('results', [])
             if v.get('type') == 'Trailer' and v.get('site') == 'YouTube'),
            None,
        )
        trailer_url = f"https://www.youtube.com/watch?v={trailer_key}" if trailer_key else None
        genres = [g['name'] for g in data.get('genres', []) if g.get('name')]

        common = dict(
            external_id=str(data['id']),
            external_source=ExternalSource.TMDB,
            media_type=media_type,
            description=data.get('overview'),
            cover_image_url=self.image_url(data.get('poster_path')),
            genres=genres,
            external_rating=data.get('vote_average'),
            language=data.get('original_language'),
            cast=cast,
            trailer_url=trailer_url,
        )

        if media_type is MediaType.SERIES:
            creators = data.get('created_by') or []
            run_times = data.get('episode_run_time') or []
            countries = data.get('origin_country') or []
            return MediaDetails(
                title=data.get('name', ''),
                original_title=data.get('original_name'),
                release_year=parse_year(data.get('first_air_date')),
                director=creators[0].get('name') if creators else None,
                seasons_count=data.get('number_of_seasons'),
                episodes_count=data.get('number_of_episodes'),
                duration_minutes=run_times[0] if run_times else None,
                country=countries[0] if countries else None,
                **common,
            )

        director = next(
            (c.get('name') for c in (credits.get('crew') or []) if c.get('job') == 'Director'),
            None,
        )
        countries = data.get('production_countries') or []
        return MediaDetails(
            title=data.get('title', ''),
            original_title=data.get('original_title'),
            release_year=parse_year(data.get('release_date')),
            director=director,
            duration_minutes=data.get('runtime'),
            country=countries[0].get('iso_3166_1') if countries else None,
            imdb_id=data.get('imdb_id'),
            **common,
        )
