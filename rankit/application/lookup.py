import logging
from typing import List

from rankit.domain.entities import ExternalSource, MediaDetails, MediaSearchResult, MediaType
from rankit.domain.ports import MediaCatalog

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 2


class MediaLookup:
    """Routes searches to the provider serving each media type.

    Results keep the provider's relevance order and are never cached, so a
    repeated query hits the provider again. Provider errors surface as
    SearchFailure; callers treat them as zero results.
    """

    def __init__(self, video_catalog: MediaCatalog, book_catalog: MediaCatalog):
        self._video_catalog = video_catalog
        self._book_catalog = book_catalog

    def _catalog_for(self, media_type: MediaType) -> MediaCatalog:
        if media_type in (MediaType.MOVIE, MediaType.SERIES):
            return self._video_catalog
        if media_type is MediaType.BOOK:
            return self._book_catalog
        raise ValueError(f"Unknown media type: {media_type}")

    def search(self, query: str, media_type: MediaType, page: int = 1) -> List[MediaSearchResult]:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        results = self._catalog_for(media_type).search(query, media_type, page)
        logger.debug(f"Lookup for {media_type.value} '{query}' returned {len(results)} results")
        return results

    def get_details(self, external_id: str, media_type: MediaType,
                    source: ExternalSource) -> MediaDetails:
        # Book ids only make sense to the book provider, whatever type the caller passes.
        if source is ExternalSource.GOOGLE_BOOKS:
            return self._book_catalog.get_details(external_id, MediaType.BOOK)
        return self._video_catalog.get_details(external_id, media_type)

    def trending(self, media_type: MediaType, window: str = 'week') -> List[MediaSearchResult]:
        return self._catalog_for(media_type).trending(media_type, window)
