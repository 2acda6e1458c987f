from unittest.mock import Mock

import pytest
import requests

from rankit.domain.entities import MediaType
from rankit.domain.errors import NotFound, RateLimited, SearchFailure
from rankit.infrastructure.providers.google_books import GoogleBooksProvider


def _response(payload=None, status_code=200, headers=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.headers = headers or {}
    response.json.return_value = payload if payload is not None else {}
    return response


DUNE = {
    'id': 'B1hSG45JCX4C',
    'volumeInfo': {
        'title': 'Dune',
        'subtitle': 'Edición especial',
        'authors': ['Frank Herbert'],
        'publisher': 'Debolsillo',
        'publishedDate': '2003-05',
        'description': 'Arrakis.',
        'industryIdentifiers': [
            {'type': 'ISBN_10', 'identifier': '8497596823'},
            {'type': 'ISBN_13', 'identifier': '9788497596824'},
        ],
        'pageCount': 784,
        'categories': ['Fiction'],
        'averageRating': 4.5,
        'language': 'es',
        'imageLinks': {'thumbnail': 'http://books.google.com/books/content?id=B1h&zoom=1&source=gbs_api'},
    },
}


class TestGoogleBooksProvider:
    """Contract tests for the Google Books adapter."""

    def setup_method(self):
        """Set up test fixtures."""
        self.session = Mock()
        self.provider = GoogleBooksProvider(session=self.session)

    def test_search_maps_volumes(self):
        """Volumes are normalized into book results."""
        self.session.get.return_value = _response({'items': [DUNE]})

        [book] = self.provider.search("dune", MediaType.BOOK)

        assert book.external_id == 'B1hSG45JCX4C'
        assert book.external_source.value == 'google_books'
        assert book.title == 'Dune: Edición especial'
        assert book.original_title == 'Dune'
        assert book.author == 'Frank Herbert'
        assert book.isbn == '9788497596824'
        assert book.page_count == 784
        assert book.publisher == 'Debolsillo'
        assert book.release_year == 2003
        assert book.genres == ['Fiction']
        assert book.cover_image_url == 'https://books.google.com/books/content?id=B1h&zoom=2&source=gbs_api'
        assert book.link_url == 'https://books.google.com/books?id=B1hSG45JCX4C'

    def test_search_params(self):
        """Search pages by startIndex and restricts the language."""
        self.session.get.return_value = _response({'totalItems': 0})

        assert self.provider.search("dune", MediaType.BOOK, page=3) == []

        url = self.session.get.call_args[0][0]
        params = self.session.get.call_args[1]['params']
        assert url == 'https://www.googleapis.com/books/v1/volumes'
        assert params['q'] == 'dune'
        assert params['startIndex'] == 40
        assert params['maxResults'] == 20
        assert params['langRestrict'] == 'es'
        assert 'key' not in params

    def test_api_key_and_no_language(self):
        provider = GoogleBooksProvider(api_key='books-key', lang_restrict=None, session=self.session)
        self.session.get.return_value = _response({'items': []})

        provider.search("dune")

        params = self.session.get.call_args[1]['params']
        assert params['key'] == 'books-key'
        assert 'langRestrict' not in params

    def test_isbn_10_fallback_and_missing_fields(self):
        volume = {'id': 'x', 'volumeInfo': {
            'title': 'Sin portada',
            'industryIdentifiers': [{'type': 'ISBN_10', 'identifier': '0441013597'}],
        }}
        self.session.get.return_value = _response({'items': [volume]})

        [book] = self.provider.search("portada")

        assert book.isbn == '0441013597'
        assert book.author is None
        assert book.cover_image_url is None
        assert book.genres == []

    def test_prefers_medium_cover_in_search(self):
        volume = {'id': 'x', 'volumeInfo': {'title': 'T', 'imageLinks': {
            'thumbnail': 'http://t', 'medium': 'http://m', 'large': 'http://l'}}}
        self.session.get.return_value = _response({'items': [volume]})

        [book] = self.provider.search("t")
        assert book.cover_image_url == 'https://m'

    def test_details_prefer_large_cover(self):
        """Detail lookups use the largest cover available."""
        self.session.get.return_value = _response(DUNE)

        details = self.provider.get_details('B1hSG45JCX4C')

        assert self.session.get.call_args[0][0].endswith('/volumes/B1hSG45JCX4C')
        assert details.cover_image_url.endswith('zoom=3&source=gbs_api')
        assert details.cast == []

    def test_not_found(self):
        self.session.get.return_value = _response(status_code=404)
        with pytest.raises(NotFound):
            self.provider.get_details('missing')

    def test_rate_limit(self):
        self.session.get.return_value = _response(status_code=429)
        with pytest.raises(RateLimited) as exc_info:
            self.provider.search("dune")
        assert exc_info.value.retry_after_ms == 1000

    def test_search_not_found_is_a_search_failure(self):
        self.session.get.return_value = _response(status_code=404)
        with pytest.raises(SearchFailure) as exc_info:
            self.provider.search("dune")
        assert not isinstance(exc_info.value, NotFound)

    def test_volume_without_id_is_a_search_failure(self):
        self.session.get.return_value = _response({'items': [{'volumeInfo': {'title': 'Dune'}}]})
        with pytest.raises(SearchFailure):
            self.provider.search("dune")

    def test_missing_categories_give_empty_genres(self):
        self.session.get.return_value = _response({'items': [{'id': 'x1', 'volumeInfo': {'title': 'Dune'}}]})
        [result] = self.provider.search("dune")
        assert result.genres == []

    def test_rate_limit_with_unparseable_header(self):
        self.session.get.return_value = _response(status_code=429, headers={'Retry-After': 'later'})
        with pytest.raises(RateLimited) as exc_info:
            self.provider.search("dune")
        assert exc_info.value.retry_after_ms == 1000

    def test_network_error(self):
        self.session.get.side_effect = requests.Timeout("slow")
        with pytest.raises(SearchFailure):
            self.provider.search("dune")

    def test_trending_is_empty(self):
        assert self.provider.trending() == []
        self.session.get.assert_not_called()

    def test_rejects_video_types(self):
        with pytest.raises(ValueError):
            self.provider.search("dune", MediaType.MOVIE)
