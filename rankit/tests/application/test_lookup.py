from unittest.mock import Mock

import pytest

from rankit.application.lookup import MediaLookup
from rankit.domain.entities import ExternalSource, MediaType
from rankit.domain.errors import SearchFailure


class TestMediaLookup:
    """Tests for routing between catalog providers."""

    def setup_method(self):
        self.video = Mock()
        self.books = Mock()
        self.video.search.return_value = ["video-result"]
        self.books.search.return_value = ["book-result"]
        self.lookup = MediaLookup(self.video, self.books)

    @pytest.mark.parametrize("media_type", [MediaType.MOVIE, MediaType.SERIES])
    def test_video_types_go_to_video_catalog(self, media_type):
        assert self.lookup.search("matrix", media_type) == ["video-result"]
        self.video.search.assert_called_once_with("matrix", media_type, 1)
        self.books.search.assert_not_called()

    def test_books_go_to_book_catalog(self):
        assert self.lookup.search("dune", MediaType.BOOK, page=2) == ["book-result"]
        self.books.search.assert_called_once_with("dune", MediaType.BOOK, 2)

    @pytest.mark.parametrize("query", ["", " ", "a", " a ", None])
    def test_short_queries_skip_providers(self, query):
        assert self.lookup.search(query, MediaType.MOVIE) == []
        self.video.search.assert_not_called()

    def test_query_is_trimmed(self):
        self.lookup.search("  matrix  ", MediaType.MOVIE)
        self.video.search.assert_called_once_with("matrix", MediaType.MOVIE, 1)

    def test_results_are_not_cached(self):
        self.lookup.search("matrix", MediaType.MOVIE)
        self.lookup.search("matrix", MediaType.MOVIE)
        assert self.video.search.call_count == 2

    def test_provider_failure_propagates(self):
        self.video.search.side_effect = SearchFailure("down")
        with pytest.raises(SearchFailure):
            self.lookup.search("matrix", MediaType.MOVIE)

    def test_details_routing(self):
        self.lookup.get_details("603", MediaType.MOVIE, ExternalSource.TMDB)
        self.video.get_details.assert_called_once_with("603", MediaType.MOVIE)

        self.lookup.get_details("zyTCAlFPjgYC", MediaType.MOVIE, ExternalSource.GOOGLE_BOOKS)
        self.books.get_details.assert_called_once_with("zyTCAlFPjgYC", MediaType.BOOK)

    def test_trending(self):
        self.lookup.trending(MediaType.SERIES, "day")
        self.video.trending.assert_called_once_with(MediaType.SERIES, "day")
