import shutil
import tempfile
from unittest.mock import Mock, patch

from rankit.application.search import SearchController
from rankit.crosscutting.config import SecretManager
from rankit.domain.entities import MediaType
from rankit.infrastructure.factory import create_lookup, create_search_controller
from rankit.infrastructure.providers.google_books import GoogleBooksProvider
from rankit.infrastructure.providers.tmdb import TMDBProvider


class TestFactory:
    """Tests for wiring configured components together."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.manager = SecretManager(self.temp_dir)

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_lookup_uses_configured_providers(self, monkeypatch):
        monkeypatch.setenv('TMDB_API_KEY', 'tmdb-key')
        monkeypatch.setenv('RANKIT_LANGUAGE', 'en-US')

        lookup = create_lookup(self.manager)

        assert isinstance(lookup._video_catalog, TMDBProvider)
        assert lookup._video_catalog.api_key == 'tmdb-key'
        assert lookup._video_catalog.language == 'en-US'
        assert isinstance(lookup._book_catalog, GoogleBooksProvider)

    def test_search_controller_waits_for_configured_debounce(self, monkeypatch, fake_scheduler):
        """Keystrokes settle after RANKIT_DEBOUNCE_MS, not the built-in default."""
        monkeypatch.setenv('RANKIT_DEBOUNCE_MS', '500')
        outcomes = []

        controller = create_search_controller(fake_scheduler, outcomes.append, secret_manager=self.manager)
        controller.on_input("dune")

        assert isinstance(controller, SearchController)
        fake_scheduler.advance(0.4)
        assert fake_scheduler.pending_calls == []
        fake_scheduler.advance(0.1)
        assert len(fake_scheduler.pending_calls) == 1

    def test_search_controller_media_type(self, fake_scheduler):
        controller = create_search_controller(fake_scheduler, Mock(), media_type=MediaType.BOOK,
                                              secret_manager=self.manager)
        assert controller.media_type is MediaType.BOOK

    def test_search_controller_defaults_to_global_config(self, fake_scheduler):
        with patch('rankit.infrastructure.factory.get_secret_manager', return_value=self.manager) as getter:
            create_search_controller(fake_scheduler, Mock())
        getter.assert_called_once_with()
