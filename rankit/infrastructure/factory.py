from typing import Callable, Optional

from rankit.application.lookup import MediaLookup
from rankit.application.search import SearchController, SearchOutcome
from rankit.crosscutting.config import SecretManager, get_secret_manager
from rankit.domain.entities import MediaType
from rankit.domain.ports import Scheduler
from rankit.infrastructure.backend.supabase import SupabaseRankingStore
from rankit.infrastructure.providers.google_books import GoogleBooksProvider
from rankit.infrastructure.providers.tmdb import TMDBProvider


def create_lookup(secret_manager: Optional[SecretManager] = None) -> MediaLookup:
    """Build the media lookup over both catalog providers."""
    manager = secret_manager or get_secret_manager()
    return MediaLookup(
        video_catalog=TMDBProvider(**manager.get_tmdb_config()),
        book_catalog=GoogleBooksProvider(**manager.get_google_books_config()),
    )


def create_store(secret_manager: Optional[SecretManager] = None) -> SupabaseRankingStore:
    """Build the ranking store. Raises ConfigError when the backend is not configured."""
    manager = secret_manager or get_secret_manager()
    return SupabaseRankingStore(**manager.get_supabase_config())


def create_search_controller(scheduler: Scheduler,
                             on_results: Callable[[SearchOutcome], None],
                             media_type: MediaType = MediaType.MOVIE,
                             secret_manager: Optional[SecretManager] = None) -> SearchController:
    """Build a debounced search over the configured providers.

    The quiet period comes from RANKIT_DEBOUNCE_MS.
    """
    manager = secret_manager or get_secret_manager()
    return SearchController(
        create_lookup(manager),
        scheduler,
        on_results,
        media_type=media_type,
        delay=manager.get_debounce_seconds(),
    )
