from __future__ import annotations

from typing import Any, Callable, List, Optional, Protocol, Sequence

from .entities import (
    Category, MediaDetails, MediaSearchResult, MediaType, PublishedItem,
    PublishedRanking, RankingMetadata,
)


class MediaCatalog(Protocol):
    """Port for a third-party catalog provider.

    Implementations map provider-specific payloads into MediaSearchResult and
    raise SearchFailure (or NotFound for detail lookups) on provider errors.
    """

    def search(self, query: str, media_type: MediaType, page: int = 1) -> List[MediaSearchResult]:
        """Return results in the provider's own relevance order."""

    def get_details(self, external_id: str, media_type: MediaType) -> MediaDetails:
        """Return the full entry for the given provider id."""

    def trending(self, media_type: MediaType, window: str = "week") -> List[MediaSearchResult]:
        """Return the provider's trending entries, if it has such a feed."""


class RankingStore(Protocol):
    """Port for the persistence backend."""

    def create_ranking_with_items(self, metadata: RankingMetadata,
                                  items: Sequence[PublishedItem]) -> PublishedRanking:
        """Persist a ranking and its ordered items in one logical operation."""

    def update_item_score(self, item_id: str, score: int) -> None:
        """Change the score of an already published item."""

    def list_categories(self) -> List[Category]:
        """Return categories ordered by name."""


class Cancellable(Protocol):
    def cancel(self) -> None:
        """Prevent the scheduled callback from running."""


class Scheduler(Protocol):
    """Port for the single-threaded event loop driving the composition flow."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Run callback once after delay seconds unless cancelled first."""

    def run_blocking(self, func: Callable[..., Any], *args: Any,
                     on_done: Optional[Callable[[Any, Optional[BaseException]], None]] = None) -> None:
        """Run a blocking call off the loop and deliver (result, error) back on it."""
