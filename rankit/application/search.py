import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from rankit.application.debounce import DEFAULT_QUIESCENCE_SECONDS, Debouncer
from rankit.application.lookup import MIN_QUERY_LENGTH, MediaLookup
from rankit.crosscutting.logging import CorrelationContext, log_error, log_search_complete
from rankit.domain.entities import MediaSearchResult, MediaType
from rankit.domain.ports import Scheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SearchOutcome:
    """Results delivered to the search UI for one settled query."""

    token: int
    query: str
    media_type: MediaType
    results: List[MediaSearchResult]
    failed: bool = False


class SearchController:
    """Debounced media search with protection against stale responses.

    Each settled query takes a new generation token. A response is delivered
    only if its token is still the latest when it arrives; anything older was
    superseded and is dropped.
    """

    def __init__(self,
                 lookup: MediaLookup,
                 scheduler: Scheduler,
                 on_results: Callable[[SearchOutcome], None],
                 media_type: MediaType = MediaType.MOVIE,
                 delay: float = DEFAULT_QUIESCENCE_SECONDS):
        self._lookup = lookup
        self._scheduler = scheduler
        self._on_results = on_results
        self._media_type = media_type
        self._debouncer = Debouncer(self._on_settled, scheduler, delay)
        self._generation = 0
        self._last_query: Optional[str] = None
        self._closed = False
        self.is_loading = False

    @property
    def media_type(self) -> MediaType:
        return self._media_type

    @property
    def generation(self) -> int:
        return self._generation

    def on_input(self, text: str) -> None:
        """Feed one raw keystroke update."""
        self._debouncer.push(text)

    def set_media_type(self, media_type: MediaType) -> None:
        """Switch provider; a query already settled is searched again right away."""
        if media_type is self._media_type:
            return
        self._media_type = media_type
        if self._last_query is not None and not self._debouncer.pending:
            self._start(self._last_query)

    def clear(self) -> None:
        self._debouncer.cancel()
        self._generation += 1
        self._last_query = None
        self.is_loading = False

    def close(self) -> None:
        self._debouncer.close()
        self._generation += 1
        self._closed = True
        self.is_loading = False

    def _on_settled(self, query: str) -> None:
        self._start(query)

    def _start(self, query: str) -> None:
        self._generation += 1
        token = self._generation
        self._last_query = query
        media_type = self._media_type

        if len(query.strip()) < MIN_QUERY_LENGTH:
            self.is_loading = False
            self._on_results(SearchOutcome(token=token, query=query, media_type=media_type, results=[]))
            return

        self.is_loading = True
        self._scheduler.run_blocking(
            self._lookup.search, query, media_type,
            on_done=lambda results, error: self._finish(token, query, media_type, results, error),
        )

    def _finish(self, token: int, query: str, media_type: MediaType,
                results: Optional[List[MediaSearchResult]], error: Optional[BaseException]) -> None:
        with CorrelationContext(query_token=str(token), media_type=media_type.value):
            if self._closed or token != self._generation:
                logger.debug(f"Discarding stale response for '{query}' (token {token}, latest {self._generation})")
                return

            self.is_loading = False
            if error is not None:
                log_error(logger, f"Search for '{query}' failed, showing no results", error, query=query)
                self._on_results(SearchOutcome(token=token, query=query, media_type=media_type,
                                               results=[], failed=True))
                return

            log_search_complete(logger, query, len(results or []))
            self._on_results(SearchOutcome(token=token, query=query, media_type=media_type,
                                           results=list(results or [])))
