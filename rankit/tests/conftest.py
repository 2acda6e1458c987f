import os
import sys
import pytest


def _ensure_project_root_on_sys_path() -> None:
    here = os.path.dirname(__file__)
    project_root = os.path.abspath(os.path.join(here, "..", ".."))
    if project_root not in sys.path:
        sys.path.insert(0, project_root)


_ensure_project_root_on_sys_path()

from rankit.domain.entities import ExternalSource, MediaSearchResult, MediaType  # noqa: E402


@pytest.fixture(autouse=True)
def _clear_provider_env():
    """Ensure API keys and backend settings do not leak across tests.
    A developer shell may export these; clear before each test and restore
    afterwards so tests explicitly setting them remain deterministic.
    """
    keys = [
        'TMDB_API_KEY', 'GOOGLE_BOOKS_API_KEY', 'SUPABASE_URL', 'SUPABASE_ANON_KEY',
        'RANKIT_LANGUAGE', 'RANKIT_BOOKS_LANG', 'RANKIT_DEBOUNCE_MS', 'RANKIT_HTTP_TIMEOUT',
    ]
    backup = {k: os.environ.get(k) for k in keys}
    for k in keys:
        os.environ.pop(k, None)
    try:
        yield
    finally:
        for k, v in backup.items():
            if v is None:
                os.environ.pop(k, None)
            else:
                os.environ[k] = v


class _TimerHandle:
    def __init__(self, due: float, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock standing in for the UI event loop.

    Timers fire only when advance() moves the clock past their due time.
    Blocking calls are queued until resolve_next() runs them, so tests
    control the order in which responses arrive.
    """

    def __init__(self):
        self.now = 0.0
        self.timers = []
        self.pending_calls = []

    def call_later(self, delay, callback):
        handle = _TimerHandle(self.now + delay, callback)
        self.timers.append(handle)
        return handle

    def active_timers(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [t for t in self.active_timers() if t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            timer.fired = True
            timer.callback()
        self.now = target

    def run_blocking(self, func, *args, on_done=None):
        self.pending_calls.append((func, args, on_done))

    def resolve(self, index: int = 0) -> None:
        func, args, on_done = self.pending_calls.pop(index)
        try:
            result = func(*args)
        except Exception as e:
            if on_done:
                on_done(None, e)
            return
        if on_done:
            on_done(result, None)

    def resolve_next(self) -> None:
        self.resolve(0)


@pytest.fixture
def fake_scheduler():
    return FakeScheduler()


@pytest.fixture
def make_movie():
    def _make(external_id="1", title="Movie", year=None, **kwargs):
        return MediaSearchResult(
            external_id=external_id,
            external_source=ExternalSource.TMDB,
            title=title,
            media_type=MediaType.MOVIE,
            release_year=year,
            **kwargs
        )
    return _make


@pytest.fixture(autouse=True)
def _restore_rankit_logger():
    """setup_logging() replaces handlers on the package logger; undo it after each test."""
    import logging
    logger = logging.getLogger('rankit')
    handlers, level = list(logger.handlers), logger.level
    try:
        yield
    finally:
        logger.handlers[:] = handlers
        logger.setLevel(level)
