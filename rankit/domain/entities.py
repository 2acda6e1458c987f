from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import ValidationFailure


class MediaType(str, Enum):
    MOVIE = "movie"
    SERIES = "series"
    BOOK = "book"


class ExternalSource(str, Enum):
    TMDB = "tmdb"
    GOOGLE_BOOKS = "google_books"


class SortMode(str, Enum):
    """Session-wide strategy governing the order of ranking items."""

    SCORE = "score"
    MANUAL = "manual"
    DATE = "date"


MIN_SCORE = 1
MAX_SCORE = 10

SCORE_LABELS = {
    1: "Terrible",
    2: "Very bad",
    3: "Bad",
    4: "Mediocre",
    5: "Passable",
    6: "Decent",
    7: "Good",
    8: "Very good",
    9: "Excellent",
    10: "Masterpiece",
}

_VIDEO_ONLY_FIELDS = ("director", "duration_minutes", "seasons_count", "episodes_count")
_BOOK_ONLY_FIELDS = ("author", "isbn", "page_count", "publisher")


def score_label(score: Optional[int]) -> Optional[str]:
    if score is None:
        return None
    return SCORE_LABELS.get(score)


def validate_score(score: Any) -> int:
    """Return score if it is an integer in 1..10, else raise ValidationFailure."""
    if isinstance(score, bool) or not isinstance(score, int):
        raise ValidationFailure(f"Score must be an integer between {MIN_SCORE} and {MAX_SCORE}")
    if score < MIN_SCORE or score > MAX_SCORE:
        raise ValidationFailure(f"Score must be between {MIN_SCORE} and {MAX_SCORE}, got {score}")
    return score


@dataclass(frozen=True)
class MediaSearchResult:
    """Normalized catalog entry independent of the provider that returned it."""

    external_id: str
    external_source: ExternalSource
    title: str
    media_type: MediaType
    original_title: Optional[str] = None
    description: Optional[str] = None
    cover_image_url: Optional[str] = None
    release_year: Optional[int] = None
    # Movies/series
    director: Optional[str] = None
    duration_minutes: Optional[int] = None
    seasons_count: Optional[int] = None
    episodes_count: Optional[int] = None
    # Books
    author: Optional[str] = None
    isbn: Optional[str] = None
    page_count: Optional[int] = None
    publisher: Optional[str] = None
    # Common
    genres: List[str] = field(default_factory=list)
    external_rating: Optional[float] = None
    language: Optional[str] = None
    country: Optional[str] = None

    def __post_init__(self):
        expected_source = (ExternalSource.GOOGLE_BOOKS if self.media_type is MediaType.BOOK
                           else ExternalSource.TMDB)
        if self.external_source is not expected_source:
            raise ValidationFailure(
                f"{self.media_type.value} results come from {expected_source.value}, "
                f"not {self.external_source.value}"
            )
        if self.media_type is MediaType.BOOK:
            foreign = [name for name in _VIDEO_ONLY_FIELDS if getattr(self, name) is not None]
        else:
            foreign = [name for name in _BOOK_ONLY_FIELDS if getattr(self, name) is not None]
        if foreign:
            raise ValidationFailure(
                f"{self.media_type.value} result cannot carry {', '.join(foreign)}"
            )

    @property
    def link_url(self) -> str:
        """Public page for the entry on its provider's site."""
        if self.external_source is ExternalSource.GOOGLE_BOOKS:
            return f"https://books.google.com/books?id={self.external_id}"
        kind = "tv" if self.media_type is MediaType.SERIES else "movie"
        return f"https://www.themoviedb.org/{kind}/{self.external_id}"

    def to_json(self) -> Dict[str, Any]:
        data = {
            "external_id": self.external_id,
            "external_source": self.external_source.value,
            "title": self.title,
            "type": self.media_type.value,
            "original_title": self.original_title,
            "description": self.description,
            "cover_image_url": self.cover_image_url,
            "release_year": self.release_year,
            "genres": list(self.genres),
            "external_rating": self.external_rating,
            "language": self.language,
            "country": self.country,
        }
        specific = _BOOK_ONLY_FIELDS if self.media_type is MediaType.BOOK else _VIDEO_ONLY_FIELDS
        for name in specific:
            data[name] = getattr(self, name)
        return data

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "MediaSearchResult":
        """Rebuild a result from to_json() output, e.g. echoed back by a client."""
        try:
            media_type = MediaType(data["type"])
            source = ExternalSource(data["external_source"])
            external_id = str(data["external_id"])
            title = data["title"]
        except (KeyError, ValueError) as e:
            raise ValidationFailure(f"Invalid media payload: {e}")

        specific = _BOOK_ONLY_FIELDS if media_type is MediaType.BOOK else _VIDEO_ONLY_FIELDS
        optional = ("original_title", "description", "cover_image_url", "release_year",
                    "external_rating", "language", "country") + specific
        return cls(
            external_id=external_id,
            external_source=source,
            title=title,
            media_type=media_type,
            genres=list(data.get("genres") or []),
            **{name: data.get(name) for name in optional},
        )


@dataclass(frozen=True)
class MediaDetails(MediaSearchResult):
    """Full catalog entry as returned by a provider's detail endpoint."""

    cast: List[str] = field(default_factory=list)
    trailer_url: Optional[str] = None
    imdb_id: Optional[str] = None

    def to_json(self) -> Dict[str, Any]:
        data = super().to_json()
        data.update({
            "cast": list(self.cast),
            "trailer_url": self.trailer_url,
            "imdb_id": self.imdb_id,
        })
        return data


@dataclass
class RankingItemDraft:
    """In-memory ranking item awaiting publication."""

    id: str
    title: str
    sequence: int
    score: Optional[int] = None
    review: Optional[str] = None
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    media: Optional[MediaSearchResult] = None
    is_manual_position: bool = False

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "score": self.score,
            "score_label": score_label(self.score),
            "review": self.review,
            "image_url": self.image_url,
            "link_url": self.link_url,
            "is_manual_position": self.is_manual_position,
            "media": self.media.to_json() if self.media else None,
        }


@dataclass(frozen=True)
class RankingMetadata:
    title: str
    category_id: Optional[str]
    media_type: MediaType
    description: Optional[str] = None
    cover_image: Optional[str] = None


@dataclass(frozen=True)
class PublishedItem:
    """Persisted-item record handed to the ranking store."""

    position: int
    title: str
    score: Optional[int]
    review: Optional[str]
    is_manual_position: bool
    image_url: Optional[str] = None
    link_url: Optional[str] = None
    external_id: Optional[str] = None
    external_source: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "position": self.position,
            "title": self.title,
            "score": self.score,
            "review": self.review,
            "is_manual_position": self.is_manual_position,
            "image_url": self.image_url,
            "link_url": self.link_url,
            "external_id": self.external_id,
            "external_source": self.external_source,
        }


@dataclass(frozen=True)
class PublishedRanking:
    id: str
    title: str
    item_count: int


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
