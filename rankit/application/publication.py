import logging
import uuid
from typing import List, Optional

from rankit.application.accumulator import ItemAccumulator
from rankit.application.drag import DragReorderSurface
from rankit.crosscutting.logging import CorrelationContext, log_error, log_publication
from rankit.domain.entities import MediaType, PublishedItem, PublishedRanking, RankingMetadata
from rankit.domain.errors import PublicationFailure, ValidationFailure
from rankit.domain.ports import RankingStore

logger = logging.getLogger(__name__)

MIN_ITEMS = 3


class PublicationAssembler:
    """Validates a composition and turns it into persisted-item records."""

    def __init__(self, min_items: int = MIN_ITEMS):
        self.min_items = min_items

    def validate(self, metadata: RankingMetadata, accumulator: ItemAccumulator) -> None:
        if not (metadata.title or "").strip():
            raise ValidationFailure("Give your ranking a title")
        if not metadata.category_id:
            raise ValidationFailure("Pick a category for your ranking")
        if len(accumulator) < self.min_items:
            raise ValidationFailure(f"A ranking needs at least {self.min_items} items")

    def assemble(self, metadata: RankingMetadata, accumulator: ItemAccumulator) -> List[PublishedItem]:
        """Positions follow the current display order, whatever the sort mode."""
        self.validate(metadata, accumulator)
        records = []
        for index, draft in enumerate(accumulator.items):
            records.append(PublishedItem(
                position=index + 1,
                title=draft.title,
                score=draft.score,
                review=draft.review,
                is_manual_position=draft.is_manual_position,
                image_url=draft.image_url,
                link_url=draft.link_url,
                external_id=draft.media.external_id if draft.media else None,
                external_source=draft.media.external_source.value if draft.media else None,
            ))
        return records

    def publish(self, metadata: RankingMetadata, accumulator: ItemAccumulator,
                store: RankingStore) -> PublishedRanking:
        """Submit the ranking. On failure the draft is left intact for a retry."""
        items = self.assemble(metadata, accumulator)
        try:
            published = store.create_ranking_with_items(metadata, items)
        except PublicationFailure as e:
            log_error(logger, "Ranking publication failed", e, item_count=len(items))
            raise

        accumulator.close()
        log_publication(logger, published.id, len(items), accumulator.sort_mode.value)
        return published


class CompositionSession:
    """One ranking being composed: metadata, items and the drag surface over them."""

    def __init__(self,
                 media_type: MediaType,
                 title: str = "",
                 description: Optional[str] = None,
                 category_id: Optional[str] = None,
                 session_id: Optional[str] = None):
        self.id = session_id or uuid.uuid4().hex
        self.media_type = media_type
        self.title = title
        self.description = description
        self.category_id = category_id
        self.accumulator = ItemAccumulator()
        self.drag_surface = DragReorderSurface(self.accumulator)
        self.published: Optional[PublishedRanking] = None

    def metadata(self) -> RankingMetadata:
        cover = next((item.image_url for item in self.accumulator.items if item.image_url), None)
        return RankingMetadata(
            title=(self.title or "").strip(),
            category_id=self.category_id,
            media_type=self.media_type,
            description=self.description or None,
            cover_image=cover,
        )

    def publish(self, store: RankingStore,
                assembler: Optional[PublicationAssembler] = None) -> PublishedRanking:
        if self.published is not None:
            raise ValidationFailure("This ranking was already published")
        assembler = assembler or PublicationAssembler()
        with CorrelationContext(session_id=self.id, stage='publish'):
            self.published = assembler.publish(self.metadata(), self.accumulator, store)
        return self.published

    def to_json(self):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category_id": self.category_id,
            "media_type": self.media_type.value,
            "published_id": self.published.id if self.published else None,
        }
        data.update(self.accumulator.to_json())
        return data
