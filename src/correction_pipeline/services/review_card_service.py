"""Review cards built from the corrections of a diary."""

import logging
import uuid
from typing import Callable, Iterable, List, Optional

from correction_pipeline.domain.schemas import ReviewCard
from correction_pipeline.exceptions import InvalidInputError, NotFoundError
from correction_pipeline.services.identity import require_user_id
from correction_pipeline.storage.diary_repository import DiaryRepository
from correction_pipeline.storage.review_card_repository import DEFAULT_LIST_LIMIT, ReviewCardRepository
from correction_pipeline.utils.dates import now_millis

logger = logging.getLogger(__name__)

CONTEXT_PADDING = 30
FALLBACK_CONTEXT_LENGTH = 100
ELLIPSIS = "..."


def extract_context(text: str, phrase: str) -> str:
    """Excerpt of text around phrase, marked with ``...`` where it was cut.

    When phrase does not occur in text, the first 100 characters are returned instead.
    """
    index = text.find(phrase) if phrase else -1
    if index == -1:
        excerpt = text[:FALLBACK_CONTEXT_LENGTH]
        return excerpt + ELLIPSIS if len(text) > FALLBACK_CONTEXT_LENGTH else excerpt

    start = max(0, index - CONTEXT_PADDING)
    end = min(len(text), index + len(phrase) + CONTEXT_PADDING)
    context = text[start:end]
    if start > 0:
        context = ELLIPSIS + context
    if end < len(text):
        context = context + ELLIPSIS
    return context


class ReviewCardService:
    def __init__(
        self,
        diary_repository: DiaryRepository,
        review_card_repository: ReviewCardRepository,
        now: Callable[[], int] = now_millis,
        new_id: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.diary_repository = diary_repository
        self.review_card_repository = review_card_repository
        self.now = now
        self.new_id = new_id

    def create_cards(
        self, user_id: Optional[str], diary_id: Optional[str], selected_corrections: Optional[Iterable[int]]
    ) -> List[ReviewCard]:
        """Creates one card per selected correction index of a corrected diary.

        Indices outside the diary's corrections are skipped.

        Returns:
            List[ReviewCard]: The cards that were stored.

        Raises:
            InvalidInputError: If nothing was selected or the diary has no corrections yet.
            NotFoundError: If the diary does not exist or belongs to someone else.
        """
        user_id = require_user_id(user_id)
        if not diary_id or selected_corrections is None or isinstance(selected_corrections, (str, dict)):
            raise InvalidInputError("Missing required fields: diaryId, selectedCorrections")
        indices = list(selected_corrections)
        if not indices:
            raise InvalidInputError("No corrections selected")
        if not all(isinstance(i, int) and not isinstance(i, bool) for i in indices):
            raise InvalidInputError("selectedCorrections must be a list of indices")

        diary = self.diary_repository.get_owned(diary_id, user_id)
        if not diary.corrections:
            raise InvalidInputError("Diary has no corrections. Run AI correction first.")

        source_text = diary.corrected_text or diary.original_text
        timestamp = self.now()
        cards = []
        for index in indices:
            if index < 0 or index >= len(diary.corrections):
                continue
            correction = diary.corrections[index]
            card = ReviewCard(
                card_id=self.new_id(),
                user_id=user_id,
                diary_id=diary.diary_id,
                before=correction.before,
                after=correction.after,
                context=extract_context(source_text, correction.after),
                tags=[correction.type],
                created_at=timestamp,
            )
            self.review_card_repository.put(card)
            cards.append(card)

        logger.info(f"Created {len(cards)} review cards from diary {diary.diary_id}")
        return cards

    def list_cards(
        self, user_id: Optional[str], tag: Optional[str] = None, limit: Optional[int] = None
    ) -> List[ReviewCard]:
        user_id = require_user_id(user_id)
        if limit is not None and limit < 1:
            raise InvalidInputError("limit must be positive")
        return self.review_card_repository.list_for_user(user_id, tag=tag, limit=limit or DEFAULT_LIST_LIMIT)

    def delete_card(self, user_id: Optional[str], card_id: Optional[str]) -> None:
        user_id = require_user_id(user_id)
        if not card_id:
            raise InvalidInputError("Card ID is required")
        card = self.review_card_repository.get(card_id)
        if card is None or card.user_id != user_id:
            raise NotFoundError("Review card not found")
        self.review_card_repository.delete(card_id)
