"""Diary CRUD for the owning user."""

import logging
import uuid
from typing import Callable, List, Optional

from correction_pipeline.domain.schemas import Diary, InputType
from correction_pipeline.exceptions import InvalidInputError
from correction_pipeline.services.identity import require_user_id
from correction_pipeline.storage.diary_repository import DEFAULT_LIST_LIMIT, DiaryRepository
from correction_pipeline.storage.review_card_repository import ReviewCardRepository
from correction_pipeline.utils.dates import is_valid_date, now_millis

logger = logging.getLogger(__name__)


def _require_date(value: Optional[str], field_name: str = "date") -> str:
    if not is_valid_date(value):
        raise InvalidInputError(f"Invalid {field_name} format. Use YYYY-MM-DD")
    return value


def _require_text(value: Optional[str]) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError("Diary text is required")
    return value.strip()


class DiaryService:
    """Create, read, list, edit and delete diaries.

    Scan diaries are created by the scan orchestrator; this service only creates manual entries.
    """

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

    def create_diary(
        self, user_id: Optional[str], date: Optional[str], original_text: Optional[str], input_type: str = "manual"
    ) -> Diary:
        user_id = require_user_id(user_id)
        if input_type != InputType.MANUAL.value:
            raise InvalidInputError("Only manual diaries can be created directly; use scan for images")
        diary = Diary(
            diary_id=self.new_id(),
            user_id=user_id,
            date=_require_date(date),
            original_text=_require_text(original_text),
            input_type=InputType.MANUAL,
            created_at=self.now(),
        )
        self.diary_repository.create(diary)
        logger.info(f"Diary {diary.diary_id} created for {diary.date}")
        return diary

    def get_diary(self, user_id: Optional[str], diary_id: Optional[str]) -> Diary:
        user_id = require_user_id(user_id)
        if not diary_id:
            raise InvalidInputError("Diary ID is required")
        return self.diary_repository.get_owned(diary_id, user_id)

    def list_diaries(
        self,
        user_id: Optional[str],
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Diary]:
        """Lists the caller's diaries, newest first, within an optional inclusive date range."""
        user_id = require_user_id(user_id)
        if start_date:
            _require_date(start_date, "startDate")
        if end_date:
            _require_date(end_date, "endDate")
        if start_date and end_date and start_date > end_date:
            raise InvalidInputError("startDate must not be after endDate")
        if limit is not None and limit < 1:
            raise InvalidInputError("limit must be positive")
        return self.diary_repository.list_for_user(user_id, start_date, end_date, limit or DEFAULT_LIST_LIMIT)

    def update_diary(self, user_id: Optional[str], diary_id: Optional[str], original_text: Optional[str]) -> Diary:
        """Replaces the diary text; a changed text discards the previous correction."""
        diary = self.get_diary(user_id, diary_id)
        return self.diary_repository.update_text(diary, _require_text(original_text), updated_at=self.now())

    def delete_diary(self, user_id: Optional[str], diary_id: Optional[str]) -> None:
        """Deletes a diary together with the review cards built from it."""
        diary = self.get_diary(user_id, diary_id)
        self.review_card_repository.delete_for_user(diary.user_id, diary_id=diary.diary_id)
        self.diary_repository.delete(diary.diary_id)
        logger.info(f"Diary {diary.diary_id} deleted")
