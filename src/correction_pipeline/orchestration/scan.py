"""Scan orchestration: admission -> transcribe -> store image -> create diary -> commit usage."""

import base64
import binascii
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from correction_pipeline.custom_logging.log_context import logging_user
from correction_pipeline.domain.schemas import Diary, Feature, InputType
from correction_pipeline.exceptions import (
    CorrectionPipelineError,
    InvalidInputError,
    PipelineError,
    QuotaExceededError,
    StorageError,
)
from correction_pipeline.model_invoker.invoker import ModelInvoker
from correction_pipeline.model_invoker.media_type import SUPPORTED_MEDIA_TYPES, detect_media_type, strip_data_url_prefix
from correction_pipeline.model_invoker.requests import OcrRequest
from correction_pipeline.prompts.builder import build_ocr_prompt
from correction_pipeline.services.identity import require_user_id
from correction_pipeline.storage.diary_repository import DiaryRepository
from correction_pipeline.storage.image_store import ImageStore
from correction_pipeline.storage.user_repository import UserRepository
from correction_pipeline.usage.ledger import UsageLedger
from correction_pipeline.usage.quota import Deny, check_admission, is_metered
from correction_pipeline.utils.dates import is_valid_date, now_millis, today_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one scan. An empty text means nothing legible was found and no diary was created."""

    text: str
    diary_id: Optional[str] = None
    image_key: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"text": self.text, "success": True}
        if self.diary_id:
            body["diaryId"] = self.diary_id
        return body


class ScanOrchestrator:
    """Transcribes a handwritten diary page and stores it as a new scan diary."""

    def __init__(
        self,
        user_repository: UserRepository,
        diary_repository: DiaryRepository,
        usage_ledger: UsageLedger,
        model_invoker: ModelInvoker,
        image_store: ImageStore,
        today: Callable[[], str] = today_utc,
        now: Callable[[], int] = now_millis,
        new_id: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.user_repository = user_repository
        self.diary_repository = diary_repository
        self.usage_ledger = usage_ledger
        self.model_invoker = model_invoker
        self.image_store = image_store
        self.today = today
        self.now = now
        self.new_id = new_id

    def scan(
        self,
        user_id: Optional[str],
        image_base64: Optional[str],
        media_type: Optional[str] = None,
        date: Optional[str] = None,
    ) -> ScanResult:
        """Runs OCR on an image and records the result.

        Args:
            user_id: Verified caller identity.
            image_base64: The image, optionally with a ``data:<type>;base64,`` prefix.
            media_type: Content type supplied by the client; detected from the payload when absent.
            date: Diary date in YYYY-MM-DD format. Defaults to today (UTC).

        Returns:
            ScanResult: The transcription and, when it was not empty, the new diary id.

        Raises:
            UnauthorizedError: If user_id is missing.
            InvalidInputError: If the image, media type or date is invalid.
            QuotaExceededError: If today's scan allowance is used up.
            ModelUnavailableError: If transcription failed on every attempt.
            StorageError: If a storage collaborator failed.
        """
        user_id = require_user_id(user_id)
        with logging_user(user_id):
            try:
                return self._scan(user_id, image_base64, media_type, date)
            except CorrectionPipelineError:
                raise
            except Exception as e:
                logger.critical(f"An unexpected error occurred while scanning: {e}", exc_info=True)
                raise PipelineError(f"Unexpected scan failure: {str(e)}") from e

    def _scan(
        self, user_id: str, image_base64: Optional[str], media_type: Optional[str], date: Optional[str]
    ) -> ScanResult:
        if not image_base64:
            raise InvalidInputError("Image data is required")
        payload = strip_data_url_prefix(image_base64)
        try:
            image_bytes = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidInputError("Image data is not valid base64") from e
        if not image_bytes:
            raise InvalidInputError("Image data is required")

        media_type = media_type or detect_media_type(payload)
        if media_type not in SUPPORTED_MEDIA_TYPES:
            raise InvalidInputError(f"Unsupported image type: {media_type}")

        usage_date = self.today()
        diary_date = date or usage_date
        if not is_valid_date(diary_date):
            raise InvalidInputError("Invalid date format. Use YYYY-MM-DD")

        user = self.user_repository.get(user_id)
        plan = user.plan if user else None
        metered = is_metered(plan)
        if metered:
            counts = self.usage_ledger.peek(user_id, Feature.SCAN, usage_date)
            decision = check_admission(plan, Feature.SCAN, counts.count, counts.bonus_count)
            if isinstance(decision, Deny):
                logger.info(f"Scan denied: {decision.count} used of {decision.base_limit}+{decision.bonus_count}")
                raise QuotaExceededError(decision.reason, decision)

        request = OcrRequest(prompt=build_ocr_prompt(), image_base64=payload, media_type=media_type)
        text = self.model_invoker.invoke(request)
        if not text:
            logger.info("No legible text found in scanned image; nothing stored")
            return ScanResult(text="")

        diary_id = self.new_id()
        key = self.image_store.put_scan(user_id, diary_id, image_bytes, media_type)
        try:
            self.diary_repository.create(
                Diary(
                    diary_id=diary_id,
                    user_id=user_id,
                    date=diary_date,
                    original_text=text,
                    input_type=InputType.SCAN,
                    image_key=key,
                    created_at=self.now(),
                )
            )
        except StorageError:
            self._discard_image(key)
            raise

        if metered:
            self.usage_ledger.increment_usage(user_id, Feature.SCAN, usage_date)
        logger.info(f"Scan diary {diary_id} created ({len(text)} characters)")
        return ScanResult(text=text, diary_id=diary_id, image_key=key)

    def _discard_image(self, key: str) -> None:
        try:
            self.image_store.delete(key)
        except StorageError:
            logger.error(f"Orphaned scan image left at {key}")
