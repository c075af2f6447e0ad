"""Correction orchestration: admission -> fetch -> invoke model -> persist -> commit usage."""

import logging
from typing import Callable, Optional

from correction_pipeline.custom_logging.log_context import logging_user
from correction_pipeline.domain.schemas import CorrectionMode, CorrectionResult, Feature, Language, User
from correction_pipeline.exceptions import (
    CorrectionPipelineError,
    InvalidInputError,
    ModelUnavailableError,
    PipelineError,
    QuotaExceededError,
)
from correction_pipeline.model_invoker.invoker import ModelInvoker
from correction_pipeline.model_invoker.requests import CorrectionRequest
from correction_pipeline.prompts.builder import build_correction_prompt
from correction_pipeline.services.identity import require_user_id
from correction_pipeline.storage.diary_repository import DiaryRepository
from correction_pipeline.storage.user_repository import UserRepository
from correction_pipeline.usage.ledger import UsageLedger
from correction_pipeline.usage.quota import Deny, check_admission, is_metered
from correction_pipeline.utils.dates import now_millis, today_utc

logger = logging.getLogger(__name__)


class CorrectionOrchestrator:
    """Runs one AI correction of a diary under the caller's daily quota.

    The usage ledger is incremented only after the correction has been written to the diary, so a
    failure anywhere before that never consumes quota. Admission and increment are not one transaction:
    concurrent requests at the boundary may both be admitted.
    """

    def __init__(
        self,
        user_repository: UserRepository,
        diary_repository: DiaryRepository,
        usage_ledger: UsageLedger,
        model_invoker: ModelInvoker,
        fallback_to_original: bool = False,
        default_target_language: str = Language.ENGLISH.value,
        default_native_language: str = Language.JAPANESE.value,
        today: Callable[[], str] = today_utc,
        now: Callable[[], int] = now_millis,
    ):
        """Initializes the orchestrator with injected dependencies.

        Args:
            user_repository: Read-only source of plan and language preferences.
            diary_repository: Diary store; this orchestrator is the only writer of correction results.
            usage_ledger: Per-day usage counters.
            model_invoker: Invoker used for the correction request.
            fallback_to_original: When True, a model failure returns the unmodified text instead of raising.
                Nothing is persisted and no usage is consumed in that case.
            default_target_language: Learned language when the user has no preference.
            default_native_language: Explanation language when the user has no preference.
            today: Source of the current UTC calendar day.
            now: Source of the current timestamp in milliseconds.
        """
        self.user_repository = user_repository
        self.diary_repository = diary_repository
        self.usage_ledger = usage_ledger
        self.model_invoker = model_invoker
        self.fallback_to_original = fallback_to_original
        self.default_target_language = default_target_language
        self.default_native_language = default_native_language
        self.today = today
        self.now = now

    def correct_diary(self, user_id: Optional[str], diary_id: Optional[str], mode: Optional[str]) -> CorrectionResult:
        """Corrects a diary owned by the caller.

        Args:
            user_id: Verified caller identity.
            diary_id: The diary to correct.
            mode: beginner, intermediate or advanced.

        Returns:
            CorrectionResult: The stored correction, or the unmodified text when the fallback policy applied.

        Raises:
            UnauthorizedError: If user_id is missing.
            InvalidInputError: If diary_id or mode is missing or invalid.
            NotFoundError: If the diary does not exist or belongs to someone else.
            QuotaExceededError: If today's correction allowance is used up.
            ModelUnavailableError: If the model failed on every attempt and the fallback policy is off.
            StorageError: If a storage collaborator failed.
        """
        user_id = require_user_id(user_id)
        with logging_user(user_id):
            try:
                return self._correct(user_id, diary_id, mode)
            except CorrectionPipelineError:
                raise
            except Exception as e:
                logger.critical(f"An unexpected error occurred while correcting diary {diary_id}: {e}", exc_info=True)
                raise PipelineError(f"Unexpected correction failure: {str(e)}") from e

    def _correct(self, user_id: str, diary_id: Optional[str], mode: Optional[str]) -> CorrectionResult:
        if not diary_id:
            raise InvalidInputError("Diary ID is required")
        if mode not in {m.value for m in CorrectionMode}:
            raise InvalidInputError("Invalid mode. Use: beginner, intermediate, or advanced")

        # --- Admitted -> Fetching ---
        diary = self.diary_repository.get_owned(diary_id, user_id)
        user = self.user_repository.get(user_id)
        plan = user.plan if user else None
        metered = is_metered(plan)
        date = self.today()

        if metered:
            counts = self.usage_ledger.peek(user_id, Feature.CORRECTION, date)
            decision = check_admission(plan, Feature.CORRECTION, counts.count, counts.bonus_count)
            if isinstance(decision, Deny):
                logger.info(f"Correction denied: {decision.count} used of {decision.base_limit}+{decision.bonus_count}")
                raise QuotaExceededError(decision.reason, decision)

        # --- Invoking ---
        prompt = build_correction_prompt(mode, *self._languages(user))
        request = CorrectionRequest(prompt=prompt, original_text=diary.original_text)
        try:
            result = self.model_invoker.invoke(request)
        except ModelUnavailableError:
            if not self.fallback_to_original:
                raise
            logger.warning(f"Correction of diary {diary_id} fell back to the original text; no usage consumed")
            return CorrectionResult(corrected_text=diary.original_text, corrections=[], fallback=True)

        # --- Persisting ---
        self.diary_repository.set_correction(
            diary_id,
            user_id,
            result.corrected_text,
            result.corrections,
            updated_at=self.now(),
            source_text=diary.original_text,
        )

        # --- Committed ---
        if metered:
            self.usage_ledger.increment_usage(user_id, Feature.CORRECTION, date)
        logger.info(f"Diary {diary_id} corrected with {len(result.corrections)} corrections")
        return result

    def _languages(self, user: Optional[User]) -> tuple:
        target = (user.target_language if user else None) or self.default_target_language
        native = (user.native_language if user else None) or self.default_native_language
        return target, native
