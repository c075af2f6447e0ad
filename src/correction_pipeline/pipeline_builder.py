"""Pipeline builder responsible for wiring the correction pipeline components."""

import logging
from dataclasses import dataclass

from correction_pipeline.aws_client.clients import get_bedrock_runtime_client, get_dynamodb_resource, get_s3_client
from correction_pipeline.config import settings
from correction_pipeline.custom_logging.log_context import setup_logging
from correction_pipeline.domain.schemas import Feature
from correction_pipeline.model_invoker.invoker import ModelInvoker
from correction_pipeline.model_invoker.retry import RetryPolicy
from correction_pipeline.orchestration.correction import CorrectionOrchestrator
from correction_pipeline.orchestration.scan import ScanOrchestrator
from correction_pipeline.services.diary_service import DiaryService
from correction_pipeline.services.review_card_service import ReviewCardService
from correction_pipeline.services.usage_service import UsageService
from correction_pipeline.services.user_service import UserService
from correction_pipeline.storage.diary_repository import DiaryRepository
from correction_pipeline.storage.image_store import ImageStore
from correction_pipeline.storage.review_card_repository import ReviewCardRepository
from correction_pipeline.storage.user_repository import UserRepository
from correction_pipeline.usage.ledger import UsageLedger

setup_logging()
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Application:
    """Every entry point the API layer dispatches to."""

    corrections: CorrectionOrchestrator
    scans: ScanOrchestrator
    diaries: DiaryService
    review_cards: ReviewCardService
    users: UserService
    usage: UsageService


def build_application() -> Application:
    """Constructs the services with all their dependencies.

    This acts as the composition root for the application.

    Returns:
        Application: Fully configured services sharing one set of AWS clients.
    """
    # --- AWS clients ---
    dynamodb = get_dynamodb_resource()
    s3_client = get_s3_client()
    bedrock_client = get_bedrock_runtime_client()

    # --- Storage ---
    user_repository = UserRepository(dynamodb.Table(settings.USERS_TABLE))
    diary_repository = DiaryRepository(
        dynamodb.Table(settings.DIARIES_TABLE),
        user_date_index=settings.DIARIES_USER_DATE_INDEX,
    )
    review_card_repository = ReviewCardRepository(
        dynamodb.Table(settings.REVIEW_CARDS_TABLE),
        user_index=settings.REVIEW_CARDS_USER_INDEX,
    )
    usage_ledger = UsageLedger(
        tables={
            Feature.SCAN: dynamodb.Table(settings.SCAN_USAGE_TABLE),
            Feature.CORRECTION: dynamodb.Table(settings.CORRECTION_USAGE_TABLE),
        },
        retention_days=settings.USAGE_RETENTION_DAYS,
    )
    image_store = ImageStore(s3_client, settings.IMAGES_BUCKET)

    # --- Model ---
    model_invoker = ModelInvoker(
        client=bedrock_client,
        model_id=settings.BEDROCK_MODEL_ID,
        retry_policy=RetryPolicy(
            max_attempts=settings.MODEL_MAX_ATTEMPTS,
            backoff_base_seconds=settings.MODEL_BACKOFF_BASE_SECONDS,
            retry_pause_seconds=settings.MODEL_RETRY_PAUSE_SECONDS,
        ),
        max_tokens=settings.MODEL_MAX_TOKENS,
        temperature=settings.MODEL_TEMPERATURE,
        deadline_seconds=settings.REQUEST_TIMEOUT_SECONDS,
    )

    # --- Construct and return the application ---
    return Application(
        corrections=CorrectionOrchestrator(
            user_repository=user_repository,
            diary_repository=diary_repository,
            usage_ledger=usage_ledger,
            model_invoker=model_invoker,
            fallback_to_original=settings.CORRECTION_FALLBACK_TO_ORIGINAL,
            default_target_language=settings.DEFAULT_TARGET_LANGUAGE,
            default_native_language=settings.DEFAULT_NATIVE_LANGUAGE,
        ),
        scans=ScanOrchestrator(
            user_repository=user_repository,
            diary_repository=diary_repository,
            usage_ledger=usage_ledger,
            model_invoker=model_invoker,
            image_store=image_store,
        ),
        diaries=DiaryService(diary_repository, review_card_repository),
        review_cards=ReviewCardService(diary_repository, review_card_repository),
        users=UserService(
            user_repository=user_repository,
            diary_repository=diary_repository,
            review_card_repository=review_card_repository,
            usage_ledger=usage_ledger,
            default_target_language=settings.DEFAULT_TARGET_LANGUAGE,
            default_native_language=settings.DEFAULT_NATIVE_LANGUAGE,
        ),
        usage=UsageService(user_repository, usage_ledger),
    )
