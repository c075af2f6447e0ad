"""Configuration settings for the correction pipeline."""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Order of priority for pydantic-settings:
#
# 1. Arguments to the Initializer (Highest Priority - rarely used):
#    Settings(AWS_REGION="eu-west-2") takes precedence over everything else.
#
# 2. System Environment Variables:
#    Example: export CORRECTION_USAGE_TABLE=write-diary-correction-usage
#
# 3. .env File Values:
#    Only read when the file exists (local development).
#
# 4. Default Values in the Class (Lowest Priority).

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_FILE_PATH = PROJECT_ROOT / ".env"


class Settings(BaseSettings):  # type: ignore
    """Configuration settings for the correction pipeline."""

    model_config = SettingsConfigDict(
        # Only load .env if it exists (local dev)
        env_file=str(ENV_FILE_PATH) if ENV_FILE_PATH.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # -- AWS --
    AWS_REGION: str = "ap-northeast-1"
    # Nova models are served from us-east-1
    BEDROCK_REGION: str = "us-east-1"
    LOCAL_DEVELOPMENT_MODE: bool = False
    # Example (localstack):
    #   LOCAL_AWS_ENDPOINT_URL="http://localhost:4566"
    LOCAL_AWS_ENDPOINT_URL: str = "http://localhost:4566"

    # -- DynamoDB tables and indexes --
    USERS_TABLE: str = "write-diary-users"
    DIARIES_TABLE: str = "write-diary-diaries"
    REVIEW_CARDS_TABLE: str = "write-diary-review-cards"
    SCAN_USAGE_TABLE: str = "write-diary-scan-usage"
    CORRECTION_USAGE_TABLE: str = "write-diary-correction-usage"
    DIARIES_USER_DATE_INDEX: str = "userId-date-index"
    REVIEW_CARDS_USER_INDEX: str = "userId-index"

    # -- S3 --
    IMAGES_BUCKET: str = "write-diary-images"

    # -- Bedrock model --
    BEDROCK_MODEL_ID: str = "amazon.nova-lite-v1:0"
    MODEL_MAX_TOKENS: int = 4096
    MODEL_TEMPERATURE: float = 0.3
    MODEL_MAX_ATTEMPTS: int = 3
    # Throttling waits are base * 2^attempt, i.e. 2s, 4s, 8s with the default base
    MODEL_BACKOFF_BASE_SECONDS: float = 1.0
    MODEL_RETRY_PAUSE_SECONDS: float = 0.5
    MODEL_READ_TIMEOUT_SECONDS: int = 30

    # -- Usage and correction policy --
    USAGE_RETENTION_DAYS: int = 30
    CORRECTION_FALLBACK_TO_ORIGINAL: bool = False
    # Deadline for one model-backed request; the Lambda timeout should be set at least this high
    REQUEST_TIMEOUT_SECONDS: int = 120

    # -- User preference defaults --
    DEFAULT_TARGET_LANGUAGE: str = "english"
    DEFAULT_NATIVE_LANGUAGE: str = "japanese"

    LOG_LEVEL: str = "INFO"

    @property
    def model_backoff_total_seconds(self) -> float:
        """Total time the model retry policy can spend waiting between attempts."""
        return sum(
            max(self.MODEL_BACKOFF_BASE_SECONDS * (2**attempt), self.MODEL_RETRY_PAUSE_SECONDS)
            for attempt in range(1, self.MODEL_MAX_ATTEMPTS)
        )

    @property
    def model_worst_case_seconds(self) -> float:
        """Every attempt hitting the read timeout, plus every wait in between."""
        return self.MODEL_MAX_ATTEMPTS * self.MODEL_READ_TIMEOUT_SECONDS + self.model_backoff_total_seconds

    @model_validator(mode="after")
    def check_request_timeout(self) -> "Settings":
        """The request deadline must outlast every model attempt and the waits between them."""
        if self.MODEL_MAX_ATTEMPTS < 1:
            raise ValueError("MODEL_MAX_ATTEMPTS must be at least 1")
        if self.REQUEST_TIMEOUT_SECONDS <= self.model_worst_case_seconds:
            raise ValueError(
                f"REQUEST_TIMEOUT_SECONDS ({self.REQUEST_TIMEOUT_SECONDS}) must be larger than the model "
                f"worst case ({self.model_worst_case_seconds:.1f}s)"
            )
        return self


settings = Settings()
