"""Pydantic schemas for users, diaries, review cards and usage records."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Plan(str, Enum):
    """Subscription tier."""

    FREE = "free"
    PREMIUM = "premium"


class Feature(str, Enum):
    """Metered capability."""

    SCAN = "scan"
    CORRECTION = "correction"


class CorrectionMode(str, Enum):
    """Correction depth selector."""

    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class Language(str, Enum):
    """Languages supported both as the learned language and for explanations."""

    ENGLISH = "english"
    SPANISH = "spanish"
    CHINESE = "chinese"
    JAPANESE = "japanese"
    KOREAN = "korean"
    FRENCH = "french"
    GERMAN = "german"
    ITALIAN = "italian"


class InputType(str, Enum):
    """How the diary text was entered."""

    MANUAL = "manual"
    SCAN = "scan"


class CorrectionType(str, Enum):
    """Category of a single correction."""

    GRAMMAR = "grammar"
    SPELLING = "spelling"
    STYLE = "style"
    VOCABULARY = "vocabulary"


class Correction(BaseModel):
    """A single change made by the model, with its explanation."""

    model_config = ConfigDict(frozen=True, use_enum_values=True, validate_default=True)

    type: CorrectionType = CorrectionType.GRAMMAR
    before: str = ""
    after: str = ""
    explanation: str = ""


class CorrectionResult(BaseModel):
    """Validated output of a correction pass."""

    model_config = ConfigDict(populate_by_name=True)

    corrected_text: str = Field(alias="correctedText")
    corrections: List[Correction] = Field(default_factory=list)
    fallback: bool = False

    def to_response(self) -> Dict[str, Any]:
        """Camel-cased body returned to the client."""
        body: Dict[str, Any] = {
            "correctedText": self.corrected_text,
            "corrections": [c.model_dump() for c in self.corrections],
        }
        if self.fallback:
            body["fallback"] = True
        return body


class User(BaseModel):
    """A registered user. Missing plan means the lowest tier."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    user_id: str = Field(alias="userId", min_length=1)
    email: str = ""
    display_name: Optional[str] = Field(default=None, alias="displayName")
    plan: Plan = Plan.FREE
    target_language: Optional[Language] = Field(default=None, alias="targetLanguage")
    native_language: Optional[Language] = Field(default=None, alias="nativeLanguage")
    created_at: int = Field(default=0, alias="createdAt")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")


class Diary(BaseModel):
    """A diary entry owned by exactly one user."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True, validate_default=True)

    diary_id: str = Field(alias="diaryId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    original_text: str = Field(alias="originalText")
    corrected_text: Optional[str] = Field(default=None, alias="correctedText")
    corrections: List[Correction] = Field(default_factory=list)
    input_type: InputType = Field(default=InputType.MANUAL, alias="inputType")
    image_key: Optional[str] = Field(default=None, alias="imageKey")
    created_at: int = Field(alias="createdAt")
    updated_at: Optional[int] = Field(default=None, alias="updatedAt")

    def to_item(self) -> Dict[str, Any]:
        """DynamoDB item / API body representation, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ReviewCard(BaseModel):
    """A flash card built from one correction of a diary."""

    model_config = ConfigDict(populate_by_name=True)

    card_id: str = Field(alias="cardId")
    user_id: str = Field(alias="userId")
    diary_id: str = Field(alias="diaryId")
    before: str
    after: str
    context: str
    tags: List[str] = Field(default_factory=list)
    created_at: int = Field(alias="createdAt")

    def to_item(self) -> Dict[str, Any]:
        """DynamoDB item / API body representation."""
        return self.model_dump(by_alias=True)


class UsageCounts(BaseModel):
    """Today's consumption for one (user, feature). Absent record means zeros."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    count: int = Field(default=0, ge=0)
    bonus_count: int = Field(default=0, ge=0, alias="bonusCount")


class PlanLimits(BaseModel):
    """Daily limits for one plan tier."""

    model_config = ConfigDict(frozen=True)

    scan_per_day: int = Field(ge=0)
    max_scan_bonus_per_day: int = Field(ge=0)
    correction_per_day: int = Field(ge=0)
    max_correction_bonus_per_day: int = Field(ge=0)

    def base_limit(self, feature: Feature) -> int:
        """Daily allowance before any bonus."""
        return self.scan_per_day if feature == Feature.SCAN else self.correction_per_day

    def max_bonus(self, feature: Feature) -> int:
        """Maximum bonus that can be earned per day."""
        return self.max_scan_bonus_per_day if feature == Feature.SCAN else self.max_correction_bonus_per_day
