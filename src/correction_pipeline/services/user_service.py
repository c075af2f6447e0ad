"""User records: sign-up, profile and account erasure."""

import logging
from typing import Any, Callable, Dict, Optional

from correction_pipeline.domain.schemas import Language, Plan, User
from correction_pipeline.exceptions import InvalidInputError, NotFoundError
from correction_pipeline.services.identity import require_user_id
from correction_pipeline.storage.diary_repository import DiaryRepository
from correction_pipeline.storage.review_card_repository import ReviewCardRepository
from correction_pipeline.storage.user_repository import UserRepository
from correction_pipeline.usage.ledger import UsageLedger
from correction_pipeline.utils.dates import now_millis

logger = logging.getLogger(__name__)

DISPLAY_NAME_MIN_LENGTH = 2
DISPLAY_NAME_MAX_LENGTH = 50
_LANGUAGES = {language.value for language in Language}


def _email_local_part(email: str) -> str:
    return email.split("@")[0] if email else ""


class UserService:
    """Owns the lifecycle of a user record and, on account deletion, of everything the user created."""

    def __init__(
        self,
        user_repository: UserRepository,
        diary_repository: DiaryRepository,
        review_card_repository: ReviewCardRepository,
        usage_ledger: UsageLedger,
        default_target_language: str = Language.ENGLISH.value,
        default_native_language: str = Language.JAPANESE.value,
        now: Callable[[], int] = now_millis,
    ):
        self.user_repository = user_repository
        self.diary_repository = diary_repository
        self.review_card_repository = review_card_repository
        self.usage_ledger = usage_ledger
        self.default_target_language = default_target_language
        self.default_native_language = default_native_language
        self.now = now

    def create_on_confirmation(self, user_id: Optional[str], email: str, name: Optional[str] = None) -> bool:
        """Creates the user record after sign-up confirmation. An existing record is never overwritten.

        New users always start on the free plan.

        Returns:
            bool: True when a record was created.
        """
        user_id = require_user_id(user_id)
        user = User(
            user_id=user_id,
            email=email or "",
            display_name=name or _email_local_part(email) or None,
            plan=Plan.FREE,
            created_at=self.now(),
        )
        created = self.user_repository.create_if_absent(user)
        if created:
            logger.info(f"Created user record with display name {user.display_name}")
        return created

    def get_profile(self, user_id: Optional[str]) -> Dict[str, Any]:
        """The caller's profile with display name and languages defaulted."""
        user_id = require_user_id(user_id)
        user = self.user_repository.get(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return self._profile(user)

    def update_profile(
        self,
        user_id: Optional[str],
        display_name: Optional[str] = None,
        target_language: Optional[str] = None,
        native_language: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Updates the editable profile fields.

        Raises:
            InvalidInputError: If no field is given, the display name is not 2 to 50 characters long, or a
                language is not supported.
            NotFoundError: If the user record does not exist.
        """
        user_id = require_user_id(user_id)
        fields: Dict[str, Any] = {}
        if display_name is not None:
            name = display_name.strip() if isinstance(display_name, str) else ""
            if not DISPLAY_NAME_MIN_LENGTH <= len(name) <= DISPLAY_NAME_MAX_LENGTH:
                raise InvalidInputError(
                    f"Display name must be between {DISPLAY_NAME_MIN_LENGTH} and {DISPLAY_NAME_MAX_LENGTH} characters"
                )
            fields["displayName"] = name
        for field_name, value in (("targetLanguage", target_language), ("nativeLanguage", native_language)):
            if value is None:
                continue
            if value not in _LANGUAGES:
                raise InvalidInputError(f"Invalid {field_name}. Use one of: {', '.join(sorted(_LANGUAGES))}")
            fields[field_name] = value
        if not fields:
            raise InvalidInputError("displayName, targetLanguage or nativeLanguage is required")

        fields["updatedAt"] = self.now()
        user = self.user_repository.update_fields(user_id, fields)
        return self._profile(user)

    def delete_account(self, user_id: Optional[str]) -> None:
        """Erases the user and all of their diaries, review cards and usage records."""
        user_id = require_user_id(user_id)
        logger.info("Deleting account and all associated data")
        self.diary_repository.delete_all_for_user(user_id)
        self.review_card_repository.delete_for_user(user_id)
        self.usage_ledger.delete_user_records(user_id)
        self.user_repository.delete(user_id)
        logger.info("Account deleted")

    def _profile(self, user: User) -> Dict[str, Any]:
        return {
            "userId": user.user_id,
            "email": user.email,
            "displayName": user.display_name or _email_local_part(user.email),
            "plan": user.plan,
            "targetLanguage": user.target_language or self.default_target_language,
            "nativeLanguage": user.native_language or self.default_native_language,
            "createdAt": user.created_at,
        }
