"""AWS Lambda handlers for the API Gateway proxy integration.

Each handler resolves the caller from the Cognito authorizer claims, delegates to one service
operation and maps the pipeline's exceptions onto HTTP responses.
"""

import functools
import json
import logging
from typing import Any, Callable, Dict, Optional

from correction_pipeline.api import responses
from correction_pipeline.domain.schemas import Feature
from correction_pipeline.exceptions import (
    BonusLimitReachedError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    QuotaExceededError,
    UnauthorizedError,
)
from correction_pipeline.pipeline_builder import Application, build_application
from correction_pipeline.services.identity import require_user_id
from correction_pipeline.services.usage_service import parse_feature

logger = logging.getLogger(__name__)

SIGN_UP_TRIGGER = "PostConfirmation_ConfirmSignUp"


@functools.lru_cache(maxsize=1)
def get_application() -> Application:
    """Builds the application once per Lambda container."""
    return build_application()


def get_user_id_from_event(event: Dict[str, Any]) -> Optional[str]:
    """The Cognito ``sub`` claim, falling back to ``cognito:username``."""
    claims = ((event.get("requestContext") or {}).get("authorizer") or {}).get("claims")
    if not claims:
        return None
    return claims.get("sub") or claims.get("cognito:username") or None


def caller_id(event: Dict[str, Any]) -> str:
    """The verified caller id.

    Raises:
        UnauthorizedError: If the event carries no identity claims.
    """
    return require_user_id(get_user_id_from_event(event))


def parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    """Decodes the JSON request body.

    Raises:
        InvalidInputError: If the body is missing, not JSON, or not a JSON object.
    """
    raw = event.get("body")
    if not raw:
        raise InvalidInputError("Request body is required")
    try:
        body = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InvalidInputError("Invalid request body") from e
    if not isinstance(body, dict):
        raise InvalidInputError("Invalid request body")
    return body


def _path_param(event: Dict[str, Any], name: str) -> Optional[str]:
    return (event.get("pathParameters") or {}).get(name)


def _query_param(event: Dict[str, Any], name: str) -> Optional[str]:
    return (event.get("queryStringParameters") or {}).get(name)


def _limit(event: Dict[str, Any]) -> Optional[int]:
    value = _query_param(event, "limit")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise InvalidInputError("limit must be an integer") from None


def api_handler(failure_message: str) -> Callable:
    """Maps pipeline exceptions raised by a handler body onto API responses.

    Args:
        failure_message: Message returned with a 500 for unexpected failures.
    """

    def decorator(func: Callable[[Dict[str, Any]], Dict[str, Any]]) -> Callable:
        @functools.wraps(func)
        def wrapper(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
            try:
                return func(event or {})
            except UnauthorizedError as e:
                return responses.unauthorized(str(e))
            except InvalidInputError as e:
                return responses.bad_request(str(e))
            except NotFoundError as e:
                return responses.not_found(str(e))
            except ConflictError as e:
                return responses.conflict(str(e))
            except (QuotaExceededError, BonusLimitReachedError) as e:
                logger.info(f"{func.__name__} denied: {e}")
                return responses.forbidden_with_data(e.to_dict())
            except Exception:
                logger.error(f"{func.__name__} failed", exc_info=True)
                return responses.server_error(failure_message)

        return wrapper

    return decorator


# --- Diaries ---


@api_handler("Failed to create diary")
def create_diary(event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_body(event)
    diary = get_application().diaries.create_diary(
        caller_id(event),
        body.get("date"),
        body.get("originalText"),
        input_type=body.get("inputType") or "manual",
    )
    return responses.created({"diaryId": diary.diary_id, "status": "saved"})


@api_handler("Failed to get diary")
def get_diary(event: Dict[str, Any]) -> Dict[str, Any]:
    diary = get_application().diaries.get_diary(caller_id(event), _path_param(event, "diaryId"))
    return responses.success(diary.to_item())


@api_handler("Failed to get diaries")
def list_diaries(event: Dict[str, Any]) -> Dict[str, Any]:
    diaries = get_application().diaries.list_diaries(
        caller_id(event),
        start_date=_query_param(event, "startDate"),
        end_date=_query_param(event, "endDate"),
        limit=_limit(event),
    )
    return responses.success({"diaries": [d.to_item() for d in diaries], "count": len(diaries)})


@api_handler("Failed to update diary")
def update_diary(event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_body(event)
    diary = get_application().diaries.update_diary(
        caller_id(event), _path_param(event, "diaryId"), body.get("originalText")
    )
    return responses.success(diary.to_item())


@api_handler("Failed to delete diary")
def delete_diary(event: Dict[str, Any]) -> Dict[str, Any]:
    get_application().diaries.delete_diary(caller_id(event), _path_param(event, "diaryId"))
    return responses.success({"message": "Diary deleted successfully"})


@api_handler("Failed to correct diary")
def correct_diary(event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_body(event)
    result = get_application().corrections.correct_diary(
        caller_id(event), _path_param(event, "diaryId"), body.get("mode")
    )
    return responses.success(result.to_response())


@api_handler("Failed to process image")
def scan_diary(event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_body(event)
    result = get_application().scans.scan(
        caller_id(event),
        body.get("imageBase64"),
        media_type=body.get("mediaType"),
        date=body.get("date"),
    )
    return responses.success(result.to_response())


# --- Review cards ---


@api_handler("Failed to create review cards")
def create_review_cards(event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_body(event)
    cards = get_application().review_cards.create_cards(
        caller_id(event), body.get("diaryId"), body.get("selectedCorrections")
    )
    return responses.created({"created": len(cards)})


@api_handler("Failed to get review cards")
def list_review_cards(event: Dict[str, Any]) -> Dict[str, Any]:
    cards = get_application().review_cards.list_cards(
        caller_id(event), tag=_query_param(event, "tag"), limit=_limit(event)
    )
    return responses.success({"cards": [c.to_item() for c in cards], "count": len(cards)})


@api_handler("Failed to delete review card")
def delete_review_card(event: Dict[str, Any]) -> Dict[str, Any]:
    get_application().review_cards.delete_card(caller_id(event), _path_param(event, "cardId"))
    return responses.success({"message": "Review card deleted successfully"})


# --- Users ---


@api_handler("Failed to get user profile")
def get_profile(event: Dict[str, Any]) -> Dict[str, Any]:
    return responses.success(get_application().users.get_profile(caller_id(event)))


@api_handler("Failed to update user profile")
def update_profile(event: Dict[str, Any]) -> Dict[str, Any]:
    body = parse_body(event)
    profile = get_application().users.update_profile(
        caller_id(event),
        display_name=body.get("displayName"),
        target_language=body.get("targetLanguage"),
        native_language=body.get("nativeLanguage"),
    )
    return responses.success(profile)


@api_handler("Failed to delete account")
def delete_account(event: Dict[str, Any]) -> Dict[str, Any]:
    get_application().users.delete_account(caller_id(event))
    return responses.success({"message": "Account deleted successfully"})


def post_confirmation(event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
    """Cognito post-confirmation trigger creating the user record.

    The event is always returned unchanged: a failure here must not block the sign-up.
    """
    if event.get("triggerSource") != SIGN_UP_TRIGGER:
        return event
    attributes = (event.get("request") or {}).get("userAttributes") or {}
    try:
        get_application().users.create_on_confirmation(
            attributes.get("sub"), attributes.get("email", ""), name=attributes.get("name")
        )
    except Exception:
        logger.error("Failed to create user record on sign-up confirmation", exc_info=True)
    return event


# --- Usage ---


@api_handler("Failed to get usage")
def get_scan_usage(event: Dict[str, Any]) -> Dict[str, Any]:
    snapshot = get_application().usage.get_usage(caller_id(event), Feature.SCAN)
    return responses.success(snapshot.to_response())


@api_handler("Failed to get usage")
def get_correction_usage(event: Dict[str, Any]) -> Dict[str, Any]:
    snapshot = get_application().usage.get_usage(caller_id(event), Feature.CORRECTION)
    return responses.success(snapshot.to_response())


@api_handler("Failed to grant bonus")
def grant_bonus(event: Dict[str, Any]) -> Dict[str, Any]:
    feature = _path_param(event, "feature") or _query_param(event, "feature")
    if not feature and event.get("body"):
        feature = parse_body(event).get("feature")
    grant = get_application().usage.grant_bonus(caller_id(event), parse_feature(feature or "scan"))
    return responses.success(grant.to_response())
