from unittest import mock

import pytest

from correction_pipeline.custom_logging.log_context import user_id_context
from correction_pipeline.domain.schemas import Correction, CorrectionResult, Diary, Feature, UsageCounts, User
from correction_pipeline.exceptions import (
    ConflictError,
    InvalidInputError,
    ModelUnavailableError,
    NotFoundError,
    PipelineError,
    QuotaExceededError,
    StorageError,
    UnauthorizedError,
)
from correction_pipeline.model_invoker.requests import CorrectionRequest
from correction_pipeline.orchestration.correction import CorrectionOrchestrator
from correction_pipeline.storage.diary_repository import DiaryRepository

TODAY = "2024-05-01"


@pytest.fixture
def diary():
    return Diary(diary_id="diary-1", user_id="user-1", date=TODAY, original_text="I goed to school.", created_at=1)


@pytest.fixture
def mock_user_repository():
    repository = mock.Mock()
    repository.get.return_value = User(user_id="user-1", email="taro@example.com", plan="free", created_at=1)
    return repository


@pytest.fixture
def mock_diary_repository(diary):
    repository = mock.Mock()
    repository.get_owned.return_value = diary
    return repository


@pytest.fixture
def mock_ledger():
    ledger = mock.Mock()
    ledger.peek.return_value = UsageCounts(count=0, bonus_count=0)
    return ledger


@pytest.fixture
def correction_result():
    return CorrectionResult(
        corrected_text="I went to school.",
        corrections=[Correction(type="grammar", before="goed", after="went", explanation="past tense")],
    )


@pytest.fixture
def mock_invoker(correction_result):
    invoker = mock.Mock()
    invoker.invoke.return_value = correction_result
    return invoker


def build(user_repository, diary_repository, ledger, invoker, **kwargs):
    return CorrectionOrchestrator(
        user_repository=user_repository,
        diary_repository=diary_repository,
        usage_ledger=ledger,
        model_invoker=invoker,
        today=lambda: TODAY,
        now=lambda: 9000,
        **kwargs,
    )


@pytest.fixture
def orchestrator(mock_user_repository, mock_diary_repository, mock_ledger, mock_invoker):
    return build(mock_user_repository, mock_diary_repository, mock_ledger, mock_invoker)


def test_correct_diary_success(orchestrator, mock_diary_repository, mock_ledger, mock_invoker, correction_result):
    result = orchestrator.correct_diary("user-1", "diary-1", "intermediate")

    assert result == correction_result
    mock_diary_repository.get_owned.assert_called_once_with("diary-1", "user-1")
    mock_ledger.peek.assert_called_once_with("user-1", Feature.CORRECTION, TODAY)

    request = mock_invoker.invoke.call_args.args[0]
    assert isinstance(request, CorrectionRequest)
    assert request.original_text == "I goed to school."
    assert "English" in request.prompt.system_prompt

    mock_diary_repository.set_correction.assert_called_once_with(
        "diary-1",
        "user-1",
        "I went to school.",
        correction_result.corrections,
        updated_at=9000,
        source_text="I goed to school.",
    )
    mock_ledger.increment_usage.assert_called_once_with("user-1", Feature.CORRECTION, TODAY)


def test_usage_is_committed_after_persisting(orchestrator, mock_diary_repository, mock_ledger):
    parent = mock.Mock()
    parent.attach_mock(mock_diary_repository.set_correction, "set_correction")
    parent.attach_mock(mock_ledger.increment_usage, "increment_usage")

    orchestrator.correct_diary("user-1", "diary-1", "beginner")

    assert [c[0] for c in parent.mock_calls] == ["set_correction", "increment_usage"]


def test_user_languages_drive_the_prompt(orchestrator, mock_user_repository, mock_invoker):
    mock_user_repository.get.return_value = User(
        user_id="user-1", target_language="french", native_language="korean", created_at=1
    )

    orchestrator.correct_diary("user-1", "diary-1", "advanced")

    prompt = mock_invoker.invoke.call_args.args[0].prompt
    assert "French" in prompt.system_prompt
    assert "설명은 한국어로 해주세요." in prompt.system_prompt


def test_missing_user_record_is_treated_as_free(orchestrator, mock_user_repository, mock_ledger):
    mock_user_repository.get.return_value = None
    mock_ledger.peek.return_value = UsageCounts(count=3, bonus_count=0)

    with pytest.raises(QuotaExceededError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")


def test_quota_denial(orchestrator, mock_ledger, mock_invoker, mock_diary_repository):
    mock_ledger.peek.return_value = UsageCounts(count=3, bonus_count=0)

    with pytest.raises(QuotaExceededError) as exc_info:
        orchestrator.correct_diary("user-1", "diary-1", "intermediate")

    assert exc_info.value.to_dict() == {
        "code": "CORRECTION_LIMIT_REACHED",
        "message": "Daily limit reached",
        "count": 3,
        "limit": 3,
        "bonusCount": 0,
        "maxBonus": 2,
        "canWatchAd": True,
    }
    mock_invoker.invoke.assert_not_called()
    mock_diary_repository.set_correction.assert_not_called()
    mock_ledger.increment_usage.assert_not_called()


def test_bonus_extends_allowance(orchestrator, mock_ledger, mock_invoker):
    mock_ledger.peek.return_value = UsageCounts(count=3, bonus_count=1)

    orchestrator.correct_diary("user-1", "diary-1", "intermediate")

    mock_invoker.invoke.assert_called_once()


def test_premium_user_is_never_metered(orchestrator, mock_user_repository, mock_ledger):
    mock_user_repository.get.return_value = User(user_id="user-1", plan="premium", created_at=1)

    orchestrator.correct_diary("user-1", "diary-1", "intermediate")

    mock_ledger.peek.assert_not_called()
    mock_ledger.increment_usage.assert_not_called()


def test_missing_identity(orchestrator, mock_diary_repository):
    with pytest.raises(UnauthorizedError):
        orchestrator.correct_diary(None, "diary-1", "beginner")
    mock_diary_repository.get_owned.assert_not_called()


@pytest.mark.parametrize("diary_id,mode", [(None, "beginner"), ("diary-1", "expert"), ("diary-1", None)])
def test_invalid_input(orchestrator, mock_ledger, diary_id, mode):
    with pytest.raises(InvalidInputError):
        orchestrator.correct_diary("user-1", diary_id, mode)
    mock_ledger.peek.assert_not_called()


def test_not_found_consumes_nothing(orchestrator, mock_diary_repository, mock_ledger, mock_invoker):
    mock_diary_repository.get_owned.side_effect = NotFoundError("Diary not found")

    with pytest.raises(NotFoundError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")

    mock_invoker.invoke.assert_not_called()
    mock_ledger.increment_usage.assert_not_called()


def test_model_failure_consumes_nothing(orchestrator, mock_invoker, mock_diary_repository, mock_ledger):
    mock_invoker.invoke.side_effect = ModelUnavailableError("down")

    with pytest.raises(ModelUnavailableError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")

    mock_diary_repository.set_correction.assert_not_called()
    mock_ledger.increment_usage.assert_not_called()


def test_fallback_returns_original_text(
    mock_user_repository, mock_diary_repository, mock_ledger, mock_invoker, caplog
):
    orchestrator = build(
        mock_user_repository, mock_diary_repository, mock_ledger, mock_invoker, fallback_to_original=True
    )
    mock_invoker.invoke.side_effect = ModelUnavailableError("down")

    with caplog.at_level("WARNING"):
        result = orchestrator.correct_diary("user-1", "diary-1", "beginner")

    assert result.fallback is True
    assert result.corrected_text == "I goed to school."
    assert result.corrections == []
    assert result.to_response() == {"correctedText": "I goed to school.", "corrections": [], "fallback": True}
    assert "fell back" in caplog.text
    mock_diary_repository.set_correction.assert_not_called()
    mock_ledger.increment_usage.assert_not_called()


def test_diary_deleted_during_invocation(orchestrator, mock_diary_repository, mock_ledger):
    mock_diary_repository.set_correction.side_effect = NotFoundError("Diary not found")

    with pytest.raises(NotFoundError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")

    mock_ledger.increment_usage.assert_not_called()


def test_storage_failure_propagates(orchestrator, mock_diary_repository, mock_ledger):
    mock_diary_repository.set_correction.side_effect = StorageError("Failed to store correction")

    with pytest.raises(StorageError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")

    mock_ledger.increment_usage.assert_not_called()


def test_unexpected_error_is_wrapped(orchestrator, mock_invoker):
    mock_invoker.invoke.side_effect = RuntimeError("unexpected")

    with pytest.raises(PipelineError, match="unexpected"):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")


def test_user_id_context_is_reset(orchestrator, mock_invoker):
    mock_invoker.invoke.side_effect = ModelUnavailableError("down")

    with pytest.raises(ModelUnavailableError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")

    assert user_id_context.get() is None


def test_diary_edited_during_invocation_is_a_conflict(orchestrator, mock_diary_repository, mock_ledger):
    mock_diary_repository.set_correction.side_effect = ConflictError("Diary was edited during correction")

    with pytest.raises(ConflictError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")

    mock_ledger.increment_usage.assert_not_called()


def test_edit_during_invocation_keeps_the_new_text(diaries_table, mock_user_repository, mock_ledger, mock_invoker):
    diary_repository = DiaryRepository(diaries_table)
    diary = diary_repository.create(
        Diary(diary_id="diary-1", user_id="user-1", date=TODAY, original_text="I goed home", created_at=1)
    )

    def edit_then_answer(request):
        diary_repository.update_text(diary, "Completely new text", updated_at=2)
        return CorrectionResult(corrected_text="I went home", corrections=[Correction(before="goed", after="went")])

    mock_invoker.invoke.side_effect = edit_then_answer
    orchestrator = build(mock_user_repository, diary_repository, mock_ledger, mock_invoker)

    with pytest.raises(ConflictError):
        orchestrator.correct_diary("user-1", "diary-1", "beginner")

    stored = diary_repository.get("diary-1")
    assert stored.original_text == "Completely new text"
    assert stored.corrected_text is None
    assert stored.corrections == []
    mock_ledger.increment_usage.assert_not_called()
