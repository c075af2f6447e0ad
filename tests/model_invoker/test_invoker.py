import io
import json
from unittest.mock import MagicMock, call

import pytest
from botocore.exceptions import ClientError

from correction_pipeline.domain.schemas import CorrectionResult
from correction_pipeline.exceptions import ModelResponseError, ModelUnavailableError
from correction_pipeline.model_invoker.invoker import ModelInvoker
from correction_pipeline.model_invoker.requests import CorrectionRequest, OcrRequest
from correction_pipeline.model_invoker.retry import RetryPolicy
from correction_pipeline.prompts.builder import NO_LEGIBLE_TEXT, build_correction_prompt, build_ocr_prompt

VALID_ANSWER = json.dumps(
    {
        "correctedText": "I went to school.",
        "corrections": [{"type": "grammar", "before": "goed", "after": "went", "explanation": "past tense"}],
    }
)


def model_response(text):
    body = {"output": {"message": {"role": "assistant", "content": [{"text": text}]}}}
    return {"body": io.BytesIO(json.dumps(body).encode("utf-8"))}


def throttled():
    return ClientError({"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}}, "InvokeModel")


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def sleep():
    return MagicMock()


@pytest.fixture
def invoker(client, sleep):
    return ModelInvoker(
        client=client,
        model_id="amazon.nova-lite-v1:0",
        retry_policy=RetryPolicy(max_attempts=3, backoff_base_seconds=1.0, retry_pause_seconds=0.5),
        max_tokens=1024,
        temperature=0.3,
        sleep=sleep,
    )


@pytest.fixture
def correction_request():
    prompt = build_correction_prompt("intermediate", "english", "japanese")
    return CorrectionRequest(prompt=prompt, original_text="I goed to school.")


def test_correction_success_on_first_attempt(invoker, client, sleep, correction_request):
    client.invoke_model.return_value = model_response(VALID_ANSWER)

    result = invoker.invoke(correction_request)

    assert isinstance(result, CorrectionResult)
    assert result.corrected_text == "I went to school."
    assert client.invoke_model.call_count == 1
    sleep.assert_not_called()


def test_correction_request_body(invoker, client, correction_request):
    client.invoke_model.return_value = model_response(VALID_ANSWER)

    invoker.invoke(correction_request)

    kwargs = client.invoke_model.call_args.kwargs
    assert kwargs["modelId"] == "amazon.nova-lite-v1:0"
    body = json.loads(kwargs["body"])
    assert body["schemaVersion"] == "messages-v1"
    assert body["system"][0]["text"] == correction_request.prompt.system_prompt
    assert "I goed to school." in body["messages"][0]["content"][0]["text"]
    assert body["inferenceConfig"] == {"maxTokens": 1024, "temperature": 0.3}


def test_prose_wrapped_json_is_accepted(invoker, client, correction_request):
    client.invoke_model.return_value = model_response(f"Here is your correction:\n{VALID_ANSWER}\nGood luck!")

    result = invoker.invoke(correction_request)

    assert result.corrections[0].after == "went"


def test_invalid_output_is_retried_with_fixed_pause(invoker, client, sleep, correction_request):
    client.invoke_model.side_effect = [
        model_response('{"correctedText": 42, "corrections": []}'),
        model_response(VALID_ANSWER),
    ]

    result = invoker.invoke(correction_request)

    assert result.corrected_text == "I went to school."
    assert client.invoke_model.call_count == 2
    sleep.assert_called_once_with(0.5)


def test_throttling_backs_off_exponentially(invoker, client, sleep, correction_request):
    client.invoke_model.side_effect = [throttled(), throttled(), model_response(VALID_ANSWER)]

    invoker.invoke(correction_request)

    assert sleep.call_args_list == [call(2.0), call(4.0)]


def test_exhausted_attempts_raise_model_unavailable(invoker, client, sleep, correction_request):
    client.invoke_model.side_effect = [throttled(), throttled(), throttled()]

    with pytest.raises(ModelUnavailableError) as exc_info:
        invoker.invoke(correction_request)

    assert client.invoke_model.call_count == 3
    # no wait after the final attempt
    assert sleep.call_count == 2
    assert isinstance(exc_info.value.__cause__, ClientError)


def test_unparseable_output_on_every_attempt(invoker, client, correction_request):
    client.invoke_model.side_effect = lambda **_: model_response("Sorry, I cannot help with that.")

    with pytest.raises(ModelUnavailableError) as exc_info:
        invoker.invoke(correction_request)

    assert isinstance(exc_info.value.__cause__, ModelResponseError)


def test_max_attempts_override(invoker, client, correction_request):
    client.invoke_model.side_effect = throttled()

    with pytest.raises(ModelUnavailableError):
        invoker.invoke(correction_request, max_attempts=1)

    assert client.invoke_model.call_count == 1


def test_ocr_returns_transcription(invoker, client):
    client.invoke_model.return_value = model_response("  Today I went to the park.\n")
    request = OcrRequest(prompt=build_ocr_prompt(), image_base64="iVBORw0KGgo", media_type="image/png")

    assert invoker.invoke(request) == "Today I went to the park."

    body = json.loads(client.invoke_model.call_args.kwargs["body"])
    image_block = body["messages"][0]["content"][0]["image"]
    assert image_block == {"format": "png", "source": {"bytes": "iVBORw0KGgo"}}
    assert "temperature" not in body["inferenceConfig"]


def test_ocr_sentinel_means_empty_text(invoker, client):
    client.invoke_model.return_value = model_response(NO_LEGIBLE_TEXT)
    request = OcrRequest(prompt=build_ocr_prompt(), image_base64="/9j/4AAQ", media_type="image/jpeg")

    assert invoker.invoke(request) == ""


def test_ocr_blank_output_is_not_retried(invoker, client, sleep):
    client.invoke_model.return_value = model_response("")
    request = OcrRequest(prompt=build_ocr_prompt(), image_base64="/9j/4AAQ", media_type="image/jpeg")

    assert invoker.invoke(request) == ""
    sleep.assert_not_called()


def test_ocr_malformed_output_is_retried_then_unavailable(invoker, client, sleep):
    client.invoke_model.side_effect = lambda **kwargs: {
        "body": io.BytesIO(json.dumps({"error": "internal"}).encode("utf-8"))
    }
    request = OcrRequest(prompt=build_ocr_prompt(), image_base64="/9j/4AAQ", media_type="image/jpeg")

    with pytest.raises(ModelUnavailableError) as exc_info:
        invoker.invoke(request)

    assert client.invoke_model.call_count == 3
    assert isinstance(exc_info.value.__cause__, ModelResponseError)


def test_no_retry_is_started_past_the_deadline(client, sleep, correction_request):
    client.invoke_model.side_effect = throttled()
    ticks = iter([0.0, 0.0, 57.0])
    invoker = ModelInvoker(
        client=client,
        model_id="amazon.nova-lite-v1:0",
        retry_policy=RetryPolicy(max_attempts=3, backoff_base_seconds=1.0),
        sleep=sleep,
        deadline_seconds=60,
        clock=lambda: next(ticks),
    )

    with pytest.raises(ModelUnavailableError, match="after 2 attempts"):
        invoker.invoke(correction_request)

    assert client.invoke_model.call_count == 2
    sleep.assert_called_once_with(2.0)
