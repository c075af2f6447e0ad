"""Model invoker: one Bedrock call per attempt, with shared retry and validation policy."""

import json
import logging
import time
from typing import Any, Callable

from correction_pipeline.exceptions import ModelResponseError, ModelUnavailableError
from correction_pipeline.model_invoker.requests import ModelRequest
from correction_pipeline.model_invoker.response import extract_output_text
from correction_pipeline.model_invoker.retry import RetryPolicy, is_throttling_error

logger = logging.getLogger(__name__)


class ModelInvoker:
    """Invokes a Bedrock model for correction and OCR requests.

    Every failure is retried within the attempt budget: throttling and transient unavailability with
    exponential backoff, everything else (transport errors, undecodable or invalid output) after a
    short fixed pause. When the budget is exhausted a ModelUnavailableError is raised carrying the last
    error as its cause; callers decide whether to surface it.
    """

    def __init__(
        self,
        client: Any,
        model_id: str,
        retry_policy: RetryPolicy | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
        sleep: Callable[[float], None] = time.sleep,
        deadline_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the invoker.

        Args:
            client: A boto3 bedrock-runtime client.
            model_id: The Bedrock model identifier.
            retry_policy: Attempt budget and wait schedule.
            max_tokens: Output token cap for every request.
            temperature: Sampling temperature for requests that use one.
            sleep: Wait function, replaceable in tests.
            deadline_seconds: Seconds from the first attempt after which no retry is started.
            clock: Monotonic time source, replaceable in tests.
        """
        self.client = client
        self.model_id = model_id
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.sleep = sleep
        self.deadline_seconds = deadline_seconds
        self.clock = clock

    def _call(self, request: ModelRequest) -> Any:
        body = request.build_body(max_tokens=self.max_tokens, temperature=self.temperature)
        response = self.client.invoke_model(
            modelId=self.model_id,
            body=json.dumps(body),
            contentType="application/json",
            accept="application/json",
        )
        try:
            response_body = json.loads(response["body"].read())
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ModelResponseError("Model response body is not valid JSON") from e
        text = extract_output_text(response_body, allow_empty=request.allow_empty_output)
        return request.parse_output(text)

    def invoke(self, request: ModelRequest, max_attempts: int | None = None) -> Any:
        """Runs a request until it yields a valid result or the attempt budget is spent.

        Args:
            request: The correction or OCR request.
            max_attempts: Overrides the policy's attempt budget for this call.

        Returns:
            The request's parsed result (CorrectionResult for corrections, str for OCR).

        Raises:
            ModelUnavailableError: If every attempt failed.
        """
        attempts = max_attempts or self.retry_policy.max_attempts
        last_error: Exception | None = None
        made = 0
        started = self.clock()

        for attempt in range(1, attempts + 1):
            logger.info(f"Model {request.name} attempt {attempt}/{attempts} (prompt {request.prompt_hash})")
            made = attempt
            try:
                return self._call(request)
            except Exception as e:
                last_error = e
                logger.warning(f"Model {request.name} attempt {attempt}/{attempts} failed: {e}")
                if attempt < attempts:
                    delay = self.retry_policy.delay_for(e, attempt)
                    if self._past_deadline(started, delay):
                        logger.error(f"Model {request.name} would pass its {self.deadline_seconds}s deadline; no retry")
                        break
                    if is_throttling_error(e):
                        logger.warning(f"Model throttled, retrying in {delay:.1f}s")
                    self.sleep(delay)

        logger.error(f"All {made} model {request.name} attempts failed. Last error: {last_error}")
        raise ModelUnavailableError(f"Model {request.name} failed after {made} attempts") from last_error

    def _past_deadline(self, started: float, delay: float) -> bool:
        if self.deadline_seconds is None:
            return False
        return self.clock() - started + delay >= self.deadline_seconds
