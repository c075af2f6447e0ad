"""Retry policy for generative model calls."""

from dataclasses import dataclass

from botocore.exceptions import ClientError

# Provider error codes that mean "slow down" or "try again shortly"
THROTTLING_ERROR_CODES = (
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceUnavailableException",
    "ModelNotReadyException",
    "ModelTimeoutException",
)


def is_throttling_error(error: Exception) -> bool:
    """True when the provider classified the failure as throttling or transient unavailability."""
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code", "")
        return code in THROTTLING_ERROR_CODES
    return type(error).__name__ in THROTTLING_ERROR_CODES


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to call the model and how long to wait between attempts.

    Attributes:
        max_attempts: Total number of calls, including the first.
        backoff_base_seconds: Throttling waits are ``backoff_base_seconds * 2 ** attempt``.
        retry_pause_seconds: Fixed pause after any other failure.
        max_delay_seconds: Cap on a single backoff wait.
    """

    max_attempts: int = 3
    backoff_base_seconds: float = 1.0
    retry_pause_seconds: float = 0.5
    max_delay_seconds: float = 60.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, error: Exception, attempt: int) -> float:
        """Seconds to wait after a failed attempt (1-based) before the next one."""
        if is_throttling_error(error):
            return min(self.backoff_base_seconds * (2**attempt), self.max_delay_seconds)
        return self.retry_pause_seconds
