"""Exceptions raised by the correction pipeline.

The API layer maps each of these onto a response; anything else is reported as a generic server error.
"""

from typing import Any, Dict


class CorrectionPipelineError(Exception):
    """Base exception for correction pipeline failures."""


class UnauthorizedError(CorrectionPipelineError):
    """The caller has no verified identity."""


class NotFoundError(CorrectionPipelineError):
    """The resource does not exist or is not owned by the caller."""


class InvalidInputError(CorrectionPipelineError):
    """The request is malformed or carries an unsupported value."""


class QuotaExceededError(CorrectionPipelineError):
    """A metered action was denied by the quota engine.

    Attributes:
        denial: The quota engine's Deny decision, kept so the client can offer a reward flow.
    """

    def __init__(self, code: str, denial: Any):
        super().__init__(f"{code}: daily limit reached ({denial.count}/{denial.base_limit + denial.bonus_count})")
        self.code = code
        self.denial = denial

    def to_dict(self) -> Dict[str, Any]:
        """Structured body returned to the client."""
        return {
            "code": self.code,
            "message": "Daily limit reached",
            "count": self.denial.count,
            "limit": self.denial.base_limit,
            "bonusCount": self.denial.bonus_count,
            "maxBonus": self.denial.max_bonus,
            "canWatchAd": self.denial.bonus_eligible,
        }


class BonusLimitReachedError(CorrectionPipelineError):
    """No more bonus allowance can be granted today."""

    code = "MAX_BONUS_REACHED"

    def __init__(self, bonus_count: int, max_bonus: int):
        super().__init__(f"Maximum bonus already granted for today ({bonus_count}/{max_bonus})")
        self.bonus_count = bonus_count
        self.max_bonus = max_bonus

    def to_dict(self) -> Dict[str, Any]:
        """Structured body returned to the client."""
        return {
            "code": self.code,
            "message": "Maximum bonus already granted for today",
            "bonusCount": self.bonus_count,
            "maxBonus": self.max_bonus,
        }


class ModelResponseError(CorrectionPipelineError):
    """The model answered, but its output could not be decoded or validated."""


class ModelUnavailableError(CorrectionPipelineError):
    """The model could not produce a usable result within the attempt budget."""


class StorageError(CorrectionPipelineError):
    """A record or object store operation failed."""


class PipelineError(CorrectionPipelineError):
    """Unexpected failure inside an orchestrated flow."""


class ConflictError(CorrectionPipelineError):
    """The resource changed while the request was in flight."""
