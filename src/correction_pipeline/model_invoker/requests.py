"""Request shapes accepted by the model invoker.

Each request knows how to serialize itself into a Bedrock Nova ``messages-v1`` body and how to turn
the model's text answer into its result type. The invoker's retry and validation policy is shared.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict

from correction_pipeline.domain.schemas import CorrectionResult
from correction_pipeline.model_invoker.media_type import image_format
from correction_pipeline.model_invoker.response import parse_correction_output
from correction_pipeline.prompts.builder import NO_LEGIBLE_TEXT, CorrectionPrompt, get_prompt_hash


class ModelRequest(ABC):
    """A single structured call to the generative model."""

    name: str = "model"
    allow_empty_output: bool = False

    @abstractmethod
    def build_body(self, max_tokens: int, temperature: float) -> Dict[str, Any]:
        """Builds the Nova request body.

        Args:
            max_tokens: Output token cap.
            temperature: Sampling temperature.

        Returns:
            Request body dict for the model's API format.
        """

    @abstractmethod
    def parse_output(self, text: str) -> Any:
        """Converts the model's text answer into the request's result.

        Raises:
            ModelResponseError: If the answer fails validation; the invoker retries.
        """

    @property
    @abstractmethod
    def prompt_hash(self) -> str:
        """Identifier of the prompt text, for logs."""


@dataclass(frozen=True)
class CorrectionRequest(ModelRequest):
    """Text correction of one diary."""

    prompt: CorrectionPrompt
    original_text: str

    name = "correction"

    def build_body(self, max_tokens: int, temperature: float) -> Dict[str, Any]:
        return {
            "schemaVersion": "messages-v1",
            "system": [{"text": self.prompt.system_prompt}],
            "messages": [{"role": "user", "content": [{"text": self.prompt.user_prompt(self.original_text)}]}],
            "inferenceConfig": {"maxTokens": max_tokens, "temperature": temperature},
        }

    def parse_output(self, text: str) -> CorrectionResult:
        return parse_correction_output(text)

    @property
    def prompt_hash(self) -> str:
        return self.prompt.prompt_hash


@dataclass(frozen=True)
class OcrRequest(ModelRequest):
    """Handwriting transcription of one base64 image."""

    prompt: str
    image_base64: str
    media_type: str

    name = "ocr"
    allow_empty_output = True

    def build_body(self, max_tokens: int, temperature: float) -> Dict[str, Any]:
        # Transcription keeps the provider's default temperature
        return {
            "schemaVersion": "messages-v1",
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"image": {"format": image_format(self.media_type), "source": {"bytes": self.image_base64}}},
                        {"text": self.prompt},
                    ],
                }
            ],
            "inferenceConfig": {"maxTokens": max_tokens},
        }

    def parse_output(self, text: str) -> str:
        transcription = text.strip()
        if transcription == NO_LEGIBLE_TEXT:
            return ""
        return transcription

    @property
    def prompt_hash(self) -> str:
        return get_prompt_hash(self.prompt)
