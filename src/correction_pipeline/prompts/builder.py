"""Prompt builder for diary correction and handwriting transcription.

Prompts are pure functions of their inputs, so every (mode, target language, native language)
combination yields the same text on every call. A short hash of each prompt is logged with model
calls to make output changes traceable to prompt changes.
"""

import hashlib
from dataclasses import dataclass

from correction_pipeline.domain.schemas import CorrectionMode, Language
from correction_pipeline.exceptions import InvalidInputError
from correction_pipeline.prompts.languages import EXPLANATION_INSTRUCTIONS, JSON_FIELD_DESCRIPTIONS, LANGUAGE_NAMES

# The model answers exactly this when an image holds nothing legible
NO_LEGIBLE_TEXT = "[No readable text found]"

CORRECTION_TYPES = ("grammar", "spelling", "style", "vocabulary")

# =============================================================================
# Correction prompts
# =============================================================================

_SYSTEM_PROMPTS = {
    CorrectionMode.BEGINNER: (
        "You are a kind {language} teacher correcting a beginner student's {language} diary.\n"
        "Focus only on:\n"
        "- Basic grammar errors (verb tense, subject-verb agreement)\n"
        "- Spelling mistakes\n"
        "- Missing articles or basic particles\n"
        "\n"
        "{explanation_instruction}\n"
        "Keep explanations simple and encouraging."
    ),
    CorrectionMode.INTERMEDIATE: (
        "You are a {language} teacher improving an intermediate student's {language} diary.\n"
        "Focus on:\n"
        "- All grammar and spelling errors\n"
        "- Unnatural expressions that should sound more natural\n"
        "- Vocabulary improvement suggestions\n"
        "- Preposition/particle usage\n"
        "\n"
        "{explanation_instruction}\n"
        "Explain clearly why each correction is needed."
    ),
    CorrectionMode.ADVANCED: (
        "You are a {language} teacher refining an advanced student's {language} diary.\n"
        "Provide comprehensive corrections including:\n"
        "- Grammar and spelling (including subtle errors)\n"
        "- Replace unnatural expressions with natural expressions or idioms\n"
        "- Style improvements for more sophisticated writing\n"
        "- Better vocabulary suggestions\n"
        "- Detailed explanations of why native speakers prefer certain expressions\n"
        "\n"
        "{explanation_instruction}"
    ),
}

_JSON_CONTRACT = """IMPORTANT: Reply ONLY with JSON in this format. Do not include any other text:
{{
  "correctedText": "{corrected_text}",
  "corrections": [
    {{
      "type": "{types}",
      "before": "{before}",
      "after": "{after}",
      "explanation": "{explanation}"
    }}
  ]
}}

{no_correction_needed}
{{
  "correctedText": "original text unchanged",
  "corrections": []
}}"""


@dataclass(frozen=True)
class CorrectionPrompt:
    """System instruction plus the JSON contract the model must answer with."""

    system_prompt: str
    json_contract: str
    language_name: str

    def user_prompt(self, original_text: str) -> str:
        """The user instruction for one diary text."""
        return (
            f"Correct the following {self.language_name} diary and list all corrections.\n\n"
            f"{self.json_contract}\n\n"
            f'Diary to correct:\n"""\n{original_text}\n"""'
        )

    @property
    def prompt_hash(self) -> str:
        return get_prompt_hash(self.system_prompt + self.json_contract)


def _parse_enum(enum_cls, value, field_name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise InvalidInputError(f"Invalid {field_name} '{value}'. Use one of: {allowed}") from None


def build_correction_prompt(mode: str, target_language: str, native_language: str) -> CorrectionPrompt:
    """Builds the prompt pair for a correction request.

    Args:
        mode: beginner, intermediate or advanced; controls the scope of corrections.
        target_language: The language being learned and written in the diary.
        native_language: The language the explanations are written in.

    Returns:
        CorrectionPrompt: The deterministic system prompt and JSON contract.

    Raises:
        InvalidInputError: If any argument is outside its enumerated set.
    """
    mode = _parse_enum(CorrectionMode, mode, "mode")
    target = _parse_enum(Language, target_language, "target language")
    native = _parse_enum(Language, native_language, "native language")

    language_name = LANGUAGE_NAMES[target]
    system_prompt = _SYSTEM_PROMPTS[mode].format(
        language=language_name,
        explanation_instruction=EXPLANATION_INSTRUCTIONS[native],
    )
    descriptions = JSON_FIELD_DESCRIPTIONS[native]
    json_contract = _JSON_CONTRACT.format(
        corrected_text=descriptions.corrected_text,
        types="|".join(CORRECTION_TYPES),
        before=descriptions.before,
        after=descriptions.after,
        explanation=descriptions.explanation,
        no_correction_needed=descriptions.no_correction_needed,
    )
    return CorrectionPrompt(system_prompt=system_prompt, json_contract=json_contract, language_name=language_name)


# =============================================================================
# OCR prompt
# =============================================================================

OCR_PROMPT = (
    "You are an expert at reading handwritten text. "
    "Please carefully read and transcribe all the handwritten text in this image.\n"
    "\n"
    "Instructions:\n"
    "- Transcribe the text exactly as written, preserving line breaks and paragraphs\n"
    "- If you're unsure about a word, make your best guess based on context\n"
    "- Do not add any commentary, explanations, or corrections\n"
    "- If there are spelling or grammar mistakes in the handwriting, keep them as-is\n"
    f"- If no text is visible or readable, respond with: {NO_LEGIBLE_TEXT}\n"
    "- Only output the transcribed text, nothing else\n"
    "\n"
    "Transcribe the handwritten text:"
)


def build_ocr_prompt() -> str:
    """Instruction for verbatim transcription of handwriting, keeping the writer's own errors."""
    return OCR_PROMPT


def get_prompt_hash(prompt: str) -> str:
    """Short, stable hash identifying a prompt text."""
    return hashlib.sha256(prompt.encode("utf-8")).hexdigest()[:12]
