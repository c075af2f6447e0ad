import pytest

from correction_pipeline.exceptions import InvalidInputError
from correction_pipeline.prompts.builder import (
    NO_LEGIBLE_TEXT,
    build_correction_prompt,
    build_ocr_prompt,
    get_prompt_hash,
)


def test_prompt_is_deterministic():
    first = build_correction_prompt("intermediate", "english", "japanese")
    second = build_correction_prompt("intermediate", "english", "japanese")

    assert first == second
    assert first.prompt_hash == second.prompt_hash


def test_target_language_is_named_in_prompts():
    prompt = build_correction_prompt("beginner", "spanish", "english")

    assert "Spanish" in prompt.system_prompt
    assert "Spanish diary" in prompt.user_prompt("Hola")


def test_explanations_requested_in_native_language():
    prompt = build_correction_prompt("advanced", "english", "japanese")

    assert "説明は日本語で行ってください。" in prompt.system_prompt
    assert "添削後の完全な日記テキスト" in prompt.json_contract


def test_modes_produce_different_prompts():
    hashes = {
        build_correction_prompt(mode, "english", "japanese").prompt_hash
        for mode in ("beginner", "intermediate", "advanced")
    }
    assert len(hashes) == 3


def test_json_contract_lists_correction_types():
    prompt = build_correction_prompt("beginner", "english", "english")

    assert '"correctedText"' in prompt.json_contract
    assert "grammar|spelling|style|vocabulary" in prompt.json_contract


def test_user_prompt_embeds_original_text():
    prompt = build_correction_prompt("beginner", "english", "english")
    assert "I goed to school" in prompt.user_prompt("I goed to school")


@pytest.mark.parametrize(
    "mode,target,native",
    [("expert", "english", "japanese"), ("beginner", "klingon", "japanese"), ("beginner", "english", "latin")],
)
def test_invalid_arguments_are_rejected(mode, target, native):
    with pytest.raises(InvalidInputError):
        build_correction_prompt(mode, target, native)


def test_ocr_prompt_names_sentinel():
    prompt = build_ocr_prompt()
    assert NO_LEGIBLE_TEXT in prompt
    assert "keep them as-is" in prompt


def test_prompt_hash_is_short_and_stable():
    assert get_prompt_hash("abc") == get_prompt_hash("abc")
    assert len(get_prompt_hash("abc")) == 12
    assert get_prompt_hash("abc") != get_prompt_hash("abd")
