"""Language tables used by the prompt builder."""

from typing import Dict, NamedTuple

from correction_pipeline.domain.schemas import Language

LANGUAGE_NAMES: Dict[Language, str] = {
    Language.ENGLISH: "English",
    Language.SPANISH: "Spanish",
    Language.CHINESE: "Chinese",
    Language.JAPANESE: "Japanese",
    Language.KOREAN: "Korean",
    Language.FRENCH: "French",
    Language.GERMAN: "German",
    Language.ITALIAN: "Italian",
}

# Written in the native language so the model answers in it
EXPLANATION_INSTRUCTIONS: Dict[Language, str] = {
    Language.ENGLISH: "Provide explanations in English.",
    Language.JAPANESE: "説明は日本語で行ってください。",
    Language.SPANISH: "Proporcione explicaciones en español.",
    Language.CHINESE: "请用中文提供解释。",
    Language.KOREAN: "설명은 한국어로 해주세요.",
    Language.FRENCH: "Fournissez des explications en français.",
    Language.GERMAN: "Erklärungen auf Deutsch.",
    Language.ITALIAN: "Fornire spiegazioni in italiano.",
}


class JsonFieldDescriptions(NamedTuple):
    """Placeholder texts shown inside the JSON contract, in the explanation language."""

    corrected_text: str
    before: str
    after: str
    explanation: str
    no_correction_needed: str


JSON_FIELD_DESCRIPTIONS: Dict[Language, JsonFieldDescriptions] = {
    Language.ENGLISH: JsonFieldDescriptions(
        corrected_text="The complete corrected diary text",
        before="Original phrase before correction",
        after="Corrected phrase",
        explanation="Brief explanation of why this correction is needed",
        no_correction_needed="If no corrections are needed, return:",
    ),
    Language.JAPANESE: JsonFieldDescriptions(
        corrected_text="添削後の完全な日記テキスト",
        before="修正前の元のフレーズ",
        after="修正後のフレーズ",
        explanation="この修正が必要な理由の簡潔な説明（日本語で）",
        no_correction_needed="修正が不要な場合は以下を返してください:",
    ),
    Language.SPANISH: JsonFieldDescriptions(
        corrected_text="El texto completo del diario corregido",
        before="Frase original antes de la corrección",
        after="Frase corregida",
        explanation="Breve explicación de por qué se necesita esta corrección (en español)",
        no_correction_needed="Si no se necesitan correcciones, devuelva:",
    ),
    Language.CHINESE: JsonFieldDescriptions(
        corrected_text="校正后的完整日记文本",
        before="修正前的原始短语",
        after="修正后的短语",
        explanation="简要说明为什么需要此修正（用中文）",
        no_correction_needed="如果不需要修正，请返回：",
    ),
    Language.KOREAN: JsonFieldDescriptions(
        corrected_text="수정된 전체 일기 텍스트",
        before="수정 전 원래 문구",
        after="수정된 문구",
        explanation="이 수정이 필요한 이유에 대한 간략한 설명 (한국어로)",
        no_correction_needed="수정이 필요 없는 경우 다음을 반환하세요:",
    ),
    Language.FRENCH: JsonFieldDescriptions(
        corrected_text="Le texte complet du journal corrigé",
        before="Phrase originale avant correction",
        after="Phrase corrigée",
        explanation="Brève explication de la raison de cette correction (en français)",
        no_correction_needed="Si aucune correction n'est nécessaire, retournez:",
    ),
    Language.GERMAN: JsonFieldDescriptions(
        corrected_text="Der vollständige korrigierte Tagebuchtext",
        before="Ursprünglicher Satz vor der Korrektur",
        after="Korrigierter Satz",
        explanation="Kurze Erklärung, warum diese Korrektur erforderlich ist (auf Deutsch)",
        no_correction_needed="Wenn keine Korrekturen erforderlich sind, geben Sie zurück:",
    ),
    Language.ITALIAN: JsonFieldDescriptions(
        corrected_text="Il testo completo del diario corretto",
        before="Frase originale prima della correzione",
        after="Frase corretta",
        explanation="Breve spiegazione del perché è necessaria questa correzione (in italiano)",
        no_correction_needed="Se non sono necessarie correzioni, restituisci:",
    ),
}
