"""Prompt templates for the extract (OCR) and translate stages.

Templates use ``{{.Name}}`` placeholders. Language codes are rendered as
display names; the mode-specific instruction placeholders are filled
according to whether vision-direct translation is enabled. Every function
here is pure and returns trimmed text.
"""

from dataclasses import dataclass

DEFAULT_EXTRACT_PROMPT = """You are a visual context analyst preparing material for a high-quality translation. Complete the following:

1. Background: describe the scene, subjects, layout, style and any visual cue that may affect understanding.
2. Source text: extract every piece of text in the image, keeping the {{.SourceLanguage}} original order and formatting (line breaks, indentation, symbols and casing).

Output requirements:
- Return the result strictly as the JSON structure below, with no extra commentary:
{
  "background": "...",
  "words": "..."
}
- The "words" field must contain only the recognized source text.

{{.RelayInstruction}}
{{.VisionDirectInstruction}}"""

DEFAULT_TRANSLATE_PROMPT = """You are a professional translator handling text taken from images. You will receive a JSON object:
- the "background" field gives scene context;
- the "words" field holds the source text to translate (language: {{.SourceLanguage}}).

Translate the "words" field accurately into {{.TargetLanguage}}, keeping the original paragraphs, line breaks and symbols. Follow these rules:
1. Translate only the "words" field and ignore the "background" content;
2. Use the "background" context to choose suitable terms and phrasing;
3. Keep proper nouns, numbers and layout consistent;
4. Do not add explanations or notes to the output.

{{.VisionModeInstruction}}"""

_LANGUAGE_NAMES = {
    "auto": "Auto-detect",
    "zh-CN": "Simplified Chinese",
    "zh-TW": "Traditional Chinese",
    "en": "English",
    "ja": "Japanese",
    "ko": "Korean",
    "fr": "French",
    "de": "German",
    "es": "Spanish",
    "ru": "Russian",
    "ar": "Arabic",
    "pt": "Portuguese",
    "it": "Italian",
    "th": "Thai",
    "vi": "Vietnamese",
}

VISION_DIRECT_PROMPT_TEMPLATE = """You are a visual translation expert who reads text directly from images and translates it into {target}.
**Core task:**
1. Recognize all text in the image;
2. Translate the recognized text from {source} into {target};
3. Output the translation directly, keeping the original formatting.
**Translation requirements:**
- Keep the original line breaks, spacing and punctuation;
- Make the translation accurate, natural and idiomatic {target};
- Use the image context to choose the most fitting translation;
- Do not include explanations, notes or the original text.

**Output format:**
Output only the translated text, with nothing else."""


@dataclass(frozen=True)
class PromptVariables:
    """Values substituted into prompt templates."""
    source_language: str = "auto"
    target_language: str = "zh-CN"
    use_vision_for_translation: bool = False


def language_display_name(code: str) -> str:
    """Map a language code to its display name; unknown codes pass through."""
    return _LANGUAGE_NAMES.get(code, code)


def normalize_prompt(value: str | None, fallback: str) -> str:
    trimmed = (value or "").strip()
    return trimmed or fallback


def process_extract_prompt(template: str, variables: PromptVariables) -> str:
    """Fill an extract prompt and inject the relay or vision-direct instruction.

    Args:
        template: Extract prompt with ``{{.Name}}`` placeholders.
        variables: Languages and mode.

    Returns:
        Trimmed prompt text.
    """
    prompt = _replace_languages(template, variables)
    prompt = prompt.replace("{{.RelayInstruction}}", _relay_instruction(variables))
    prompt = prompt.replace("{{.VisionDirectInstruction}}", _vision_direct_instruction(variables))
    return prompt.strip()


def process_translate_prompt(template: str, variables: PromptVariables) -> str:
    """Fill a translate prompt and inject the input-mode instruction."""
    prompt = _replace_languages(template, variables)
    prompt = prompt.replace("{{.VisionModeInstruction}}", _vision_mode_instruction(variables))
    return prompt.strip()


def build_vision_direct_translation_prompt(variables: PromptVariables) -> str:
    """Single-shot prompt for reading and translating an image in one call."""
    target = language_display_name(variables.target_language)
    source = language_display_name(variables.source_language)
    if variables.source_language == "auto":
        source = "the automatically detected language"
    return VISION_DIRECT_PROMPT_TEMPLATE.format(source=source, target=target).strip()


def _replace_languages(prompt: str, variables: PromptVariables) -> str:
    prompt = prompt.replace("{{.SourceLanguage}}", language_display_name(variables.source_language))
    return prompt.replace("{{.TargetLanguage}}", language_display_name(variables.target_language))


def _relay_instruction(variables: PromptVariables) -> str:
    if variables.use_vision_for_translation:
        return ""
    target = language_display_name(variables.target_language)
    return (
        "Vision-direct mode is off: return only the source-text JSON. "
        f"A later step will translate it into {target}."
    )


def _vision_direct_instruction(variables: PromptVariables) -> str:
    if not variables.use_vision_for_translation:
        return ""
    target = language_display_name(variables.target_language)
    return (
        "Vision-direct mode is on: after the JSON, give the "
        f"{target} translation laid out like the original, without repeating the source text."
    )


def _vision_mode_instruction(variables: PromptVariables) -> str:
    target = language_display_name(variables.target_language)
    if variables.use_vision_for_translation:
        return (
            "Vision-direct mode is on: if the input still contains source text, output the "
            f"matching {target} translation with the same layout as the original."
        )
    return (
        f"The input comes from OCR: output only the translated {target} text, "
        "without repeating or appending the source."
    )
