"""Prompt builders for the three translation flows."""

from typing import Union

from c3talk.schemas.translation import Language

LanguageLike = Union[Language, str]


def language_name(language: LanguageLike) -> str:
    return language.value if isinstance(language, Language) else str(language)


def audio_prompt(target_language: LanguageLike) -> str:
    target = language_name(target_language)
    return f"""
You are an expert translator.
1. Transcribe the spoken English audio. The audio might be low quality (WhatsApp Voice Note) or contain noise. Do your best to transcribe the meaning accurately.
2. Translate the transcription into {target}.

Return strictly a JSON object with this structure:
{{
  "transcription": "English text...",
  "translation": "{target} text..."
}}
"""


def text_prompt(text: str, target_language: LanguageLike) -> str:
    target = language_name(target_language)
    return (
        f'Text: "{text}"\n\n'
        f"Translate the following English text into {target}. "
        'Return strictly JSON with a "translation" field.'
    )


def reply_prompt(text: str, source_language: LanguageLike) -> str:
    source = language_name(source_language)
    return (
        f'Original ({source}): "{text}"\n\n'
        f"Translate the following {source} text into clear, professional English "
        "suitable for a WhatsApp reply. "
        'Return strictly JSON with a "translation" field.'
    )
