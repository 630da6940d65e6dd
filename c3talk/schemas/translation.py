"""
Translation Schemas
"""

from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel


class Language(str, Enum):
    ENGLISH = "English"
    AMHARIC = "Amharic"
    OROMO = "Oromo"


class RequestKind(str, Enum):
    AUDIO = "audio"
    TEXT = "text"
    REPLY = "reply"


class TranslationRequest(BaseModel):
    """Per-action request; never persisted"""

    kind: RequestKind
    payload: Union[bytes, str]
    mime_type: Optional[str] = None
    source_language: Language = Language.ENGLISH
    target_language: Language
    user_id: Optional[str] = None


class TranslationResult(BaseModel):
    transcription: Optional[str] = None
    translation: str


class ResponseSchema(BaseModel):
    """Fields a provider payload must carry"""

    transcription_required: bool = False


class TranslationLogCreate(BaseModel):
    user_id: str
    type: RequestKind
    source_language: str
    target_language: str
    original: str = ""
    translated: str = ""
    phone_number: Optional[str] = None

