"""Google Cloud Text-to-Speech over its REST API."""

import base64
import math
import re
import uuid
from typing import Any, Dict, List, Optional

import requests
from flask import current_app

from ..errors import ServiceUnavailableError
from .storage import save_bytes

SYNTHESIZE_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
VOICES_URL = "https://texttospeech.googleapis.com/v1/voices"

DEFAULT_VOICES = {
    "en-US": "en-US-Neural2-D",
    "en-GB": "en-GB-Neural2-A",
    "es-ES": "es-ES-Neural2-A",
    "fr-FR": "fr-FR-Neural2-A",
    "de-DE": "de-DE-Neural2-A",
    "it-IT": "it-IT-Neural2-A",
    "pt-BR": "pt-BR-Neural2-A",
    "ja-JP": "ja-JP-Neural2-B",
    "ko-KR": "ko-KR-Neural2-A",
    "zh-CN": "cmn-CN-Standard-A",
}

QUESTION_WORDS = ("explain", "describe", "how", "why", "what", "when", "where", "who")


def default_voice(language: str) -> str:
    return DEFAULT_VOICES.get(language, DEFAULT_VOICES["en-US"])


def estimate_duration(text: str, speed: float = 1.0) -> int:
    """Seconds of speech at ~150 words per minute."""
    words = len((text or "").split())
    return math.ceil(words / 150 * 60 / (speed or 1.0))


def _escape(text):
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


def enhance_question_text(text: str) -> str:
    """Wrap a question in SSML with pauses after punctuation and stress on question words."""
    ssml = _escape(text)
    ssml = re.sub(r"([.?!])\s+", r'\1 <break time="500ms"/> ', ssml)
    ssml = re.sub(r",\s+", r', <break time="250ms"/> ', ssml)
    pattern = r"\b(" + "|".join(QUESTION_WORDS) + r")\b"
    ssml = re.sub(pattern, r'<emphasis level="moderate">\1</emphasis>', ssml, flags=re.I)
    return f"<speak>{ssml}</speak>"


def enhance_feedback_text(text: str) -> str:
    return f'<speak><prosody rate="medium" pitch="low">{_escape(text)}</prosody></speak>'


def _api_key():
    key = current_app.config.get("GOOGLE_CLOUD_API_KEY")
    if not key:
        raise ServiceUnavailableError("Text-to-speech service is not configured")
    return key


def synthesize_speech(text: str, language: str = "en-US", voice: Optional[str] = None,
                      speed: float = 1.0, pitch: float = 0.0, ssml: bool = False) -> Dict[str, Any]:
    """Synthesize MP3 audio, store it, and return ``{audioUrl, duration, voice}``."""
    key = _api_key()
    voice = voice or default_voice(language)
    body = {
        "input": {"ssml": text} if ssml else {"text": text},
        "voice": {"languageCode": language, "name": voice},
        "audioConfig": {"audioEncoding": "MP3", "speakingRate": speed, "pitch": pitch},
    }
    try:
        r = requests.post(SYNTHESIZE_URL, params={"key": key}, json=body, timeout=30)
        r.raise_for_status()
    except requests.RequestException as e:
        current_app.logger.exception("Text-to-speech request failed")
        raise ServiceUnavailableError("Failed to synthesize speech") from e

    audio = base64.b64decode(r.json().get("audioContent", ""))
    url = save_bytes(audio, f"audio/tts/tts_{uuid.uuid4().hex}.mp3")
    plain = re.sub(r"<[^>]+>", "", text) if ssml else text
    return {"audioUrl": url, "duration": estimate_duration(plain, speed), "voice": voice}


def synthesize_question(question: str, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    settings = settings or {}
    return synthesize_speech(
        enhance_question_text(question),
        language=settings.get("language", "en-US"),
        voice=settings.get("voice"),
        speed=float(settings.get("speed", 1.0)),
        pitch=float(settings.get("pitch", 0.0)),
        ssml=True,
    )


def synthesize_feedback(feedback: str, settings: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    settings = settings or {}
    return synthesize_speech(
        enhance_feedback_text(feedback),
        language=settings.get("language", "en-US"),
        voice=settings.get("voice"),
        speed=float(settings.get("speed") or 0.95),
        pitch=float(settings.get("pitch") or 0.0),
        ssml=True,
    )


def batch_synthesize(texts: List[str], settings: Optional[Dict[str, Any]] = None) -> List[Optional[Dict[str, Any]]]:
    """Synthesize several questions; a failed item becomes None instead of failing the batch."""
    out = []
    for text in texts:
        try:
            out.append(synthesize_question(text, settings))
        except ServiceUnavailableError:
            current_app.logger.warning("Skipping audio for question: %s", text[:80])
            out.append(None)
    return out


def list_voices(language: Optional[str] = None) -> List[Dict[str, Any]]:
    """Voices from the API, or the built-in defaults when TTS is not configured."""
    if not current_app.config.get("GOOGLE_CLOUD_API_KEY"):
        items = [{"name": v, "languageCodes": [lang], "ssmlGender": "NEUTRAL"}
                 for lang, v in DEFAULT_VOICES.items()]
    else:
        params = {"key": current_app.config["GOOGLE_CLOUD_API_KEY"]}
        if language:
            params["languageCode"] = language
        try:
            r = requests.get(VOICES_URL, params=params, timeout=30)
            r.raise_for_status()
        except requests.RequestException as e:
            current_app.logger.exception("Listing text-to-speech voices failed")
            raise ServiceUnavailableError("Failed to list voices") from e
        items = r.json().get("voices", [])
    if language:
        items = [v for v in items if language in v.get("languageCodes", [])]
    return items


# (role keywords, voice) pairs; every matching group contributes one recommendation
ROLE_VOICES = [
    (("manager", "director", "senior", "lead"),
     {"voice": "en-US-Studio-Q", "gender": "MALE", "speed": 0.95, "pitch": -2.0, "volumeGainDb": 2.0}),
    (("designer", "creative", "marketing", "sales"),
     {"voice": "en-US-Studio-O", "gender": "FEMALE", "speed": 1.05, "pitch": 3.0, "volumeGainDb": 1.0}),
    (("developer", "engineer", "technical", "software"),
     {"voice": "en-US-Neural2-I", "gender": "NEUTRAL", "speed": 1.0, "pitch": 0.0, "volumeGainDb": 0.0}),
]


def voice_recommendations(role: str) -> List[Dict[str, Any]]:
    """Interviewer voices suited to a role title, falling back to the default voice."""
    role = (role or "").lower()
    out = [{"language": "en-US", "audioFormat": "MP3", **voice}
           for keywords, voice in ROLE_VOICES if any(k in role for k in keywords)]
    if not out:
        out.append({"language": "en-US", "voice": default_voice("en-US"), "gender": "NEUTRAL",
                    "speed": 1.0, "pitch": 0.0, "volumeGainDb": 0.0, "audioFormat": "MP3"})
    return out
