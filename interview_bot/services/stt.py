"""Google Cloud Speech-to-Text over its REST API, plus a cheap audio quality check."""

import base64
import os
from typing import Any, Dict

import requests
from flask import current_app

from ..errors import ServiceUnavailableError
from .storage import download_bytes

RECOGNIZE_URL = "https://speech.googleapis.com/v1/speech:recognize"

ENCODINGS = {
    ".mp3": "MP3",
    ".wav": "LINEAR16",
    ".flac": "FLAC",
    ".webm": "WEBM_OPUS",
    ".ogg": "OGG_OPUS",
    ".m4a": "MP3",
    ".aac": "MP3",
}

SUPPORTED_LANGUAGES = [
    {"code": "en-US", "name": "English (US)"},
    {"code": "en-GB", "name": "English (UK)"},
    {"code": "en-IN", "name": "English (India)"},
    {"code": "es-ES", "name": "Spanish (Spain)"},
    {"code": "fr-FR", "name": "French"},
    {"code": "de-DE", "name": "German"},
    {"code": "it-IT", "name": "Italian"},
    {"code": "pt-BR", "name": "Portuguese (Brazil)"},
    {"code": "ja-JP", "name": "Japanese"},
    {"code": "ko-KR", "name": "Korean"},
    {"code": "zh-CN", "name": "Chinese (Mandarin)"},
    {"code": "hi-IN", "name": "Hindi"},
]


def encoding_for(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return ENCODINGS.get(ext, "WEBM_OPUS")


def _duration_seconds(value):
    # the API reports offsets like "3.400s"
    try:
        return float(str(value).rstrip("s"))
    except (TypeError, ValueError):
        return 0.0


def transcribe_audio(audio: bytes, encoding: str = "WEBM_OPUS", language: str = "en-US",
                     sample_rate: int = 48000) -> Dict[str, Any]:
    """Return ``{transcription, confidence, words, duration}`` for raw audio bytes."""
    key = current_app.config.get("GOOGLE_CLOUD_API_KEY")
    if not key:
        raise ServiceUnavailableError("Speech-to-text service is not configured")

    config = {
        "encoding": encoding,
        "languageCode": language,
        "enableAutomaticPunctuation": True,
        "enableWordTimeOffsets": True,
        "model": "latest_long",
    }
    if encoding not in ("MP3", "FLAC"):
        config["sampleRateHertz"] = sample_rate
    body = {"config": config, "audio": {"content": base64.b64encode(audio).decode()}}
    try:
        r = requests.post(RECOGNIZE_URL, params={"key": key}, json=body, timeout=120)
        r.raise_for_status()
    except requests.RequestException as e:
        current_app.logger.exception("Speech-to-text request failed")
        raise ServiceUnavailableError("Failed to transcribe audio") from e

    parts, confidences, words = [], [], []
    for result in r.json().get("results", []):
        alt = (result.get("alternatives") or [{}])[0]
        if alt.get("transcript"):
            parts.append(alt["transcript"].strip())
        if alt.get("confidence") is not None:
            confidences.append(alt["confidence"])
        for w in alt.get("words", []):
            words.append({
                "word": w.get("word"),
                "startTime": _duration_seconds(w.get("startTime")),
                "endTime": _duration_seconds(w.get("endTime")),
            })
    return {
        "transcription": " ".join(parts),
        "confidence": round(sum(confidences) / len(confidences), 3) if confidences else 0,
        "words": words,
        "duration": words[-1]["endTime"] if words else 0,
    }


def transcribe_url(url: str, filename: str = None, language: str = "en-US") -> Dict[str, Any]:
    audio = download_bytes(url)
    return transcribe_audio(audio, encoding_for(filename or url), language)


def analyze_audio_quality(audio: bytes) -> Dict[str, Any]:
    """Guess recording quality from size alone (assumes ~16 KB per second)."""
    size = len(audio)
    duration = max(1, size / 16000)
    bitrate = size * 8 / duration / 1000

    if bitrate < 32:
        quality, score = "poor", 60
        recommendations = ["Use a better microphone", "Record in a quieter environment"]
    elif bitrate < 64:
        quality, score = "fair", 75
        recommendations = ["Consider using a higher quality microphone"]
    elif bitrate < 128:
        quality, score = "good", 85
        recommendations = ["Audio quality is good for transcription"]
    else:
        quality, score = "excellent", 95
        recommendations = ["Excellent audio quality"]

    if size < 10000:
        recommendations.append("Audio file seems very short - ensure complete recording")

    return {
        "quality": quality,
        "score": score,
        "bitrate": round(bitrate, 1),
        "duration": round(duration, 1),
        "recommendations": recommendations,
    }
