from __future__ import annotations  # Re-export speech gateway public API

from .speech_gateway import (
    HttpSpeechGateway,
    ProviderHealth,
    SpeechGateway,
    SpeechGatewayError,
    SpeechHealth,
    SynthesizedAudio,
    Transcription,
)

__all__ = [
    "HttpSpeechGateway",
    "ProviderHealth",
    "SpeechGateway",
    "SpeechGatewayError",
    "SpeechHealth",
    "SynthesizedAudio",
    "Transcription",
]
