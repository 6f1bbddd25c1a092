from __future__ import annotations  # Speech-to-text and text-to-speech gateway

import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol

import httpx
from pydantic import BaseModel

from config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class SpeechGatewayError(RuntimeError):  # Provider failure or misconfiguration
    pass


class Transcription(BaseModel):  # Recognised text for one audio clip
    text: str
    confidence: float = 0.0
    provider: str
    duration_seconds: Optional[float] = None


class SynthesizedAudio(BaseModel):  # Encoded audio for one text
    audio: bytes
    mime_type: str = "audio/mpeg"
    provider: str
    voice: str


class ProviderHealth(BaseModel):
    provider: str
    available: bool


class SpeechHealth(BaseModel):
    stt: ProviderHealth
    tts: ProviderHealth


class SpeechGateway(Protocol):  # Capability used by the voice endpoints
    def transcribe(self, audio: bytes) -> Transcription: ...

    def synthesize(self, text: str, *, voice: Optional[str] = None) -> SynthesizedAudio: ...

    def health(self) -> SpeechHealth: ...


class HttpSpeechGateway:  # AssemblyAI transcription and OpenAI speech synthesis over HTTP
    def __init__(
        self,
        config: Optional[Settings] = None,
        *,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._cfg = config or default_settings
        self._client = client
        self._sleep = sleep

    def transcribe(self, audio: bytes) -> Transcription:
        if not audio:
            raise SpeechGatewayError("audio payload is required for transcription")
        provider = self._cfg.STT_PROVIDER.lower()
        if provider != "assemblyai":
            raise SpeechGatewayError(f"unsupported STT provider: {self._cfg.STT_PROVIDER}")
        key = self._cfg.ASSEMBLYAI_API_KEY
        if not key:
            raise SpeechGatewayError("ASSEMBLYAI_API_KEY is not configured")
        base = self._cfg.ASSEMBLYAI_BASE_URL.rstrip("/")
        headers = {"authorization": key}

        upload = self._request(
            "POST",
            f"{base}/upload",
            content=audio,
            headers={**headers, "content-type": "application/octet-stream"},
        )
        upload_url = upload.get("upload_url")
        if not upload_url:
            raise SpeechGatewayError("speech provider did not return an upload URL")
        job = self._request(
            "POST",
            f"{base}/transcript",
            json={
                "audio_url": upload_url,
                "filter_profanity": True,
                "format_text": True,
                "punctuate": True,
            },
            headers=headers,
        )
        transcript_id = job.get("id")
        if not transcript_id:
            raise SpeechGatewayError("speech provider did not return a transcript id")
        for attempt in range(self._cfg.STT_POLL_ATTEMPTS):
            state = self._request("GET", f"{base}/transcript/{transcript_id}", headers=headers)
            status = state.get("status")
            if status == "completed":
                return Transcription(
                    text=state.get("text") or "",
                    confidence=float(state.get("confidence") or 0.0),
                    provider="assemblyai",
                    duration_seconds=state.get("audio_duration"),
                )
            if status == "error":
                raise SpeechGatewayError(f"transcription failed: {state.get('error', 'unknown error')}")
            if attempt + 1 < self._cfg.STT_POLL_ATTEMPTS:
                self._sleep(self._cfg.STT_POLL_INTERVAL_SECONDS)
        raise SpeechGatewayError(f"transcription not ready after {self._cfg.STT_POLL_ATTEMPTS} polls")

    def synthesize(self, text: str, *, voice: Optional[str] = None) -> SynthesizedAudio:
        if not text or not text.strip():
            raise SpeechGatewayError("text is required for synthesis")
        provider = self._cfg.TTS_PROVIDER.lower()
        if provider != "openai":
            raise SpeechGatewayError(f"unsupported TTS provider: {self._cfg.TTS_PROVIDER}")
        key = self._cfg.OPENAI_API_KEY
        if not key:
            raise SpeechGatewayError("OPENAI_API_KEY is not configured")
        chosen = voice or self._cfg.TTS_VOICE
        response = self._send(
            "POST",
            f"{self._cfg.OPENAI_BASE_URL.rstrip('/')}/audio/speech",
            json={
                "model": self._cfg.TTS_MODEL,
                "input": text,
                "voice": chosen,
                "response_format": "mp3",
                "speed": 0.9,
            },
            headers={"Authorization": f"Bearer {key}"},
        )
        return SynthesizedAudio(
            audio=response.content,
            mime_type=response.headers.get("content-type", "audio/mpeg"),
            provider="openai",
            voice=chosen,
        )

    def health(self) -> SpeechHealth:
        stt = self._cfg.STT_PROVIDER.lower()
        tts = self._cfg.TTS_PROVIDER.lower()
        return SpeechHealth(
            stt=ProviderHealth(provider=stt, available=stt == "assemblyai" and bool(self._cfg.ASSEMBLYAI_API_KEY)),
            tts=ProviderHealth(provider=tts, available=tts == "openai" and bool(self._cfg.OPENAI_API_KEY)),
        )

    def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        response = self._send(method, url, **kwargs)
        try:
            data = response.json()
        except ValueError as exc:
            raise SpeechGatewayError("speech provider returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise SpeechGatewayError("speech provider returned an unexpected payload")
        return data

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        client = self._client or httpx.Client(timeout=self._cfg.SPEECH_TIMEOUT_S)
        try:
            response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("Speech provider timed out: %s %s", method, url)
            raise SpeechGatewayError("speech provider timed out") from exc
        except httpx.HTTPError as exc:
            logger.error("Speech provider transport failure: %s", exc)
            raise SpeechGatewayError("speech provider unreachable") from exc
        finally:
            if self._client is None:
                client.close()
        if response.status_code >= 400:
            logger.error("Speech provider error status=%s url=%s", response.status_code, url)
            raise SpeechGatewayError(f"speech provider returned status {response.status_code}")
        return response


__all__ = [
    "HttpSpeechGateway",
    "ProviderHealth",
    "SpeechGateway",
    "SpeechGatewayError",
    "SpeechHealth",
    "SynthesizedAudio",
    "Transcription",
]
