import pytest
from fastapi.testclient import TestClient

from api.routes import get_speech_gateway
from api_server import app
from speech_gateway import ProviderHealth, SpeechGatewayError, SpeechHealth, SynthesizedAudio, Transcription

CANDIDATE = {"X-User-Id": "cand-1"}


class FakeSpeech:
    def __init__(self):
        self.audio = []
        self.fail = False

    def transcribe(self, audio):
        if self.fail:
            raise SpeechGatewayError("speech provider timed out")
        self.audio.append(audio)
        return Transcription(text="I would shard by tenant.", confidence=0.9, provider="fake")

    def synthesize(self, text, *, voice=None):
        return SynthesizedAudio(audio=b"ID3" + text.encode(), provider="fake", voice=voice or "alloy")

    def health(self):
        return SpeechHealth(
            stt=ProviderHealth(provider="fake", available=True),
            tts=ProviderHealth(provider="fake", available=False),
        )


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def client(speech):
    app.dependency_overrides[get_speech_gateway] = lambda: speech
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_transcribe_raw_audio(client, speech):
    resp = client.post(
        "/api/speech/transcribe",
        content=b"RIFF0000WAVE",
        headers={**CANDIDATE, "Content-Type": "application/octet-stream"},
    )
    assert resp.status_code == 200
    assert resp.json()["text"] == "I would shard by tenant."
    assert speech.audio == [b"RIFF0000WAVE"]


def test_synthesize_returns_audio_bytes(client):
    resp = client.post("/api/speech/synthesize", json={"text": "Hello", "voice": "nova"}, headers=CANDIDATE)
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "audio/mpeg"
    assert resp.headers["x-voice"] == "nova"
    assert resp.content == b"ID3Hello"


def test_speech_failure_maps_to_service_unavailable(client, speech):
    speech.fail = True
    resp = client.post(
        "/api/speech/transcribe",
        content=b"audio",
        headers={**CANDIDATE, "Content-Type": "application/octet-stream"},
    )
    assert resp.status_code == 503
    assert resp.json() == {"detail": "speech provider timed out", "code": "speech_unavailable", "retryable": True}


def test_speech_health(client):
    body = client.get("/api/speech/health").json()
    assert body["stt"]["available"] is True
    assert body["tts"]["available"] is False
