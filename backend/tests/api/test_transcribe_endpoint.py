# tests/api/test_transcribe_endpoint.py
import base64

import pytest
from httpx import AsyncClient
from fastapi import status

pytestmark = pytest.mark.asyncio


async def test_transcribe_returns_text(test_client: AsyncClient, fake_llm):
    fake_llm.transcription = "gastei 25 reais com lanche hoje"
    audio = base64.b64encode(b"fake-audio-bytes").decode()

    response = await test_client.post("/api/transcribe", json={"audio": audio, "mimeType": "audio/wav"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"text": "gastei 25 reais com lanche hoje"}
    sent = fake_llm.transcribed[0]
    assert sent["audio"] == b"fake-audio-bytes"
    assert sent["filename"] == "granaapp-audio.wav"


async def test_transcribe_defaults_to_webm(test_client: AsyncClient, fake_llm):
    audio = base64.b64encode(b"x").decode()
    await test_client.post("/api/transcribe", json={"audio": audio})
    assert fake_llm.transcribed[0]["filename"] == "granaapp-audio.webm"


async def test_transcribe_requires_audio(test_client: AsyncClient):
    response = await test_client.post("/api/transcribe", json={})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["error"] == "Payload de áudio não recebido."


async def test_transcribe_rejects_invalid_base64(test_client: AsyncClient):
    response = await test_client.post("/api/transcribe", json={"audio": "***not base64***"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST


async def test_transcribe_without_api_key(test_client: AsyncClient, fake_llm):
    fake_llm.configured = False
    response = await test_client.post("/api/transcribe", json={"audio": "eA=="})
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR


async def test_transcribe_rejects_get(test_client: AsyncClient):
    response = await test_client.get("/api/transcribe")
    assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
    assert response.headers["Allow"] == "POST"
