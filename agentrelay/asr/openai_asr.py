from __future__ import annotations

import io
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class AsrResult:
    text: str
    language: Optional[str] = None


def guess_audio_filename(audio: bytes) -> str:
    # The transcription endpoint infers the container from the upload's filename.
    head = audio[:12]
    if head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return "audio.wav"
    if head[:4] == b"\x1a\x45\xdf\xa3":
        return "audio.webm"
    if head[:4] == b"OggS":
        return "audio.ogg"
    if head[:3] == b"ID3" or (len(head) > 1 and head[0] == 0xFF and (head[1] & 0xE0) == 0xE0):
        return "audio.mp3"
    if head[4:8] == b"ftyp":
        return "audio.m4a"
    return "audio.wav"


class OpenAIASR:
    def __init__(self, *, client: Any, model: str, language: Optional[str] = None) -> None:
        self._client = client
        self._model = (model or "whisper-1").strip()
        self._language = (language or "").strip() or None

    def transcribe_bytes(self, audio: bytes) -> AsrResult:
        if not audio:
            return AsrResult(text="")
        bio = io.BytesIO(audio)
        bio.name = guess_audio_filename(audio)
        kwargs = {"model": self._model, "file": bio}
        if self._language:
            kwargs["language"] = self._language
        resp = self._client.audio.transcriptions.create(**kwargs)
        text = ""
        if isinstance(resp, dict):
            text = str(resp.get("text") or "").strip()
        else:
            text = str(getattr(resp, "text", "") or "").strip()
        return AsrResult(text=text, language=self._language)
