"""Voice message transcription: download -> transcode -> transcribe.

Every intermediate file is owned by an async context manager so it is removed
whichever stage fails, including when the whole pipeline times out.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Protocol

import anyio
import httpx
from telegram.error import TelegramError

logger = logging.getLogger(__name__)

WIT_SPEECH_URL = "https://api.wit.ai/speech"


class TranscriptionUnavailableError(RuntimeError):
    """Raised when a voice message cannot be turned into text."""


class Transcriber(Protocol):
    async def transcribe(self, path: Path) -> str: ...


@asynccontextmanager
async def temporary_file(suffix: str) -> AsyncIterator[Path]:
    fd, name = tempfile.mkstemp(prefix="budgetly_voice_", suffix=suffix)
    os.close(fd)
    path = Path(name)
    try:
        yield path
    finally:
        try:
            path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to delete temporary voice file %s", path, exc_info=True)


def parse_wit_response(body: str) -> str:
    """Extract the transcript from a Wit.ai speech response.

    The endpoint streams several JSON objects back to back; the last object
    flagged ``is_final`` wins, otherwise the last one carrying text.
    """

    decoder = json.JSONDecoder()
    chunks: list[dict[str, Any]] = []
    index = 0
    body = body.strip()
    while index < len(body):
        try:
            chunk, index = decoder.raw_decode(body, index)
        except json.JSONDecodeError as exc:
            raise TranscriptionUnavailableError("Malformed response from Wit.ai") from exc
        if isinstance(chunk, dict):
            chunks.append(chunk)
        while index < len(body) and body[index].isspace():
            index += 1

    text = ""
    for chunk in reversed(chunks):
        candidate = chunk.get("text") or chunk.get("_text")
        if not candidate:
            continue
        if chunk.get("is_final"):
            return str(candidate).strip()
        if not text:
            text = str(candidate).strip()
    if not text:
        raise TranscriptionUnavailableError("No transcription received from Wit.ai")
    return text


class WitTranscriber:
    """Sends WAV audio to the Wit.ai speech endpoint."""

    def __init__(
        self,
        token: str | None,
        *,
        api_version: str = "20230215",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.token = token
        self.api_version = api_version
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout=60.0, connect=10.0),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def transcribe(self, path: Path) -> str:
        if not self.token:
            raise TranscriptionUnavailableError("WIT_AI_TOKEN is not configured")
        try:
            audio = await anyio.Path(path).read_bytes()
        except OSError as exc:
            raise TranscriptionUnavailableError(f"Could not read audio file {path}: {exc}") from exc
        try:
            response = await self.client.post(
                WIT_SPEECH_URL,
                params={"v": self.api_version},
                content=audio,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "audio/wav",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TranscriptionUnavailableError(
                f"Wit.ai returned {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc
        except httpx.HTTPError as exc:
            raise TranscriptionUnavailableError(f"Wit.ai request failed: {exc}") from exc
        return parse_wit_response(response.text)


class VoicePipeline:
    def __init__(
        self,
        transcriber: Transcriber,
        *,
        ffmpeg_binary: str = "ffmpeg",
        timeout_seconds: float = 30.0,
    ) -> None:
        self.transcriber = transcriber
        self.ffmpeg_binary = ffmpeg_binary
        self.timeout_seconds = timeout_seconds

    @asynccontextmanager
    async def download(self, bot: Any, file_id: str) -> AsyncIterator[Path]:
        async with temporary_file(".ogg") as path:
            try:
                telegram_file = await bot.get_file(file_id)
                await telegram_file.download_to_drive(custom_path=path)
            except (TelegramError, OSError) as exc:
                raise TranscriptionUnavailableError(f"Could not download voice file: {exc}") from exc
            yield path

    @asynccontextmanager
    async def transcode(self, source: Path, target_format: str = "wav") -> AsyncIterator[Path]:
        async with temporary_file(f".{target_format}") as target:
            await self._run_ffmpeg(source, target)
            yield target

    async def _run_ffmpeg(self, source: Path, target: Path) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_binary,
                "-y",
                "-loglevel",
                "error",
                "-i",
                str(source),
                "-ac",
                "1",
                "-ar",
                "16000",
                str(target),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise TranscriptionUnavailableError(f"Could not start {self.ffmpeg_binary}: {exc}") from exc
        try:
            _, stderr = await process.communicate()
        except asyncio.CancelledError:
            process.kill()
            await process.wait()
            raise
        if process.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[:200]
            raise TranscriptionUnavailableError(
                f"ffmpeg exited with status {process.returncode}: {detail}"
            )

    async def transcribe(self, path: Path) -> str:
        return await self.transcriber.transcribe(path)

    async def _process(self, bot: Any, file_id: str) -> str:
        async with self.download(bot, file_id) as voice_path:
            async with self.transcode(voice_path) as wav_path:
                return await self.transcribe(wav_path)

    async def run(self, bot: Any, file_id: str) -> str:
        """Return the transcript for a Telegram voice file."""
        try:
            return await asyncio.wait_for(self._process(bot, file_id), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            raise TranscriptionUnavailableError(
                f"Voice processing exceeded {self.timeout_seconds:g}s"
            ) from exc
