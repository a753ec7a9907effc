from __future__ import annotations

import asyncio
import unittest
from pathlib import Path
from unittest import IsolatedAsyncioTestCase
from unittest.mock import AsyncMock, patch

import httpx

from budgetly.telegram.voice import (
    TranscriptionUnavailableError,
    VoicePipeline,
    WitTranscriber,
    parse_wit_response,
    temporary_file,
)


class DummyTelegramFile:
    def __init__(self, data: bytes) -> None:
        self._data = data

    async def download_to_drive(self, custom_path: Path) -> Path:
        Path(custom_path).write_bytes(self._data)
        return Path(custom_path)


class DummyBot:
    def __init__(self, data: bytes = b"OggS") -> None:
        self.get_file = AsyncMock(return_value=DummyTelegramFile(data))


class RecordingTranscriber:
    """Remembers the file it was handed, then fails or stalls as configured."""

    def __init__(self, *, result: str | None = None, stall: bool = False) -> None:
        self.result = result
        self.stall = stall
        self.seen: list[Path] = []

    async def transcribe(self, path: Path) -> str:
        self.seen.append(path)
        if self.stall:
            await asyncio.sleep(10)
        if self.result is None:
            raise TranscriptionUnavailableError("speech service unavailable")
        return self.result


class WitResponseTests(unittest.TestCase):
    def test_final_chunk_wins(self) -> None:
        body = '{"text": "add"}\r\n{"text": "add five pounds", "is_final": true}\r\n{"text": ""}'
        self.assertEqual(parse_wit_response(body), "add five pounds")

    def test_last_text_without_final_flag(self) -> None:
        body = '{"text": "add"}\n{"text": "add five"}'
        self.assertEqual(parse_wit_response(body), "add five")

    def test_legacy_text_field(self) -> None:
        self.assertEqual(parse_wit_response('{"_text": " budget "}'), "budget")

    def test_empty_or_malformed_body(self) -> None:
        for body in ("", '{"text": ""}', "{not json"):
            with self.subTest(body=body):
                with self.assertRaises(TranscriptionUnavailableError):
                    parse_wit_response(body)


class WitTranscriberTests(IsolatedAsyncioTestCase):
    async def test_posts_audio_with_token(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, text='{"text": "fifty coffee", "is_final": true}')

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transcriber = WitTranscriber("wit-token", api_version="20240101", client=client)
        async with temporary_file(".wav") as path:
            path.write_bytes(b"RIFF")
            text = await transcriber.transcribe(path)
        await transcriber.aclose()

        self.assertEqual(text, "fifty coffee")
        self.assertEqual(requests[0].headers["Authorization"], "Bearer wit-token")
        self.assertEqual(requests[0].url.params["v"], "20240101")
        self.assertEqual(requests[0].content, b"RIFF")

    async def test_http_error_is_unavailable(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom"))
        )
        transcriber = WitTranscriber("wit-token", client=client)
        async with temporary_file(".wav") as path:
            with self.assertRaises(TranscriptionUnavailableError):
                await transcriber.transcribe(path)
        await transcriber.aclose()

    async def test_missing_token(self) -> None:
        transcriber = WitTranscriber(None)
        with self.assertRaises(TranscriptionUnavailableError):
            await transcriber.transcribe(Path("unused.wav"))
        await transcriber.aclose()

    async def test_unreadable_audio_is_unavailable(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="{}"))
        )
        transcriber = WitTranscriber("wit-token", client=client)
        async with temporary_file(".wav") as path:
            missing = path.with_name(path.name + ".gone")
            with self.assertRaises(TranscriptionUnavailableError):
                await transcriber.transcribe(missing)
        await transcriber.aclose()


class VoicePipelineTests(IsolatedAsyncioTestCase):
    async def test_transcript_returned_and_files_removed(self) -> None:
        transcriber = RecordingTranscriber(result="add five pounds for coffee")
        pipeline = VoicePipeline(transcriber, timeout_seconds=5)
        bot = DummyBot()

        with patch.object(pipeline, "_run_ffmpeg", AsyncMock()) as ffmpeg:
            text = await pipeline.run(bot, "file-1")

        self.assertEqual(text, "add five pounds for coffee")
        bot.get_file.assert_awaited_once_with("file-1")
        source, target = ffmpeg.await_args.args
        self.assertEqual(target, transcriber.seen[0])
        self.assertFalse(source.exists())
        self.assertFalse(target.exists())

    async def test_files_removed_when_transcription_fails(self) -> None:
        transcriber = RecordingTranscriber()
        pipeline = VoicePipeline(transcriber, timeout_seconds=5)

        with patch.object(pipeline, "_run_ffmpeg", AsyncMock()) as ffmpeg:
            with self.assertRaises(TranscriptionUnavailableError):
                await pipeline.run(DummyBot(), "file-1")

        source, target = ffmpeg.await_args.args
        self.assertFalse(source.exists())
        self.assertFalse(target.exists())

    async def test_files_removed_on_timeout(self) -> None:
        transcriber = RecordingTranscriber(result="never", stall=True)
        pipeline = VoicePipeline(transcriber, timeout_seconds=0.05)

        with patch.object(pipeline, "_run_ffmpeg", AsyncMock()) as ffmpeg:
            with self.assertRaises(TranscriptionUnavailableError):
                await pipeline.run(DummyBot(), "file-1")

        source, target = ffmpeg.await_args.args
        self.assertFalse(source.exists())
        self.assertFalse(target.exists())

    async def test_transcoder_failure_removes_download(self) -> None:
        transcriber = RecordingTranscriber(result="unused")
        pipeline = VoicePipeline(transcriber)
        failure = TranscriptionUnavailableError("ffmpeg exited with status 1")

        with patch.object(pipeline, "_run_ffmpeg", AsyncMock(side_effect=failure)) as ffmpeg:
            with self.assertRaises(TranscriptionUnavailableError):
                await pipeline.run(DummyBot(), "file-1")

        source, target = ffmpeg.await_args.args
        self.assertEqual(transcriber.seen, [])
        self.assertFalse(source.exists())
        self.assertFalse(target.exists())

    async def test_missing_transcoder_binary(self) -> None:
        pipeline = VoicePipeline(RecordingTranscriber(), ffmpeg_binary="budgetly-missing-ffmpeg")
        with self.assertRaises(TranscriptionUnavailableError):
            await pipeline._run_ffmpeg(Path("in.ogg"), Path("out.wav"))

    async def test_download_write_failure_is_unavailable(self) -> None:
        pipeline = VoicePipeline(RecordingTranscriber(result="unused"), timeout_seconds=5)
        telegram_file = AsyncMock()
        telegram_file.download_to_drive.side_effect = OSError("No space left on device")
        bot = AsyncMock()
        bot.get_file.return_value = telegram_file

        with self.assertRaises(TranscriptionUnavailableError):
            async with pipeline.download(bot, "file-1"):
                pass
