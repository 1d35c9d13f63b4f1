"""
Unit tests for external gateway clients using httpx mock transports.
"""
import asyncio
import json

import httpx
import pytest

from core.drive_client import DriveClient, DriveError
from core.ffmpeg_client import FFmpegClient, FFmpegError, build_audio_command, build_clip_command
from core.gcs_client import TempStorageError, parse_gcs_uri
from core.ollama_client import OllamaClient, OllamaError
from core.speech_client import SpeechClient, SpeechError, duration_to_seconds, parse_recognition_results


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class ClosingStream(httpx.AsyncByteStream):
    """Response body that records whether it was closed."""

    def __init__(self, content):
        self.content = content
        self.closed = False

    async def __aiter__(self):
        yield self.content

    async def aclose(self):
        self.closed = True


class TestFFmpegCommands:
    """Test ffmpeg argument building."""

    def test_clip_command(self):
        """Test that the clip is cut by seek and duration."""
        cmd = build_clip_command("ffmpeg", "in.mp4", "out.mp4", 10.5, 40.0)
        assert cmd[cmd.index("-ss") + 1] == "10.500"
        assert cmd[cmd.index("-t") + 1] == "29.500"
        assert cmd[cmd.index("-i") + 1] == "in.mp4"
        assert cmd[-1] == "out.mp4"

    def test_audio_command(self):
        """Test that audio is extracted as mono 16 kHz FLAC."""
        cmd = build_audio_command("ffmpeg", "in.mp4", "audio.flac")
        assert "-vn" in cmd
        assert cmd[cmd.index("-ac") + 1] == "1"
        assert cmd[cmd.index("-ar") + 1] == "16000"
        assert cmd[cmd.index("-c:a") + 1] == "flac"

    def test_missing_binary(self):
        """Test that a missing executable raises FFmpegError."""
        client = FFmpegClient(ffmpeg_bin="definitely-not-ffmpeg-binary")
        with pytest.raises(FFmpegError, match="not found"):
            asyncio.run(client.extract_audio("in.mp4", "out.flac"))


class TestGcsUri:
    """Test gs:// URI parsing."""

    def test_parse(self):
        """Test that bucket and object path are split."""
        assert parse_gcs_uri("gs://bucket/videos/1/original.mp4") == ("bucket", "videos/1/original.mp4")

    @pytest.mark.parametrize("uri", ["https://bucket/x", "gs://bucket", "gs:///x"])
    def test_invalid(self, uri):
        """Test that malformed URIs raise TempStorageError."""
        with pytest.raises(TempStorageError):
            parse_gcs_uri(uri)


class TestSpeech:
    """Test Speech-to-Text v2 result handling."""

    RESULTS = [
        {
            "alternatives": [{
                "transcript": "こんにちは",
                "words": [
                    {"word": "こんにちは", "startOffset": "0.080s", "endOffset": "0.800s", "confidence": 0.9},
                ],
            }],
            "languageCode": "ja-jp",
        },
        {"alternatives": []},
        {
            "alternatives": [{
                "transcript": "世界",
                "words": [{"word": "世界", "startOffset": "0.800s", "endOffset": "1.300s"}],
            }],
        },
    ]

    def test_duration_to_seconds(self):
        """Test protobuf duration parsing."""
        assert duration_to_seconds("1.300s") == 1.3
        assert duration_to_seconds(None) == 0.0

    def test_parse_results(self):
        """Test that words become segments and the last end is the duration."""
        result = parse_recognition_results(self.RESULTS, "ja-JP")
        assert result.full_text == "こんにちは世界"
        assert [s.text for s in result.segments] == ["こんにちは", "世界"]
        assert result.segments[0].start_time_seconds == 0.08
        assert result.segments[1].confidence == 0.0
        assert result.duration_seconds == 1.3
        assert result.language_code == "ja-jp"

    def test_batch_recognize_polls_until_done(self):
        """Test that the operation is polled and the inline result parsed."""
        uri = "gs://temp/videos/v/audio.flac"
        polls = []

        def handler(request):
            if request.method == "POST":
                body = json.loads(request.content)
                assert body["files"] == [{"uri": uri}]
                assert body["config"]["model"] == "chirp"
                assert request.url.path.endswith("/recognizers/_:batchRecognize")
                return httpx.Response(200, json={"name": "projects/p/locations/l/operations/op-1"})
            polls.append(str(request.url))
            if len(polls) < 2:
                return httpx.Response(200, json={"name": "op-1", "metadata": {"progressPercent": 50}})
            return httpx.Response(200, json={
                "name": "op-1",
                "done": True,
                "response": {"results": {uri: {"transcript": {"results": self.RESULTS}}}},
            })

        async def no_sleep(seconds):
            return None

        progress = []
        client = SpeechClient(project="p", location="l", model="chirp", access_token="token",
                              client=mock_client(handler), sleep=no_sleep)
        result = asyncio.run(client.transcribe_long_audio_from_gcs_uri(uri, on_progress=progress.append))

        assert len(polls) == 2
        assert progress[0] == "50%"
        assert len(result.segments) == 2

    def test_operation_error(self):
        """Test that an operation error raises SpeechError."""
        def handler(request):
            return httpx.Response(200, json={"name": "op", "done": True, "error": {"message": "bad audio"}})

        client = SpeechClient(project="p", access_token="token", client=mock_client(handler))
        with pytest.raises(SpeechError, match="bad audio"):
            asyncio.run(client.transcribe_long_audio_from_gcs_uri("gs://b/a.flac"))

    def test_missing_token(self):
        """Test that an unconfigured token fails before any request."""
        client = SpeechClient(project="p", access_token=None, client=mock_client(lambda r: httpx.Response(500)))
        with pytest.raises(SpeechError, match="not configured"):
            asyncio.run(client.transcribe_long_audio_from_gcs_uri("gs://b/a.flac"))


class TestDrive:
    """Test the Drive REST client."""

    def test_metadata(self):
        """Test that size and duration are converted."""
        def handler(request):
            assert request.headers["Authorization"] == "Bearer token"
            return httpx.Response(200, json={
                "id": "f1", "name": "talk.mp4", "size": "1048576", "mimeType": "video/mp4",
                "videoMediaMetadata": {"durationMillis": "125500"},
            })

        metadata = asyncio.run(DriveClient("token", client=mock_client(handler)).get_metadata("f1"))
        assert metadata.name == "talk.mp4"
        assert metadata.size == 1048576
        assert metadata.duration_seconds == 125.5

    def test_metadata_http_error(self):
        """Test that HTTP failures become DriveError."""
        client = DriveClient("token", client=mock_client(lambda r: httpx.Response(404)))
        with pytest.raises(DriveError):
            asyncio.run(client.get_metadata("missing"))

    def test_download_stream(self):
        """Test that content is streamed in chunks."""
        client = DriveClient("token", client=mock_client(lambda r: httpx.Response(200, content=b"abcdef")),
                             chunk_size=4)

        async def collect():
            return b"".join([chunk async for chunk in client.download_as_stream("f1")])

        assert asyncio.run(collect()) == b"abcdef"

    def test_download_error_closes_response(self):
        """Test that a failed download raises DriveError and releases the streamed response."""
        body = ClosingStream(b"not found")
        client = DriveClient("token", client=mock_client(lambda r: httpx.Response(404, stream=body)))

        async def collect():
            return [chunk async for chunk in client.download_as_stream("missing")]

        with pytest.raises(DriveError, match="missing"):
            asyncio.run(collect())
        assert body.closed

    def test_resumable_upload(self):
        """Test that upload opens a session and PUTs the content to its Location."""
        seen = {}

        def handler(request):
            if request.method == "POST":
                assert request.url.params["uploadType"] == "resumable"
                seen["metadata"] = json.loads(request.content)
                return httpx.Response(200, headers={"Location": "https://upload.example/session-1"})
            seen["content"] = request.content
            return httpx.Response(200, json={"id": "new-1", "name": "clip.mp4",
                                             "webViewLink": "https://drive.google.com/file/d/new-1/view"})

        client = DriveClient("token", client=mock_client(handler))
        uploaded = asyncio.run(client.upload_file("clip.mp4", b"data", parent_folder_id="folder"))

        assert seen["metadata"] == {"name": "clip.mp4", "mimeType": "video/mp4", "parents": ["folder"]}
        assert seen["content"] == b"data"
        assert uploaded.id == "new-1"
        assert uploaded.web_view_link.endswith("/new-1/view")


class TestOllama:
    """Test the Ollama generate call."""

    def test_generate(self):
        """Test that the non-streaming response text is returned."""
        def handler(request):
            body = json.loads(request.content)
            assert body["stream"] is False
            assert body["model"] == "llama3"
            return httpx.Response(200, json={"response": '{"clips": []}'})

        client = OllamaClient(base_url="http://ollama", model="llama3", client=mock_client(handler))
        assert asyncio.run(client.generate("prompt")) == '{"clips": []}'

    def test_http_error(self):
        """Test that API failures raise OllamaError."""
        client = OllamaClient(base_url="http://ollama", client=mock_client(lambda r: httpx.Response(500)))
        with pytest.raises(OllamaError):
            asyncio.run(client.generate("prompt"))
