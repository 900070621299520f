"""URL document retrieval against an in-process mock transport."""

from __future__ import annotations

import httpx
import pytest

from studyguide_extractor.config.settings import PipelineSettings
from studyguide_extractor.extractor import fetch
from studyguide_extractor.extractor.errors import (
    DocumentFetchError,
    FileTooLargeError,
    UnsupportedFormatError,
)
from studyguide_extractor.extractor.fetch import fetch_document, filename_from_url


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    return PipelineSettings(download_chunk_size=16)


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    monkeypatch.setattr(fetch._download_with_retry.retry, "sleep", lambda seconds: None)


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_fetch_returns_source_document(pipeline_settings):
    body = b"%PDF-1.7 lecture notes"

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=body, headers={"content-type": "application/pdf"})

    with _client(handler) as client:
        document = fetch_document(
            "https://example.org/files/Unit%202%20notes.pdf", None, pipeline_settings, client
        )

    assert document.data == body
    assert document.filename == "Unit 2 notes.pdf"
    assert document.mime_type == "application/pdf"


def test_html_response_is_rejected(pipeline_settings):
    def handler(request):
        return httpx.Response(200, text="<html>Sign in</html>", headers={"content-type": "text/html"})

    with _client(handler) as client, pytest.raises(UnsupportedFormatError):
        fetch_document("https://example.org/notes.pdf", None, pipeline_settings, client)


def test_declared_size_over_limit(pipeline_settings):
    def handler(request):
        return httpx.Response(200, content=b"x" * 200, headers={"content-type": "application/pdf"})

    with _client(handler) as client, pytest.raises(FileTooLargeError):
        fetch_document("https://example.org/a.pdf", "a.pdf", pipeline_settings, client, max_bytes=100)


def test_streamed_size_over_limit(pipeline_settings):
    def handler(request):
        stream = httpx.ByteStream(b"y" * 200)
        return httpx.Response(200, stream=stream, headers={"content-type": "application/pdf"})

    with _client(handler) as client, pytest.raises(FileTooLargeError):
        fetch_document("https://example.org/a.pdf", "a.pdf", pipeline_settings, client, max_bytes=100)


def test_transient_errors_are_retried(pipeline_settings):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) < 3:
            return httpx.Response(503)
        return httpx.Response(200, content=b"PK\x03\x04deck")

    with _client(handler) as client:
        document = fetch_document("https://example.org/deck.pptx", None, pipeline_settings, client)

    assert len(calls) == 3
    assert document.data == b"PK\x03\x04deck"


def test_persistent_http_error_is_structured(pipeline_settings):
    def handler(request):
        return httpx.Response(404)

    with _client(handler) as client, pytest.raises(DocumentFetchError) as excinfo:
        fetch_document("https://example.org/missing.pdf", None, pipeline_settings, client)

    assert "404" in excinfo.value.message
    assert excinfo.value.to_dict()["kind"] == "fetch_failed"


def test_filename_from_url():
    assert filename_from_url("https://example.org/a/b/slides.pptx?x=1") == "slides.pptx"
    assert filename_from_url("https://example.org/") == "document"


def test_extensionless_link_is_named_from_content_type(pipeline_settings):
    def handler(request):
        return httpx.Response(
            200, content=b"%PDF-1.7 quiz", headers={"content-type": "application/pdf"}
        )

    with _client(handler) as client:
        document = fetch_document(
            "https://lms.example.org/files/download?id=5", None, pipeline_settings, client
        )

    assert document.filename == "download.pdf"


def test_extensionless_link_falls_back_to_magic_bytes(pipeline_settings):
    def handler(request):
        return httpx.Response(200, content=b"%PDF-1.4 handout")

    with _client(handler) as client:
        document = fetch_document("https://example.org/get/7", None, pipeline_settings, client)

    assert document.filename == "7.pdf"


def test_unidentifiable_download_is_rejected(pipeline_settings):
    def handler(request):
        return httpx.Response(
            200, content=b"PK\x03\x04zip", headers={"content-type": "application/octet-stream"}
        )

    with _client(handler) as client, pytest.raises(UnsupportedFormatError):
        fetch_document("https://example.org/files/download", None, pipeline_settings, client)
