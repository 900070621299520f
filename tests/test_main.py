"""Command-line entry point, with URL fetching against a mock transport."""

from __future__ import annotations

import frontmatter
import httpx
import pytest

import main

NOTES = "Igneous rocks form when magma cools and solidifies underground or at the surface."


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(main, "setup_logging", lambda **kwargs: None)


def _serve(monkeypatch, handler) -> None:
    monkeypatch.setattr(
        main,
        "build_client",
        lambda settings: httpx.Client(transport=httpx.MockTransport(handler)),
    )


def test_extensionless_url_is_extracted(monkeypatch, tmp_path):
    def handler(request):
        return httpx.Response(200, content=NOTES.encode(), headers={"content-type": "text/plain"})

    _serve(monkeypatch, handler)
    inbox, outbox = tmp_path / "inbox", tmp_path / "out"

    code = main.main(
        [
            "--input-dir", str(inbox),
            "--output-dir", str(outbox),
            "--url", "https://lms.example.org/files/download?id=5",
        ]
    )

    assert code == 0
    assert [path.name for path in inbox.iterdir()] == ["download.txt"]
    assert frontmatter.load(outbox / "download.md").content.strip() == NOTES


def test_unidentifiable_url_fails_the_run(monkeypatch, tmp_path):
    def handler(request):
        return httpx.Response(200, content=b"\x00\x01\x02", headers={"content-type": ""})

    _serve(monkeypatch, handler)

    code = main.main(
        [
            "--input-dir", str(tmp_path / "inbox"),
            "--output-dir", str(tmp_path / "out"),
            "--url", "https://lms.example.org/files/download?id=6",
        ]
    )

    assert code == 1
