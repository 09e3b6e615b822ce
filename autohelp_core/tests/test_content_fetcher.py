import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest

from conftest import FakeTransport

from autohelp_core.domain.exceptions import NetworkError
from autohelp_core.domain.models import Absent, Attachment, IncomingMessage, Present
from autohelp_core.fetching.content_fetcher import ContentFetcher, find_code_blocks
from autohelp_core.infrastructure.storage.json_store import JsonQuotaStore
from autohelp_core.parsing.stacktrace import parse
from autohelp_core.quota.tracker import QuotaTracker


class FakePasteClient:
    name = "paste"

    def __init__(self, pages=None, delay=0.0):
        self.pages = pages or {}
        self.delay = delay
        self.requested = []

    async def fetch_text(self, url):
        self.requested.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        return page


class FakeGithubClient:
    def __init__(self, files):
        self.files = files

    async def list_gist_raw_urls(self, gist_id):
        return self.files[gist_id]


class FakeRecognizer:
    def __init__(self, text):
        self.text = text
        self.images = []

    async def read_text(self, image):
        self.images.append(image)
        return self.text


def message(content="", attachments=None):
    return IncomingMessage(author_id="u1", channel_id="c1", content=content, attachments=attachments or [])


def test_find_code_blocks():
    text = "look:\n```java\nint a = 1;\n```\nand ```inline```"
    assert find_code_blocks(text) == ["int a = 1;\n", "inline"]


@pytest.mark.asyncio
async def test_plain_message_is_the_only_body(transport):
    fetcher = ContentFetcher(transport, FakePasteClient())
    bodies = await fetcher.fetch_message_contents(message("java.lang.NullPointerException"))
    assert bodies == [Present(source="message", body="java.lang.NullPointerException")]


@pytest.mark.asyncio
async def test_code_blocks_replace_raw_text(transport):
    fetcher = ContentFetcher(transport, FakePasteClient())
    bodies = await fetcher.fetch_message_contents(message("help\n```\ntrace here\n```"))
    assert bodies == [Present(source="code_block", body="trace here\n")]


@pytest.mark.asyncio
async def test_empty_paste_yields_empty_body(transport):
    paste = FakePasteClient({"https://hastebin.com/raw/abcdef": ""})
    fetcher = ContentFetcher(transport, paste)
    bodies = await fetcher.fetch_message_contents(message("https://hastebin.com/abcdef.java"))
    assert bodies == [Present(source="https://hastebin.com/raw/abcdef", body="")]
    assert parse(bodies[0].body).exceptions == []


@pytest.mark.asyncio
async def test_failed_source_does_not_affect_siblings(transport):
    paste = FakePasteClient(
        {
            "https://pastebin.com/raw/good": "content",
            "https://ghostbin.co/paste/bad/raw": NetworkError(code="NETWORK_ERROR", message="down"),
        }
    )
    fetcher = ContentFetcher(transport, paste)
    bodies = await fetcher.fetch_message_contents(message("https://pastebin.com/good https://ghostbin.co/paste/bad"))
    assert Present(source="https://pastebin.com/raw/good", body="content") in bodies
    absent = [b for b in bodies if isinstance(b, Absent)]
    assert len(absent) == 1
    assert absent[0].source == "https://ghostbin.co/paste/bad/raw"
    assert "NETWORK_ERROR" in absent[0].reason


@pytest.mark.asyncio
async def test_slow_source_times_out(transport):
    paste = FakePasteClient({"https://pastebin.com/raw/slow": "late"}, delay=1.0)
    fetcher = ContentFetcher(transport, paste, timeout=0.01)
    bodies = await fetcher.fetch_message_contents(message("https://pastebin.com/slow"))
    assert bodies == [Absent(source="https://pastebin.com/raw/slow", reason="timeout")]


@pytest.mark.asyncio
async def test_gist_files_are_fetched(transport):
    raw_a = "https://gist.githubusercontent.com/u/abc123/raw/a/Main.java"
    raw_b = "https://gist.githubusercontent.com/u/abc123/raw/b/log.txt"
    paste = FakePasteClient({raw_a: "class", raw_b: "log"})
    fetcher = ContentFetcher(transport, paste, github_client=FakeGithubClient({"abc123": [raw_a, raw_b]}))
    bodies = await fetcher.fetch_message_contents(message("see https://gist.github.com/someone/abc123"))
    assert sorted(b.body for b in bodies) == ["class", "log"]


@pytest.mark.asyncio
async def test_raw_gist_url_is_fetched_directly(transport):
    raw = "https://gist.githubusercontent.com/u/abc123/raw/a/Main.java"
    paste = FakePasteClient({raw: "class"})
    fetcher = ContentFetcher(transport, paste)
    bodies = await fetcher.fetch_message_contents(message(f"here {raw}"))
    assert bodies == [Present(source=raw, body="class")]


@pytest.mark.asyncio
async def test_text_attachments_are_decoded_and_media_skipped():
    transport = FakeTransport(attachments={"a1": "héllo \xff".encode("latin-1")})
    fetcher = ContentFetcher(transport, FakePasteClient())
    bodies = await fetcher.fetch_message_contents(
        message(
            "",
            [
                Attachment(id="a1", filename="latest.log"),
                Attachment(id="v1", filename="clip.mp4"),
                Attachment(id="i1", filename="shot.png"),
            ],
        )
    )
    assert len(bodies) == 1
    assert bodies[0].source == "attachment:latest.log"
    assert "�" in bodies[0].body


@pytest.mark.asyncio
async def test_image_ocr_consumes_quota(tmp_path: Path):
    transport = FakeTransport(attachments={"i1": b"png"})
    recognizer = FakeRecognizer("java.lang.NullPointerException")
    quota = QuotaTracker(
        JsonQuotaStore(tmp_path / "usages.json"),
        max_usages=1,
        clock=lambda: datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    fetcher = ContentFetcher(transport, FakePasteClient(), text_recognizer=recognizer, quota=quota)
    msg = message("", [Attachment(id="i1", filename="shot.png", content_type="image/png")])
    first = await fetcher.fetch_message_contents(msg)
    assert first == [Present(source="attachment:shot.png", body="java.lang.NullPointerException")]
    assert quota.usages == 1
    second = await fetcher.fetch_message_contents(msg)
    assert second == [Absent(source="attachment:shot.png", reason="quota exhausted")]
    assert recognizer.images == [b"png"]
