import asyncio
from typing import Dict, List, Optional, Tuple

import pytest

from autohelp_core.domain.models import Attachment, MessageHandle, RenderedAnswer


class FakeTransport:
    """记录所有 create/edit 调用的聊天传输层。"""

    def __init__(self, attachments: Optional[Dict[str, bytes]] = None, create_gate: Optional[asyncio.Event] = None):
        self.created: List[Tuple[str, RenderedAnswer]] = []
        self.edited: List[Tuple[MessageHandle, RenderedAnswer]] = []
        self.attachments = attachments or {}
        self.create_gate = create_gate
        self.fail_create = False
        self.fail_edit = False

    async def create_message(self, channel_id: str, content: RenderedAnswer) -> MessageHandle:
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.fail_create:
            raise RuntimeError("create failed")
        self.created.append((channel_id, content))
        return MessageHandle(channel_id=channel_id, message_id=f"m{len(self.created)}")

    async def edit_message(self, handle: MessageHandle, content: RenderedAnswer) -> None:
        if self.fail_edit:
            raise RuntimeError("edit failed")
        self.edited.append((handle, content))

    async def fetch_attachment(self, attachment: Attachment) -> bytes:
        return self.attachments[attachment.id]

    @property
    def last_content(self) -> Optional[RenderedAnswer]:
        if self.edited:
            return self.edited[-1][1]
        if self.created:
            return self.created[-1][1]
        return None


class DictKnowledgeStore:
    def __init__(self, entries: Optional[Dict[str, str]] = None):
        self.entries = dict(entries or {})

    def find_explanation(self, key: str) -> Optional[str]:
        return self.entries.get(key)


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def knowledge():
    return DictKnowledgeStore({"nullpointerexception": "Something was null.", "casting": "Bad cast."})


@pytest.fixture
def clock():
    return FakeClock()
