"""对外 API 服务模块。

提供简化的函数接口供聊天平台适配层调用：

- create_auto_help: 按配置组装完整的 AutoHelp 管线。
- configure / handle_message: 进程级单例的注册与消息入口。
- list_conversations: 查看当前活跃会话（调试用）。
"""

from typing import Any, Dict, List, Optional

from autohelp_core.agents.auto_help import AutoHelp
from autohelp_core.agents.brain import Brain
from autohelp_core.agents.renderer import Renderer
from autohelp_core.config.settings import settings
from autohelp_core.domain.conversation import ChatTransport, KnowledgeStore
from autohelp_core.domain.exceptions import ValidationError
from autohelp_core.domain.models import IncomingMessage
from autohelp_core.fetching.content_fetcher import ContentFetcher
from autohelp_core.infrastructure.logging.logger import logger
from autohelp_core.infrastructure.storage.json_store import JsonQuotaStore
from autohelp_core.infrastructure.storage.yaml_knowledge import YamlKnowledgeStore
from autohelp_core.knowledge.javadoc import JavadocFinder
from autohelp_core.knowledge.matcher import KnowledgeMatcher
from autohelp_core.providers import GithubClient, PasteClient, create_search_client, create_text_recognizer
from autohelp_core.quota.tracker import QuotaTracker


_auto_help: Optional[AutoHelp] = None
_started = False


def create_auto_help(transport: ChatTransport, knowledge_store: Optional[KnowledgeStore] = None) -> AutoHelp:
    """根据 settings 组装 AutoHelp。

    Args:
        transport: 聊天平台适配层（发送/编辑消息、下载附件）
        knowledge_store: 异常解释来源（可选，默认读取 knowledge.yaml）

    Returns:
        未启动的 AutoHelp 实例；清理任务在 start() 后运行
    """
    paste_client = PasteClient(settings)
    recognizer = create_text_recognizer(settings)
    quota = QuotaTracker(JsonQuotaStore(settings.quota_file)) if recognizer is not None else None
    fetcher = ContentFetcher(
        transport,
        paste_client,
        github_client=GithubClient(settings),
        text_recognizer=recognizer,
        quota=quota,
    )
    brain = Brain(
        KnowledgeMatcher(knowledge_store or YamlKnowledgeStore()),
        Renderer(transport),
        JavadocFinder(paste_client, search=create_search_client(settings)),
    )
    logger.info(
        "service.created",
        extra={"extra": {"ocr": recognizer is not None, "search": bool(settings.cse_key and settings.cse_id)}},
    )
    return AutoHelp(brain, fetcher)


def configure(transport: ChatTransport, knowledge_store: Optional[KnowledgeStore] = None) -> AutoHelp:
    """注册进程级默认的 AutoHelp 实例。"""
    global _auto_help, _started
    _auto_help = create_auto_help(transport, knowledge_store)
    _started = False
    return _auto_help


def get_default_auto_help() -> AutoHelp:
    if _auto_help is None:
        raise ValidationError(code="NOT_CONFIGURED", message="AutoHelp is not configured, call configure() first")
    return _auto_help


async def handle_message(message: IncomingMessage) -> None:
    """处理一条入站消息；第一次调用时启动会话清理任务。"""
    global _started
    auto_help = get_default_auto_help()
    if not _started:
        auto_help.start()
        _started = True
    await auto_help.on_message(message)


def list_conversations() -> List[Dict[str, Any]]:
    """列出所有活跃会话。

    Returns:
        会话列表，每项包含 owner_id, channel_id, exception, complete, message_id
    """
    auto_help = get_default_auto_help()
    result = []
    for conv in auto_help.brain.conversations:
        with conv.lock:
            exception = conv.answer.exception
            result.append(
                {
                    "owner_id": conv.owner_id,
                    "channel_id": conv.channel_id,
                    "exception": exception.exception_name if exception else None,
                    "sealed": exception.sealed if exception else False,
                    "complete": conv.answer.is_complete,
                    "message_id": conv.help_message.message_id if conv.help_message else None,
                    "evidence": len(conv.stacktraces) + len(conv.classes),
                }
            )
    return result
