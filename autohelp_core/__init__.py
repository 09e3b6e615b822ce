"""AutoHelp Core 顶层包。

该包实现聊天频道里的 AutoHelp 诊断会话：从消息、paste 链接、附件中
提取 Java 堆栈与源码，按用户与频道累积证据，生成并持续更新一条
诊断消息。包括配置加载、领域模型、HTTP 服务适配、解析、知识库匹配
与会话引擎等能力。
"""

from autohelp_core.api.service import configure, create_auto_help, handle_message, list_conversations

__all__ = ["configure", "create_auto_help", "handle_message", "list_conversations"]
