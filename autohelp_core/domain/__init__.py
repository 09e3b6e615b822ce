"""领域层模型与协议。

包含：
- models: 证据（StackFrame / ExceptionRecord / SourceClass）与消息值对象。
- conversation: Conversation / Answer 状态以及外部协作者协议。
- exceptions: 业务异常类型定义。
"""
