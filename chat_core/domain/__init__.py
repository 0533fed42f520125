"""领域层模型与协议。

包含：
- models: Message / ChatReply / ImageReply 等数据模型。
- conversation: Conversation 模型、本地键值存储协议与存储键名。
- exceptions: 业务异常类型定义。
"""
