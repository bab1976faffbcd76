"""领域层模型与协议。

包含：
- models: 统一的 Message / ChatRequest 模型与消息状态。
- conversation: 有序消息列表（会话）。
- exceptions: 业务异常类型定义。
"""
