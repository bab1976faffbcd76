"""Chat Core 顶层包。

该包提供聊天后端流式响应的接入引擎，
包括配置加载、消息模型、分帧解码、事件分类、
payload 归一化、消息状态机与会话控制。
"""

from chat_core.domain.models import ChatRequest, Message, MessageStatus
from chat_core.session.controller import SessionController

__all__ = ["ChatRequest", "Message", "MessageStatus", "SessionController"]
