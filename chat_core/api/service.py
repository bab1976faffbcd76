"""对外 API 服务模块。

提供简化的函数接口供上层应用（输入框、设置面板等）调用，
返回值均为可直接渲染的 dict。
"""

from typing import Any, Dict, List, Optional

from chat_core.config.env_utils import save_api_settings
from chat_core.config.settings import settings
from chat_core.domain.exceptions import ConfigurationError
from chat_core.infrastructure.logging.logger import logger
from chat_core.session.controller import SessionController


_session: Optional[SessionController] = None


def get_default_session() -> SessionController:
    """获取默认的会话控制器实例（单例）。"""
    global _session
    if _session is None:
        _session = SessionController(settings)
    return _session


async def send_message(text: str) -> Dict[str, Any]:
    """发送一条消息并等待流式响应结束。

    Args:
        text: 用户输入内容

    Returns:
        配置缺失时返回 {"error": ..., "code": ...}；
        否则返回 assistant 消息与当前全部消息。
    """
    session = get_default_session()
    try:
        assistant = await session.submit(text)
    except ConfigurationError as e:
        logger.warning(f"Submit rejected: {e.message}", extra={"extra": {"code": e.code}})
        return {"error": e.message, "code": e.code}

    return {
        "assistant_message": assistant.to_dict() if assistant else None,
        "messages": list_messages(),
    }


def stop_generation() -> bool:
    """停止当前生成，返回是否真的取消了一次交换。"""
    return get_default_session().cancel()


def clear_messages() -> List[Dict[str, Any]]:
    """清空会话，只保留问候语。"""
    session = get_default_session()
    session.reset()
    return list_messages()


def list_messages() -> List[Dict[str, Any]]:
    """列出当前会话的所有消息。"""
    return [m.to_dict() for m in get_default_session().messages]


def update_api_settings(
    api_url: Optional[str] = None,
    api_token: Optional[str] = None,
    persist: bool = False,
) -> Dict[str, Any]:
    """修改接口地址与凭证。

    Args:
        api_url: 新的接口地址（None 表示不修改）
        api_token: 新的凭证（None 表示不修改）
        persist: 是否同时写入 .env，下次启动时生效

    Returns:
        当前生效的配置（凭证只返回是否已设置）
    """
    session = get_default_session()
    session.configure(api_url=api_url, api_token=api_token)
    if persist:
        save_api_settings(api_url=api_url, api_token=api_token)
    return {
        "api_url": session.api_url,
        "has_token": bool(session.api_token),
        "model": session.model,
    }
