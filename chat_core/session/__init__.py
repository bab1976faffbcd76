"""会话控制层：一次只驱动一个请求/响应交换。"""

from chat_core.session.controller import Exchange, SessionController

__all__ = ["Exchange", "SessionController"]
