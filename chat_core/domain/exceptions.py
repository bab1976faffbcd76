"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或 UI 层做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_URL"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 message_id、status_code 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """端点或凭证未配置，在发起任何网络请求之前拒绝。"""


class TransportError(BusinessError):
    """传输层错误：非 2xx 状态、响应体缺失、流中途解码或读取失败。"""


class StreamIncompleteError(TransportError):
    """响应流在收到任何结束信号或增量之前就结束了。"""


class ProtocolError(BusinessError):
    """单条 payload 无法解析，只记录日志并跳过，不会中断当前交换。"""


class UpstreamError(BusinessError):
    """后端通过 error 事件返回的错误。"""
