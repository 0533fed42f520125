"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层或 GUI 层做统一捕获与用户提示。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_WRITE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 对应的 HTTP 状态码（若来自远端），默认 400。
        extra: 其他补充字段（例如 conversation_id、endpoint 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """代理服务器返回非 2xx，或 2xx 但 success=false / 响应结构异常。"""


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class NotFoundError(BusinessError):
    """按 ID 查找的会话不存在。"""


class StoreWriteError(BusinessError):
    """本地持久化写入失败。"""


class CredentialRequiredError(BusinessError):
    """尚未配置 API Key，需要提示用户输入。"""


class CredentialInvalidError(BusinessError):
    """远端返回 401，本地缓存的 API Key 已被清除，需要重新输入。"""


class GenerationInProgressError(BusinessError):
    """已有一个请求在进行中，拒绝再次进入。"""
