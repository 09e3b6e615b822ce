"""AutoHelp 的错误类型。

抓取正文、查文档、OCR 等外部调用失败时抛出 BusinessError 子类；
ContentFetcher 把它们转换成 Absent(reason=...)，JavadocFinder 把它们
当作未命中，最终都在 AutoHelp.on_message 之前被消化，不会打断消息处理。
"""


class BusinessError(Exception):
    """错误基类。

    Attributes:
        code: 机器可读错误码（如 "API_ERROR"、"QUOTA_EXCEEDED"）。
        message: 可读错误信息。
        http_status: 来自外部 HTTP 服务时的状态码，默认 400。
        extra: 其他补充字段（例如 url、service）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)

    @property
    def reason(self) -> str:
        """写进 Absent.reason 与日志的简短描述。"""
        return f"{self.code}: {self.message}"


class NetworkError(BusinessError):
    """连接失败、读取超时等网络层错误。"""


class ApiError(BusinessError):
    """paste 站点、GitHub、搜索或 OCR 服务返回了 4xx/5xx（429 除外）。"""


class RateLimitError(BusinessError):
    """外部服务返回 429；不重试，来源直接记为 Absent。"""


class ValidationError(BusinessError):
    """配置缺失或调用顺序错误，例如缺少 API key、未 configure()。"""


class QuotaExceededError(BusinessError):
    """OCR 配额在当前窗口内已用尽。"""

    def __init__(self, message: str = "OCR quota exhausted", **extra):
        super().__init__(code="QUOTA_EXCEEDED", message=message, http_status=429, **extra)
