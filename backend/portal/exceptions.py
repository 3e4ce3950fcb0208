"""
统一异常体系。

所有业务异常继承 BaseAppException，包含：
- type:        错误类型标识（validation_error / block / upstream / advisory ...）
- code:        业务错误码（UNKNOWN_STATUS / PROMPT_ALREADY_HANDLED / ...）
- message:     人类可读的描述
- detail:      可选的附加信息（dict / list / None）
- http_status: HTTP 状态码

View 层只需 raise，exception_handler 统一捕获并格式化响应。

lifecycle 核心内部的异常（MappingError / ProjectionInputError / PromptLookupError /
AdvisoryServiceError）都有各自的降级行为，不会冒泡到 View 层：
  MappingError          → 记一次日志，按 UNKNOWN 类处理
  ProjectionInputError  → 该条记录从 feed 中剔除，其余照常
  PromptLookupError     → 本轮不弹提示，下一轮重试
  AdvisoryServiceError  → toast 提示，保留上一次的 warnings
"""


class BaseAppException(Exception):
    """所有业务异常的基类。"""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500

    def __init__(self, message, code=None, detail=None, http_status=None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(message)


class ValidationError(BaseAppException):
    """输入验证失败。400。"""

    type = 'validation_error'
    code = 'VALIDATION_ERROR'
    http_status = 400


class BlockError(BaseAppException):
    """业务规则阻止操作。409。"""

    type = 'block'
    code = 'BUSINESS_BLOCK'
    http_status = 409


class UpstreamError(BaseAppException):
    """远端 HealthLink 后端不可用或返回非 2xx。502。"""

    type = 'upstream'
    code = 'UPSTREAM_UNAVAILABLE'
    http_status = 502


class RecordDecodeError(ValidationError):
    """
    原始 payload 无法解码成类型化的记录（缺 id / 时间无法解析 / 结构不对）。

    数据源边界抛出，绝不让半解析的对象流进 lifecycle 核心。
    """

    code = 'RECORD_DECODE_ERROR'


# ── lifecycle 核心异常 ───────────────────────────────────────────────────────

class MappingError(BaseAppException):
    """StatusClassifier 遇到未登记的状态码。"""

    type = 'mapping'
    code = 'UNKNOWN_STATUS'
    http_status = 500


class ProjectionInputError(BaseAppException):
    """记录缺少必需的时间戳，无法进入通知 feed。"""

    type = 'projection'
    code = 'MISSING_TIMESTAMP'
    http_status = 500


class PromptLookupError(BaseAppException):
    """"已评价" 查询失败。"""

    type = 'prompt'
    code = 'REVIEW_LOOKUP_FAILED'
    http_status = 502


class AdvisoryServiceError(BaseAppException):
    """药物相互作用检查失败。"""

    type = 'advisory'
    code = 'INTERACTION_CHECK_FAILED'
    http_status = 502
