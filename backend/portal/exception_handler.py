"""
统一异常处理器。

DRF 视图：unified_exception_handler 挂到 REST_FRAMEWORK['EXCEPTION_HANDLER']。
普通 Django 视图（包括 async 视图）：继承 ExceptionHandlerMixin。

所有响应（无论成功还是失败）前端都能用同一套逻辑判断：
  response.type === 'error' / 'validation_error' / 'block' / 'upstream' / 'advisory' → 出问题了
  没有 type 字段  → 成功

统一错误响应格式：
{
    "type":    "validation_error" | "block" | "upstream" | ...,
    "code":    "PROMPT_ALREADY_HANDLED",
    "message": "This review prompt has already been handled.",
    "detail":  { ... }  // 可选
}
"""

from django.http import JsonResponse
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.views import exception_handler as drf_default_handler

from .exceptions import BaseAppException


def render_app_exception(exc: BaseAppException) -> JsonResponse:
    body = {
        'type': exc.type,
        'code': exc.code,
        'message': exc.message,
    }
    if exc.detail is not None:
        body['detail'] = exc.detail
    return JsonResponse(body, status=exc.http_status)


def unified_exception_handler(exc, context):
    """
    DRF exception handler entry point.

    优先级：
    1. BaseAppException 及其子类 → 统一格式
    2. DRF 自带的 ValidationError（serializer.is_valid raise 的）→ 转成统一格式
    3. 其他异常 → 交给 DRF 默认处理
    """

    # --- 1. 我们自己的异常体系 ---
    if isinstance(exc, BaseAppException):
        return render_app_exception(exc)

    # --- 2. DRF 自带的 ValidationError ---
    if isinstance(exc, DRFValidationError):
        body = {
            'type': 'validation_error',
            'code': 'VALIDATION_ERROR',
            'message': 'Request validation failed',
            'detail': exc.detail,
        }
        return JsonResponse(body, status=400)

    # --- 3. 其他的交给 DRF 默认处理 ---
    return drf_default_handler(exc, context)


class ExceptionHandlerMixin:
    """
    普通 Django View 的统一异常出口。只拦 BaseAppException，其余照常冒泡。

    async 视图的 dispatch 返回协程，需要 await 之后才能捕获。
    """

    def dispatch(self, request, *args, **kwargs):
        if self.view_is_async:
            return self._async_dispatch(request, *args, **kwargs)
        try:
            return super().dispatch(request, *args, **kwargs)
        except BaseAppException as exc:
            return render_app_exception(exc)

    async def _async_dispatch(self, request, *args, **kwargs):
        try:
            return await super().dispatch(request, *args, **kwargs)
        except BaseAppException as exc:
            return render_app_exception(exc)
