"""
Unit tests for exception classes, ExceptionHandlerMixin and the DRF handler.

不需要数据库，纯 Python 测试：
1. BaseAppException 默认值
2. 各子类的默认 type / code / http_status
3. 构造时覆盖 code / http_status
4. ExceptionHandlerMixin 把异常转成正确的 JsonResponse（同步 / 异步 View）
5. unified_exception_handler 处理 DRF ValidationError
"""
import json

import pytest
from django.http import JsonResponse
from django.test import RequestFactory
from django.views import View
from rest_framework.exceptions import ValidationError as DRFValidationError

from portal.exception_handler import ExceptionHandlerMixin, unified_exception_handler
from portal.exceptions import (
    AdvisoryServiceError,
    BaseAppException,
    BlockError,
    MappingError,
    ProjectionInputError,
    PromptLookupError,
    RecordDecodeError,
    UpstreamError,
    ValidationError,
)


# -------------------------------------------------------------------
# Exception classes
# -------------------------------------------------------------------

class TestBaseAppException:

    def test_defaults(self):
        exc = BaseAppException('something broke')
        assert exc.message == 'something broke'
        assert exc.type == 'error'
        assert exc.code == 'UNKNOWN_ERROR'
        assert exc.http_status == 500
        assert exc.detail is None

    def test_override_code_and_status(self):
        exc = BaseAppException('bad', code='CUSTOM_CODE', http_status=418)
        assert exc.code == 'CUSTOM_CODE'
        assert exc.http_status == 418


class TestSubclassDefaults:

    @pytest.mark.parametrize('cls, type_, code, status', [
        (ValidationError, 'validation_error', 'VALIDATION_ERROR', 400),
        (BlockError, 'block', 'BUSINESS_BLOCK', 409),
        (UpstreamError, 'upstream', 'UPSTREAM_UNAVAILABLE', 502),
        (RecordDecodeError, 'validation_error', 'RECORD_DECODE_ERROR', 400),
        (MappingError, 'mapping', 'UNKNOWN_STATUS', 500),
        (ProjectionInputError, 'projection', 'MISSING_TIMESTAMP', 500),
        (PromptLookupError, 'prompt', 'REVIEW_LOOKUP_FAILED', 502),
        (AdvisoryServiceError, 'advisory', 'INTERACTION_CHECK_FAILED', 502),
    ])
    def test_defaults(self, cls, type_, code, status):
        exc = cls('x')
        assert (exc.type, exc.code, exc.http_status) == (type_, code, status)

    def test_decode_error_is_validation_error(self):
        assert isinstance(RecordDecodeError('x'), ValidationError)

    def test_block_error_as_not_found(self):
        exc = BlockError('missing', code='PROMPT_NOT_FOUND', http_status=404)
        assert exc.http_status == 404


# -------------------------------------------------------------------
# ExceptionHandlerMixin
# -------------------------------------------------------------------

class _RaisingView(ExceptionHandlerMixin, View):
    """测试用 View，抛 exc_to_raise。"""

    exc_to_raise = None

    def get(self, request):
        if self.exc_to_raise:
            raise self.exc_to_raise
        return JsonResponse({'ok': True})


class _AsyncRaisingView(ExceptionHandlerMixin, View):

    exc_to_raise = None

    async def get(self, request):
        if self.exc_to_raise:
            raise self.exc_to_raise
        return JsonResponse({'ok': True})


class TestExceptionHandlerMixin:

    def _make_request(self):
        return RequestFactory().get('/')

    def test_no_exception_passes_through(self):
        _RaisingView.exc_to_raise = None
        response = _RaisingView.as_view()(self._make_request())
        assert response.status_code == 200

    def test_block_error_returns_409(self):
        _RaisingView.exc_to_raise = BlockError(
            'handled', code='PROMPT_ALREADY_HANDLED', detail={'appointment_id': '2'}
        )
        response = _RaisingView.as_view()(self._make_request())

        assert response.status_code == 409
        body = json.loads(response.content)
        assert body['type'] == 'block'
        assert body['code'] == 'PROMPT_ALREADY_HANDLED'
        assert body['detail']['appointment_id'] == '2'

    def test_no_detail_field_when_none(self):
        _RaisingView.exc_to_raise = UpstreamError('down')
        response = _RaisingView.as_view()(self._make_request())

        assert response.status_code == 502
        assert 'detail' not in json.loads(response.content)

    def test_non_app_exception_not_caught(self):
        """非 BaseAppException 的异常不被 mixin 捕获，应正常冒泡。"""
        _RaisingView.exc_to_raise = RuntimeError('unexpected')
        with pytest.raises(RuntimeError):
            _RaisingView.as_view()(self._make_request())

    async def test_async_view(self):
        _AsyncRaisingView.exc_to_raise = ValidationError('bad role', code='INVALID_ROLE')
        response = await _AsyncRaisingView.as_view()(self._make_request())

        assert response.status_code == 400
        assert json.loads(response.content)['code'] == 'INVALID_ROLE'

    async def test_async_view_passes_through(self):
        _AsyncRaisingView.exc_to_raise = None
        response = await _AsyncRaisingView.as_view()(self._make_request())
        assert response.status_code == 200


# -------------------------------------------------------------------
# unified_exception_handler
# -------------------------------------------------------------------

class TestUnifiedExceptionHandler:

    def test_app_exception(self):
        response = unified_exception_handler(AdvisoryServiceError('failed'), {})
        assert response.status_code == 502
        assert json.loads(response.content)['type'] == 'advisory'

    def test_drf_validation_error(self):
        exc = DRFValidationError({'medications': ['This field is required.']})
        response = unified_exception_handler(exc, {})

        assert response.status_code == 400
        body = json.loads(response.content)
        assert body['code'] == 'VALIDATION_ERROR'
        assert 'medications' in body['detail']
