"""
HTTP 入口。

/api/portal/<role>/<user_id>/...   async Django View，操作进程内的 PortalSession
/api/statuses/                     DRF，状态目录
/api/prescriptions/interactions/   DRF，一次性（不去抖）的相互作用检查

View 只负责：取 session → 调 lifecycle → 序列化。业务异常直接 raise，
由 ExceptionHandlerMixin / unified_exception_handler 统一转成 JSON。
"""

import json

from asgiref.sync import async_to_sync
from django.apps import apps
from django.conf import settings
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt
from rest_framework.response import Response
from rest_framework.views import APIView

from .exception_handler import ExceptionHandlerMixin
from .exceptions import BlockError, MappingError, ValidationError
from .interactions import get_interaction_checker
from .lifecycle.advisor import MIN_MEDICATIONS, clean_medications
from .lifecycle.listing import filter_appointments
from .lifecycle.prompts import PromptState
from .lifecycle.status import status_catalog
from .serializers import (
    MedicationListSerializer,
    serialize_advisor,
    serialize_appointment_list,
    serialize_feed,
    serialize_outbox,
    serialize_status_display,
)
from .sources import BackendClient


def bearer_token(request):
    header = request.headers.get('Authorization', '')
    if header.lower().startswith('bearer '):
        return header[7:].strip() or None
    return None


def parse_flag(value):
    """"true" / "false" / 缺省 → True / False / None。"""
    if value is None:
        return None
    return value.strip().lower() in ('1', 'true', 'yes')


def read_json(request):
    try:
        return json.loads(request.body or b'{}')
    except ValueError:
        raise ValidationError('Request body is not valid JSON.', code='INVALID_JSON')


class SessionViewMixin(ExceptionHandlerMixin):
    """从 URL 的 role / user_id 取（或新建）PortalSession。"""

    def get_store(self):
        return apps.get_app_config('portal').sessions

    async def get_session(self, request, role, user_id):
        store = self.get_store()
        await store.evict_idle()
        return store.acquire(role, user_id, bearer_token(request))

    def get_prompts(self, session, appointment_id):
        prompts = session.prompts
        if prompts is None or prompts.state_of(appointment_id) is PromptState.NOT_YET_PROMPTED:
            raise BlockError(
                'No review prompt exists for this appointment.',
                code='PROMPT_NOT_FOUND',
                detail={'appointment_id': appointment_id},
                http_status=404,
            )
        return prompts


# ── 通知 feed ──────────────────────────────────────────────────────────────

@method_decorator(csrf_exempt, name='dispatch')
class FeedView(SessionViewMixin, View):
    """GET /api/portal/<role>/<user_id>/feed/?verified=false"""

    async def get(self, request, role, user_id):
        session = await self.get_session(request, role, user_id)
        verified = parse_flag(request.GET.get('verified'))
        if verified is not None:
            session.is_verified = verified

        feed = await session.refresh()
        return JsonResponse(serialize_feed(feed, session.surface.drain()))


@method_decorator(csrf_exempt, name='dispatch')
class OutboxView(SessionViewMixin, View):
    """GET /api/portal/<role>/<user_id>/outbox/ — 定时器触发的跳转从这里取。"""

    async def get(self, request, role, user_id):
        session = await self.get_session(request, role, user_id)
        entries = session.surface.drain()
        return JsonResponse({'count': len(entries), 'outbox': serialize_outbox(entries)})


@method_decorator(csrf_exempt, name='dispatch')
class SessionView(SessionViewMixin, View):
    """DELETE /api/portal/<role>/<user_id>/ — 销毁 session，取消所有定时器。"""

    async def delete(self, request, role, user_id):
        closed = await self.get_store().close(role, user_id)
        return JsonResponse({'closed': closed})


# ── 预约列表 ───────────────────────────────────────────────────────────────

@method_decorator(csrf_exempt, name='dispatch')
class AppointmentListView(SessionViewMixin, View):
    """GET /api/portal/<role>/<user_id>/appointments/?status=CONFIRMED&q=shah"""

    async def get(self, request, role, user_id):
        session = await self.get_session(request, role, user_id)
        status = request.GET.get('status') or None
        if status:
            # 未登记的状态码直接 400，不转发给后端
            try:
                status = session.classifier.classify(status).status
            except MappingError as exc:
                raise ValidationError(exc.message, code=exc.code, detail=exc.detail) from exc

        records = await session.client.list_appointments(status)
        records = filter_appointments(
            records,
            status=status,
            term=request.GET.get('q', ''),
            role=session.role,
            classifier=session.classifier,
        )
        return JsonResponse(serialize_appointment_list(records, session.classifier))


# ── 评价提示 ───────────────────────────────────────────────────────────────

@method_decorator(csrf_exempt, name='dispatch')
class PromptAcceptView(SessionViewMixin, View):
    """POST /api/portal/<role>/<user_id>/prompts/<appointment_id>/accept/ — "Rate Now"。"""

    async def post(self, request, role, user_id, appointment_id):
        session = await self.get_session(request, role, user_id)
        prompts = self.get_prompts(session, appointment_id)

        target = prompts.accept(appointment_id)
        if target is None:
            raise BlockError(
                'This review prompt has already been handled.',
                code='PROMPT_ALREADY_HANDLED',
                detail={'appointment_id': appointment_id,
                        'state': prompts.state_of(appointment_id).value},
            )
        return JsonResponse({
            'appointment_id': appointment_id,
            'target': target,
            'outbox': serialize_outbox(session.surface.drain()),
        })


@method_decorator(csrf_exempt, name='dispatch')
class PromptDismissView(SessionViewMixin, View):
    """POST /api/portal/<role>/<user_id>/prompts/<appointment_id>/dismiss/"""

    async def post(self, request, role, user_id, appointment_id):
        session = await self.get_session(request, role, user_id)
        prompts = self.get_prompts(session, appointment_id)

        if not prompts.dismiss(appointment_id):
            raise BlockError(
                'This review prompt has already been handled.',
                code='PROMPT_ALREADY_HANDLED',
                detail={'appointment_id': appointment_id,
                        'state': prompts.state_of(appointment_id).value},
            )
        return JsonResponse({
            'appointment_id': appointment_id,
            'state': prompts.state_of(appointment_id).value,
        })


# ── 处方表单（去抖检查） ───────────────────────────────────────────────────

@method_decorator(csrf_exempt, name='dispatch')
class MedicationsView(SessionViewMixin, View):
    """
    POST /api/portal/<role>/<user_id>/medications/  表单每次变化调用一次 → 202
    GET  同路径                                     当前检查状态
    """

    async def get(self, request, role, user_id):
        session = await self.get_session(request, role, user_id)
        return JsonResponse(serialize_advisor(session.advisor.snapshot()))

    async def post(self, request, role, user_id):
        session = await self.get_session(request, role, user_id)
        serializer = MedicationListSerializer(data=read_json(request))
        if not serializer.is_valid():
            raise ValidationError(
                'Request validation failed',
                detail=serializer.errors,
            )

        session.advisor.edit(serializer.validated_data['medications'])
        return JsonResponse(serialize_advisor(session.advisor.snapshot()), status=202)


# ── DRF：无状态接口 ────────────────────────────────────────────────────────

class StatusCatalogView(APIView):
    """GET /api/statuses/"""

    authentication_classes = []
    permission_classes = []

    def get(self, request):
        catalog = [serialize_status_display(display) for display in status_catalog()]
        return Response({'count': len(catalog), 'statuses': catalog})


async def _check_once(medications, token):
    client = BackendClient(
        base_url=settings.PORTAL_BACKEND_URL,
        token=token,
        timeout=settings.PORTAL_BACKEND_TIMEOUT,
    )
    try:
        return await get_interaction_checker(client).check(medications)
    finally:
        await client.close()


class InteractionCheckView(APIView):
    """
    POST /api/prescriptions/interactions/  {"medications": [...]}

    表单上的 "Check interactions" 按钮：立即检查，不经过去抖，也不碰 session。
    少于 2 个药物时不调用外部服务。
    """

    authentication_classes = []
    permission_classes = []

    def post(self, request):
        serializer = MedicationListSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        medications = clean_medications(serializer.validated_data['medications'])
        if len(medications) < MIN_MEDICATIONS:
            return Response({'medications': medications, 'warnings': []})

        warnings = async_to_sync(_check_once)(medications, bearer_token(request))
        return Response({'medications': medications, 'warnings': warnings})
