"""
BackendClient — 远端 HealthLink 后端的异步 HTTP 客户端。

只做三件事：发请求、把失败统一成 UpstreamError、把响应交给 Adapter 解码。
返回值一律是 sources/types.py 里的类型化记录。

同时满足两个协作方协议：
  - 预约 / 病历数据源：list_appointments() / get_appointment() / list_medical_histories()
  - 已评价登记表：reviewed_ids()
"""

import logging
from typing import Any, Optional

import httpx

from ..exceptions import UpstreamError
from .factory import get_adapter
from .types import AppointmentRecord, MedicalHistoryRecord

logger = logging.getLogger(__name__)

# 后端没有给出 message 时，按状态码给用户看的提示
FRIENDLY_MESSAGES = {
    400: 'Some of the data you entered is not valid. Please fix the highlighted fields and try again.',
    401: 'You need to log in again to continue.',
    403: 'You are not allowed to perform this action. Your account may not be verified or approved yet.',
    404: 'The requested resource could not be found.',
    409: 'This action conflicts with existing data (for example, the record already exists).',
    429: 'Too many requests. Please wait a moment and try again.',
    500: 'The server encountered an error. Please try again in a moment.',
}
FALLBACK_MESSAGE = 'Something went wrong while talking to the server.'


def friendly_error(response: httpx.Response) -> str:
    """优先用后端返回的 message / error / detail，其次按状态码兜底。"""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ('message', 'error', 'detail'):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return FRIENDLY_MESSAGES.get(response.status_code, FALLBACK_MESSAGE)


class BackendClient:

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url:  后端地址，例如 http://localhost:8080
            token:     调用方的 bearer token，原样转发
            timeout:   请求超时（秒）
            transport: 可选的 httpx transport（测试时注入 MockTransport）
        """
        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def set_token(self, token: Optional[str]) -> None:
        self.token = token

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout),
                headers={'Content-Type': 'application/json', 'Accept': 'application/json'},
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        client = await self._get_client()
        headers = {'Authorization': f'Bearer {self.token}'} if self.token else {}

        try:
            response = await client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("[Backend] %s %s 请求失败: %s", method, path, exc)
            raise UpstreamError(
                message=FALLBACK_MESSAGE,
                detail={'path': path, 'error': str(exc)},
            ) from exc

        if response.is_error:
            logger.warning("[Backend] %s %s 返回 %d", method, path, response.status_code)
            raise UpstreamError(
                message=friendly_error(response),
                code='UPSTREAM_REJECTED',
                detail={'path': path, 'status': response.status_code},
                http_status=response.status_code if response.status_code < 500 else 502,
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                message='The server returned an unreadable response.',
                code='UPSTREAM_BAD_PAYLOAD',
                detail={'path': path},
            ) from exc

    # ── 预约 ────────────────────────────────────────────────────────────────

    async def list_appointments(self, status: Optional[str] = None) -> list[AppointmentRecord]:
        params = {'status': status} if status else {}
        payload = await self._request('GET', '/api/v1/appointments', params=params)
        return get_adapter('appointment', payload).process_many()

    async def get_appointment(self, appointment_id: str) -> AppointmentRecord:
        payload = await self._request('GET', f'/api/v1/appointments/{appointment_id}')
        return get_adapter('appointment', payload).process()

    # ── 病历 ────────────────────────────────────────────────────────────────

    async def list_medical_histories(self, patient_id: str) -> list[MedicalHistoryRecord]:
        payload = await self._request('GET', f'/api/v1/medical-records/patient/{patient_id}')
        return get_adapter('medical_history', payload).process_many()

    # ── 评价 ────────────────────────────────────────────────────────────────

    async def reviewed_ids(self) -> set[str]:
        payload = await self._request('GET', '/api/v1/reviews/mine')
        return {review.appointment_id for review in get_adapter('review', payload).process_many()}

    # ── 药物相互作用 ────────────────────────────────────────────────────────

    async def check_interactions(self, medications: list[str]) -> list[str]:
        payload = await self._request(
            'POST', '/api/v1/prescriptions/interactions',
            json={'medications': medications},
        )
        return get_adapter('interaction_result', payload).process()
