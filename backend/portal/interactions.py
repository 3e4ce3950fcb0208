"""
药物相互作用检查器 — InteractionAdvisor 背后的 "外部服务"。

所有实现都满足：
  async check(medications) -> list[str]
  任何失败（网络 / 后端拒绝 / LLM 答非所问）一律抛 AdvisoryServiceError

新增检查器只需：
  1. 新建 XxxInteractionChecker(BaseInteractionChecker)
  2. 在 _build_registry() 加一行
  然后把环境变量 INTERACTION_CHECKER 改成新的 key。
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from django.conf import settings

from .exceptions import AdvisoryServiceError, BaseAppException, ValidationError
from .llm import get_llm_service
from .sources import BackendClient, get_adapter

logger = logging.getLogger(__name__)


class BaseInteractionChecker(ABC):

    @abstractmethod
    async def check(self, medications: list[str]) -> list[str]:
        """
        Args:
            medications: 已去空格、非空的药物名

        Returns:
            自由文本的警告列表；没有相互作用时为空列表

        Raises:
            AdvisoryServiceError: 检查失败
        """


# ── BackendInteractionChecker ──────────────────────────────────────────────
#
# 直接转发到 HealthLink 后端的 /api/v1/prescriptions/interactions。

class BackendInteractionChecker(BaseInteractionChecker):

    def __init__(self, client: BackendClient):
        self.client = client

    async def check(self, medications):
        try:
            return await self.client.check_interactions(medications)
        except BaseAppException as exc:
            raise AdvisoryServiceError(
                message='Failed to check drug interactions',
                detail={'error': exc.message, 'code': exc.code},
            ) from exc


# ── LLMInteractionChecker ──────────────────────────────────────────────────
#
# 让 LLM 直接给出 JSON 数组。回答里允许夹带 ```json 代码块，其它格式一律算失败。

SYSTEM_PROMPT = (
    "You are a clinical pharmacist reviewing a prescription for drug-drug interactions. "
    "Answer ONLY with a JSON array of short warning strings, one per clinically relevant "
    "interaction. Answer [] when there is none."
)

_JSON_ARRAY_RE = re.compile(r'\[.*\]', re.DOTALL)


def build_prompt(medications: list[str]) -> str:
    lines = '\n'.join(f"- {name}" for name in medications)
    return f"Medications on this prescription:\n{lines}\n\nList the interactions."


def parse_warnings(content: str) -> list[str]:
    match = _JSON_ARRAY_RE.search(content or '')
    if not match:
        raise ValueError('LLM answer contains no JSON array')
    return get_adapter('interaction_result', match.group(0)).process()


class LLMInteractionChecker(BaseInteractionChecker):

    async def check(self, medications):
        try:
            service = get_llm_service()
            response = await service.complete(SYSTEM_PROMPT, build_prompt(medications))
            if response.truncated:
                raise ValueError(f"LLM answer truncated ({response.stop_reason})")
            warnings = parse_warnings(response.content)
        except Exception as exc:
            logger.warning("[Checker] LLM 检查失败: %s", exc)
            raise AdvisoryServiceError(
                message='Failed to check drug interactions',
                detail={'error': str(exc)},
            ) from exc

        logger.info("[Checker] %s 返回 %d 条警告", response.model, len(warnings))
        return warnings


# ── 注册表 ─────────────────────────────────────────────────────────────────

def _build_registry() -> dict:
    return {
        "backend": lambda client: BackendInteractionChecker(client),
        "llm":     lambda client: LLMInteractionChecker(),
    }


def get_interaction_checker(client: Optional[BackendClient] = None) -> BaseInteractionChecker:
    """
    从 settings.INTERACTION_CHECKER 读取实现（默认 "backend"）。

    Raises:
        ValidationError: INTERACTION_CHECKER 未知
    """
    kind = getattr(settings, "INTERACTION_CHECKER", "backend")
    registry = _build_registry()
    builder = registry.get(kind)

    if builder is None:
        raise ValidationError(
            message=f"Unknown INTERACTION_CHECKER: {kind!r}.",
            code="UNKNOWN_INTERACTION_CHECKER",
            detail={"known_checkers": list(registry.keys())},
        )

    if client is None:
        client = BackendClient(
            base_url=settings.PORTAL_BACKEND_URL,
            timeout=settings.PORTAL_BACKEND_TIMEOUT,
        )
    return builder(client)
