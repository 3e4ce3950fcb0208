"""
具体 LLM 实现（异步客户端，跑在 ASGI 的事件循环里）。

新增 LLM 供应商：在此文件添加一个类，然后在 factory.py 注册即可。

已注册供应商：
  anthropic — ClaudeService   (claude-sonnet-4-20250514)
  openai    — OpenAIService   (gpt-4o)
"""

from django.conf import settings

from .base import BaseLLMService
from .types import LLMResponse

MAX_TOKENS = 800


# ── ClaudeService ──────────────────────────────────────────────────────────
#
# 使用 Anthropic SDK 的 AsyncAnthropic；每次调用用 async with，结束即关闭连接池。
# 配置：settings.ANTHROPIC_API_KEY / settings.ANTHROPIC_MODEL

class ClaudeService(BaseLLMService):

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    async def complete(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        import anthropic

        api_key = getattr(settings, "ANTHROPIC_API_KEY", "")
        if not api_key:
            raise ValueError("ANTHROPIC_API_KEY is not set")

        model = getattr(settings, "ANTHROPIC_MODEL", "") or self.DEFAULT_MODEL
        async with anthropic.AsyncAnthropic(api_key=api_key) as client:
            response = await client.messages.create(
                model=model,
                max_tokens=MAX_TOKENS,
                system=system_prompt,
                messages=[{"role": "user", "content": user_prompt}],
            )

        return LLMResponse(
            content=response.content[0].text,
            model=model,
            stop_reason=response.stop_reason,
        )


# ── OpenAIService ──────────────────────────────────────────────────────────
#
# 使用 OpenAI SDK 的 AsyncOpenAI；同样每次调用后关闭。
# 配置：settings.OPENAI_API_KEY / settings.OPENAI_MODEL

class OpenAIService(BaseLLMService):

    DEFAULT_MODEL = "gpt-4o"

    async def complete(self, system_prompt: str, user_prompt: str) -> LLMResponse:
        import openai

        api_key = getattr(settings, "OPENAI_API_KEY", "")
        if not api_key:
            raise ValueError("OPENAI_API_KEY is not set")

        model = getattr(settings, "OPENAI_MODEL", "") or self.DEFAULT_MODEL
        async with openai.AsyncOpenAI(api_key=api_key) as client:
            response = await client.chat.completions.create(
                model=model,
                max_tokens=MAX_TOKENS,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user",   "content": user_prompt},
                ],
            )

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=model,
            stop_reason=response.choices[0].finish_reason,
        )
