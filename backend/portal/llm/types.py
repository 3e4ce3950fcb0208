"""
LLM 层的标准响应结构。

ClaudeService / OpenAIService 的 complete() 都返回 LLMResponse，
interactions.LLMInteractionChecker 只认这个格式。
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class LLMResponse:
    content: str                        # 生成的文本（期望是 JSON 数组）
    model: str                          # 实际使用的模型名
    stop_reason: Optional[str] = None   # "end_turn" / "max_tokens" / "stop" / "length" ...

    @property
    def truncated(self) -> bool:
        """输出被 max_tokens 截断时，JSON 数组很可能不完整。"""
        return self.stop_reason in ("max_tokens", "length")
