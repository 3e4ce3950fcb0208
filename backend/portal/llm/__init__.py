from .factory import get_llm_service
from .types import LLMResponse

__all__ = ['get_llm_service', 'LLMResponse']
