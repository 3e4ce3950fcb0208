from .client import BackendClient
from .factory import get_adapter

__all__ = ['BackendClient', 'get_adapter']
