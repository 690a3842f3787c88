from habitflow.providers.base import BaseProvider
from habitflow.providers.openai_provider import OpenAIProvider, get_ai_provider


__all__ = [
    "BaseProvider",
    "OpenAIProvider",
    "get_ai_provider",
]
