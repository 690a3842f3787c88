import httpx

from habitflow.config import AI_TIMEOUT_SECONDS, OPENAI_API_KEY, OPENAI_BASE_URL, OPENAI_MODEL
from habitflow.providers.base import BaseProvider


class OpenAIProvider(BaseProvider):
    """Provider for the OpenAI chat-completions API using standard httpx."""

    def __init__(self, api_key: str, base_url: str = OPENAI_BASE_URL, default_model: str = OPENAI_MODEL,
                 timeout: float = AI_TIMEOUT_SECONDS, transport: httpx.AsyncBaseTransport | None = None):
        self.api_key = api_key
        self.endpoint = f"{base_url.rstrip('/')}/chat/completions"
        self.default_model = default_model
        self.timeout = timeout
        self.transport = transport

    @property
    def name(self) -> str:
        return "openai"

    async def chat(self, messages: list[dict], model: str | None = None, json_mode: bool = False) -> dict:
        used_model = model or self.default_model
        try:
            headers = {
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json"
            }
            body = {
                "model": used_model,
                "messages": messages,
                "max_tokens": 512,
            }
            if json_mode:
                body["response_format"] = {"type": "json_object"}

            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.endpoint, headers=headers, json=body)
                response.raise_for_status()
                data = response.json()
                text = data["choices"][0]["message"]["content"] if data.get("choices") else None

            return {
                "text": text,
                "provider": self.name,
                "model": used_model,
                "status": "success" if text else "failed",
                "error": None if text else "Empty response",
            }
        except httpx.TimeoutException:
            return {
                "text": None,
                "provider": self.name,
                "model": used_model,
                "status": "failed",
                "error": "Timeout",
            }
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            return {
                "text": None,
                "provider": self.name,
                "model": used_model,
                "status": "failed",
                "error": str(e),
            }


def get_ai_provider() -> BaseProvider | None:
    """The configured provider, or None when no API key is set (AI features fall back to templates)."""
    if not OPENAI_API_KEY:
        return None
    return OpenAIProvider(api_key=OPENAI_API_KEY)
