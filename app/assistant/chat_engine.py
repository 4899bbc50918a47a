"""Learning assistant backed by a chat-completion API."""

from typing import Any, Dict, List, Optional

import httpx
import structlog

from app.core.config import Settings, settings as default_settings
from app.core.errors import ChatServiceError
from app.schemas.chat import ChatRequest, ChatResponse

logger = structlog.get_logger()

DEFAULT_SYSTEM_PROMPT = (
    "You are an AI learning assistant for an LMS platform. Provide helpful, "
    "educational responses. Be encouraging and supportive. Keep responses "
    "concise but informative."
)

FALLBACK_REPLY = (
    "I'm sorry, I'm having trouble connecting to my knowledge base right now. "
    "Please try again in a moment, or contact support if the issue persists."
)


class ChatEngine:
    """Builds the conversation and calls the chat-completion endpoint."""

    def __init__(self, http_client: httpx.AsyncClient, settings: Optional[Settings] = None):
        self.http = http_client
        self.settings = settings or default_settings

    def build_messages(self, request: ChatRequest) -> List[Dict[str, str]]:
        system = {"role": "system", "content": request.context or DEFAULT_SYSTEM_PROMPT}
        history = [{"role": m.role, "content": m.content} for m in request.history]
        return [system, *history, {"role": "user", "content": request.message}]

    async def complete(self, request: ChatRequest) -> ChatResponse:
        """Return the assistant's reply. Raises ``ChatServiceError`` on failure."""
        body = {
            "model": self.settings.CHAT_MODEL,
            "messages": self.build_messages(request),
            "max_tokens": self.settings.CHAT_MAX_TOKENS,
            "temperature": self.settings.CHAT_TEMPERATURE,
            "top_p": self.settings.CHAT_TOP_P,
        }

        try:
            response = await self.http.post(
                self.settings.CHAT_API_URL,
                json=body,
                headers={"Authorization": f"Bearer {self.settings.CHAT_API_KEY}"}
            )
        except httpx.HTTPError as e:
            raise ChatServiceError(f"Chat request failed: {e}") from e

        if response.is_error:
            logger.error("Chat API error", status_code=response.status_code, reason=response.reason_phrase)
            raise ChatServiceError("Failed to get AI response")

        try:
            data: Dict[str, Any] = response.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ChatServiceError("Invalid response from AI service") from e

        return ChatResponse(response=content, usage=data.get("usage"))
