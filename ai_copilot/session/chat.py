"""Chat client tying the conversation history to a provider adapter."""
from __future__ import annotations

from typing import Callable, List

from ai_copilot.providers.llm import CompletionRequest, LLMError, Message, ProviderAdapter
from ai_copilot.utils.config import Settings
from ai_copilot.utils.logger import get_logger, log_llm_request, log_llm_response

from .conversation import ConversationStore

LOGGER = get_logger(__name__)


class ChatClient:
    """Send prompts with the current history and record the exchanges."""

    def __init__(
        self,
        settings: Settings,
        adapter: ProviderAdapter,
        conversation: ConversationStore | None = None,
    ) -> None:
        self.settings = settings
        self.adapter = adapter
        self.conversation = conversation or ConversationStore()

    @property
    def model(self) -> str:
        return self.settings.model

    def build_request(self, message: str, *, stream: bool = False) -> CompletionRequest:
        messages = [*self.conversation.snapshot(), Message(role="user", content=message)]
        return CompletionRequest(
            model=self.settings.model,
            messages=messages,
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
            stream=stream,
        )

    def send(self, message: str, on_chunk: Callable[[str], None] | None = None) -> str:
        """Send ``message`` after the history; stream when ``on_chunk`` is given.

        The exchange is not recorded; callers decide via ``record_exchange``.
        """
        provider = self.settings.active_provider()
        request = self.build_request(message, stream=on_chunk is not None)
        log_llm_request(provider.name, request.model, len(request.messages), stream=request.stream)
        try:
            if on_chunk is not None:
                text = self.adapter.stream_complete(provider, request, on_chunk)
            else:
                text = self.adapter.complete(provider, request)
        except LLMError as exc:
            log_llm_response(provider.name, request.model, 0, exc)
            raise
        log_llm_response(provider.name, request.model, len(text))
        return text

    def ask(self, message: str, on_chunk: Callable[[str], None] | None = None) -> str:
        """Send ``message`` and record the exchange."""
        text = self.send(message, on_chunk)
        self.record_exchange(message, text)
        return text

    def record_exchange(self, user: str, assistant: str) -> None:
        self.conversation.append("user", user)
        self.conversation.append("assistant", assistant)

    def add_system_message(self, content: str) -> None:
        self.conversation.add_system_message(content)

    def reset(self) -> None:
        self.conversation.reset()

    def list_models(self) -> List[str]:
        return self.adapter.list_models(self.settings.active_provider())

    def switch_model(self, model: str) -> None:
        LOGGER.info("Switching model from %s to %s", self.settings.model, model)
        self.settings.model = model


__all__ = ["ChatClient"]
