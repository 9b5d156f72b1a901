"""AI service for chat completions used by AI workflow nodes."""

import time
from typing import Optional

from langchain_openai import ChatOpenAI
from langchain_core.messages import HumanMessage

from core.config import Settings
from core.logging import get_logger, log_execution_time, log_api_call

logger = get_logger(__name__)

PROVIDER = "openai"


class AIService:
    """Thin wrapper over the OpenAI chat model."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def create_model(self, model: Optional[str] = None) -> ChatOpenAI:
        """Build a chat model client for one request.

        Raises:
            ValueError: If no OpenAI API key is configured
        """
        if not self.settings.openai_api_key:
            raise ValueError("OpenAI API key not configured")

        return ChatOpenAI(
            model=model or self.settings.ai_model,
            api_key=self.settings.openai_api_key,
            timeout=self.settings.ai_timeout,
            max_retries=self.settings.ai_max_retries,
        )

    async def complete(self, prompt: str, model: Optional[str] = None) -> Optional[str]:
        """Send a single user message and return the reply text, or None if empty."""
        model_name = model or self.settings.ai_model
        chat_model = self.create_model(model_name)

        start_time = time.time()
        try:
            response = await chat_model.ainvoke([HumanMessage(content=prompt)])
        except Exception as e:
            log_api_call(logger, PROVIDER, model_name, "chat_completion", False, error=str(e))
            raise

        log_api_call(logger, PROVIDER, model_name, "chat_completion", True)
        log_execution_time(logger, "chat_completion", start_time, time.time(), model=model_name)

        content = response.content
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return content or None
