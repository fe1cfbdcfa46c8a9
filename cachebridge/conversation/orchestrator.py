"""
Conversation orchestrator.

Prompts a model with optional history kept in the cache:
- chat_id not provided -> one-shot query, cache never touched
- chat_id provided, history found -> history + new message sent to the model
- chat_id provided, nothing cached (or cache down) -> treated as a new chat
After the reply, the user and assistant turns are appended to the history.
"""

from typing import List, Optional

import structlog

from cachebridge.conversation.inference import (
    DEFAULT_MAX_OUTPUT_TOKENS,
    InferenceService,
)
from cachebridge.conversation.models import Turn
from cachebridge.memory.cache import CacheService
from cachebridge.memory.results import CacheError, CacheHit, CacheMiss

logger = structlog.get_logger(__name__)


class ConversationOrchestrator:
    """Runs one conversational exchange against the inference service."""

    def __init__(
        self,
        cache: CacheService,
        inference: InferenceService,
        cache_name: str,
        model_id: str,
        max_output_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        history_ttl: Optional[int] = None,
    ):
        self._cache = cache
        self._inference = inference
        self.cache_name = cache_name
        self.model_id = model_id
        self.max_output_tokens = max_output_tokens
        self.history_ttl = history_ttl

    async def converse(
        self,
        message: str,
        chat_id: Optional[str] = None,
        system_message: Optional[str] = None,
    ) -> str:
        """
        Send a message and return the model's text reply.

        History reads and writes are best-effort: a cache failure on either
        side is logged and never fails the call. Inference failures propagate.

        Args:
            message: The message to send (required)
            chat_id: Conversation key; history is kept only when provided
            system_message: Instructions that position the model

        Returns:
            Text of the first content block of the reply

        Raises:
            ValueError: message is empty
            InferenceError: The model call failed
        """
        if not message:
            raise ValueError("message is required")

        turns = await self._load_history(chat_id) if chat_id else []

        user_turn = Turn.user(message)
        turns.append(user_turn)

        response = await self._inference.invoke(
            turns,
            system_message=system_message,
            model_id=self.model_id,
            max_output_tokens=self.max_output_tokens,
        )
        assistant_turn = Turn.assistant(response.content_blocks)

        if chat_id:
            await self._save_turns(chat_id, user_turn, assistant_turn)

        return assistant_turn.text

    async def _load_history(self, chat_id: str) -> List[Turn]:
        """Fetch stored turns; any failure yields an empty history."""
        result = await self._cache.get_list(self.cache_name, chat_id)
        if isinstance(result, CacheHit):
            try:
                turns = [Turn.from_json(record) for record in result.value_list_string()]
            except (ValueError, KeyError) as e:
                logger.error("Unreadable conversation history", chat_id=chat_id, error=str(e))
                return []
            logger.debug("Loaded conversation history", chat_id=chat_id, turns=len(turns))
            return turns
        elif isinstance(result, CacheError):
            logger.error("Failed to load conversation history", chat_id=chat_id, error=str(result))
        elif isinstance(result, CacheMiss):
            logger.debug("No conversation history", chat_id=chat_id)
        return []

    async def _save_turns(self, chat_id: str, user_turn: Turn, assistant_turn: Turn) -> None:
        records = [user_turn.to_json(), assistant_turn.to_json()]
        result = await self._cache.append_list(
            self.cache_name, chat_id, records, ttl=self.history_ttl
        )
        if isinstance(result, CacheError):
            logger.error("Failed to save conversation history", chat_id=chat_id, error=str(result))
