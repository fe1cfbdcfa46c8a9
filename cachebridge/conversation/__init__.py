"""
Conversation module - LLM prompting with cached history.

Provides:
- Turn: immutable conversation message
- AzureOpenAIInference: Azure OpenAI chat completion client
- ConversationOrchestrator: history fetch, inference, history append
"""

from cachebridge.conversation.models import Turn
from cachebridge.conversation.inference import (
    AzureOpenAIInference,
    InferenceConfig,
    InferenceResponse,
    InferenceService,
)
from cachebridge.conversation.orchestrator import ConversationOrchestrator

__all__ = [
    "Turn",
    "AzureOpenAIInference",
    "InferenceConfig",
    "InferenceResponse",
    "InferenceService",
    "ConversationOrchestrator",
]
