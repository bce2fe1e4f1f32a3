"""Provider implementations."""

from .anthropic import AnthropicChatApi
from .anthropic_bedrock import AnthropicBedrockChatApi
from .base import ChatApi
from .groq import GroqChatApi
from .mock import MockChatApi
from .openai import OpenAIChatApi
from .openai_legacy import OpenAILegacyChatApi

__all__ = [
    "AnthropicBedrockChatApi",
    "AnthropicChatApi",
    "ChatApi",
    "GroqChatApi",
    "MockChatApi",
    "OpenAIChatApi",
    "OpenAILegacyChatApi",
]
