"""llm-api: one chat completion interface over several LLM providers.

Public API:
    - OpenAIChatApi, OpenAILegacyChatApi: OpenAI and Azure OpenAI
    - AnthropicChatApi, AnthropicBedrockChatApi: Anthropic, native or on Bedrock
    - GroqChatApi: Groq
    - ModelConfig, RequestOptions: model and per-call settings
    - Message, ChatResponse: conversation turns and results
"""

from __future__ import annotations

import logging

from llm_api.config import (
    AnthropicConfig,
    BedrockConfig,
    GroqConfig,
    ModelConfig,
    OpenAIConfig,
    RequestOptions,
)
from llm_api.errors import (
    APIError,
    AuthorizationError,
    ConfigurationError,
    LLMApiError,
    MalformedResponseError,
    ParseError,
    ProtocolError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    TokenError,
)
from llm_api.events import EventSink, StreamChannel
from llm_api.parsing import parse_lenient_json
from llm_api.providers import (
    AnthropicBedrockChatApi,
    AnthropicChatApi,
    ChatApi,
    GroqChatApi,
    MockChatApi,
    OpenAIChatApi,
    OpenAILegacyChatApi,
)
from llm_api.tokens import count_tokens
from llm_api.types import (
    ChatResponse,
    FunctionCall,
    Message,
    ModelFunction,
    ToolCall,
    Usage,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("llm-api")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("llm_api").addHandler(logging.NullHandler())

__all__ = [
    "APIError",
    "AnthropicBedrockChatApi",
    "AnthropicChatApi",
    "AnthropicConfig",
    "AuthorizationError",
    "BedrockConfig",
    "ChatApi",
    "ChatResponse",
    "ConfigurationError",
    "EventSink",
    "FunctionCall",
    "GroqChatApi",
    "GroqConfig",
    "LLMApiError",
    "MalformedResponseError",
    "Message",
    "MockChatApi",
    "ModelConfig",
    "ModelFunction",
    "OpenAIChatApi",
    "OpenAIConfig",
    "OpenAILegacyChatApi",
    "ParseError",
    "ProtocolError",
    "RateLimitError",
    "RequestOptions",
    "RequestTimeoutError",
    "ServerError",
    "StreamChannel",
    "TokenError",
    "ToolCall",
    "Usage",
    "count_tokens",
    "parse_lenient_json",
]
