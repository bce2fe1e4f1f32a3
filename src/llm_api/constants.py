"""Project-wide defaults for llm-api requests."""  # noqa: D415

# ==============================================================================
# Request Defaults
# ==============================================================================

DEFAULT_RETRIES = 3
DEFAULT_RETRY_INTERVAL_S = 30.0  # First backoff sleep; doubles on every retry
DEFAULT_TIMEOUT_S = 300.0

# ==============================================================================
# Token Budgets
# ==============================================================================

MINIMUM_RESPONSE_TOKENS = 200
MAXIMUM_RESPONSE_TOKENS = 8_000

# Prompt budget used when a model config carries no context size.
DEFAULT_MAX_PROMPT_TOKENS = 100_000

# ==============================================================================
# Provider Defaults
# ==============================================================================

DEFAULT_OPENAI_MODEL = "gpt-3.5-turbo"
DEFAULT_ANTHROPIC_MODEL = "claude-instant-1-100k"
DEFAULT_BEDROCK_MODEL = "anthropic.claude-v2"
DEFAULT_GROQ_MODEL = "mixtral-8x7b-32768"

DEFAULT_AZURE_API_VERSION = "2023-06-01-preview"
DEFAULT_BEDROCK_REGION = "us-east-1"
BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"
