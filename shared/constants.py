OPENROUTER_CHAT_URL = "https://openrouter.ai/api/v1/chat/completions"

DEFAULT_MODEL = "openai/gpt-4.1-nano"
DEFAULT_TEMPERATURE = 0.6
CONCISE_MAX_TOKENS = 220
DEFAULT_MAX_TOKENS = 500

CHAT_CONTEXT_LIMIT = 20
CHAT_TIMEOUT_SECONDS = 45
STREAM_TIMEOUT_SECONDS = 60

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
PERSONA_SYSTEM_PROMPT = "You are {persona}. Keep responses grounded and directly useful."
