# config.py
"""
Configuration for the wardrobe recommendation core.
All sensitive values should be set via environment variables.
"""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# ============================================================================
# Helper Functions
# ============================================================================
def is_valid_api_key(key: str, min_length: int = 20) -> bool:
    """
    Check if API key looks valid (not a placeholder).

    Args:
        key: The API key to validate
        min_length: Minimum length for a valid key

    Returns:
        True if key appears valid, False if it's a placeholder or invalid
    """
    if not key or len(key) < min_length:
        return False
    # Check for common placeholder patterns
    invalid_patterns = ['your_', 'example', 'placeholder', 'xxx', 'fake', 'test_key']
    return not any(pattern in key.lower() for pattern in invalid_patterns)

# ============================================================================
# Reasoning Model Configuration
# ============================================================================
# Anthropic/Claude is the only provider with live web search + page fetch tools
ANTHROPIC_API_KEY = os.environ.get("ANTHROPIC_API_KEY", "")
ANTHROPIC_BASE_URL = os.environ.get("ANTHROPIC_BASE_URL", "https://api.anthropic.com")
ANTHROPIC_MODEL = os.environ.get("ANTHROPIC_MODEL", "claude-sonnet-4-5")

OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
OPENAI_REASONING_MODEL = os.environ.get("OPENAI_REASONING_MODEL", "gpt-4o")

# Provider for tool-less calls (suggestions, reflections): "anthropic" or "openai"
SUGGESTION_MODEL_PROVIDER = os.environ.get("SUGGESTION_MODEL_PROVIDER", "anthropic").lower()

# Transport-level latency bound (seconds); the core itself enforces no timeout
LLM_REQUEST_TIMEOUT = float(os.environ.get("LLM_REQUEST_TIMEOUT", "180"))
LLM_CONNECT_TIMEOUT = float(os.environ.get("LLM_CONNECT_TIMEOUT", "10"))

# Server tool budgets per request
WEB_SEARCH_MAX_USES = int(os.environ.get("WEB_SEARCH_MAX_USES", "8"))
WEB_FETCH_MAX_USES = int(os.environ.get("WEB_FETCH_MAX_USES", "15"))

# Per call-site sampling and token budgets
SUGGESTION_TEMPERATURE = float(os.environ.get("SUGGESTION_TEMPERATURE", "0.7"))
SUGGESTION_MAX_TOKENS = int(os.environ.get("SUGGESTION_MAX_TOKENS", "4000"))
SEARCH_TEMPERATURE = float(os.environ.get("SEARCH_TEMPERATURE", "0.1"))
SEARCH_MAX_TOKENS = int(os.environ.get("SEARCH_MAX_TOKENS", "16000"))
VERIFICATION_TEMPERATURE = float(os.environ.get("VERIFICATION_TEMPERATURE", "0"))
VERIFICATION_MAX_TOKENS = int(os.environ.get("VERIFICATION_MAX_TOKENS", "16000"))
REFLECTION_MAX_TOKENS = int(os.environ.get("REFLECTION_MAX_TOKENS", "1500"))

# ============================================================================
# Link Verification Configuration
# ============================================================================
# Batched page-fetch verification of search results (fails open)
ENABLE_LINK_VERIFICATION = os.environ.get("ENABLE_LINK_VERIFICATION", "true").lower() == "true"

# ============================================================================
# Infrastructure Configuration
# ============================================================================
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")
STORAGE_BACKEND = os.environ.get("STORAGE_BACKEND", "redis").lower()  # redis/memory
STORAGE_KEY_PREFIX = os.environ.get("STORAGE_KEY_PREFIX", "wardrobe")

# ============================================================================
# Business Logic Configuration
# ============================================================================
DEFAULT_CURRENCY = os.environ.get("DEFAULT_CURRENCY", "USD")

# Memory bank (user query history feeding the suggestion prompt)
MEMORY_MAX_STORED_QUERIES = int(os.environ.get("MEMORY_MAX_STORED_QUERIES", "50"))
MEMORY_REFLECTION_INTERVAL = int(os.environ.get("MEMORY_REFLECTION_INTERVAL", "5"))
