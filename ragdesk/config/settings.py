"""Application settings loaded from environment variables via pydantic-settings.

Values are read, highest priority first, from:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-abc123``
  2. The ``.env`` file in the project root (local development)
  3. The defaults declared below

Field ``openai_api_key`` maps to ``OPENAI_API_KEY``; matching is
case-insensitive.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ragdesk application settings.

    Environment variables override defaults. Loaded from .env when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM / embedding providers ===
    # Empty string = "not configured"; provider selection in main.py skips
    # providers with empty keys and falls through to the next one.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_chat_model: str = "gpt-4"
    openai_embedding_model: str = "text-embedding-3-small"
    anthropic_api_key: str = ""
    anthropic_chat_model: str = "claude-sonnet-4-20250514"
    ollama_base_url: str = "http://localhost:11434"
    ollama_chat_model: str = "llama3.2"
    llm_provider: str = ""  # force "openai" / "anthropic" / "ollama"; empty = first configured

    # === Storage ===
    database_path: str = "data/ragdesk.db"
    document_dir: str = "data/documents"

    # === Indexing ===
    embedding_batch_size: int = 100
    chunk_max_size: int = 500
    indexing_replace_on_reindex: bool = True

    # === Hybrid search ===
    search_lexical_weight: float = 0.6
    search_vector_weight: float = 0.4
    search_similarity_threshold: float = 0.3
    search_fallback_score: float = 0.6
    search_default_limit: int = 10
    search_max_limit: int = 100

    # === Chat / answer synthesis ===
    chat_source_limit: int = 5
    chat_cache_ttl: int = 300
    chat_max_tokens: int = 1000
    chat_temperature: float = 0.7
    cost_per_token: float = 0.002 / 1000

    # === Caller identity (authentication lives upstream) ===
    default_user_id: str = "dev-user"
    default_organization_id: str = "dev-org"

    # === App config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"

    def get_available_llm_providers(self) -> list[str]:
        """Return the LLM provider names that are configured, in priority order."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
