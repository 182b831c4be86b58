"""Environment-driven settings loaded via pydantic-settings.

Values come from (highest priority first) environment variables, then a
``.env`` file in the working directory, then the defaults below.  Field
``openai_api_key`` maps to ``OPENAI_API_KEY``, ``embedding_batch_size`` to
``EMBEDDING_BATCH_SIZE`` and so on.

Settings are process-level input only.  Each store receives its own
:class:`~embedstore.models.config.StoreConfig` built from them (see
:func:`embedstore.config.loader.load_config`), so changing one store's
batch size never affects another.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict

from embedstore.models.config import (
    DEFAULT_BATCH_DELAY_MS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_EMBEDDING_MODEL,
)


class Settings(BaseSettings):
    """embedstore settings.  Environment variables override defaults."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Embedding providers ===
    # Empty string = "not configured"; build_embedding_provider() skips it.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible host (TogetherAI, Azure proxy, ...)
    openai_embedding_model: str = DEFAULT_EMBEDDING_MODEL
    ollama_base_url: str = "http://localhost:11434"

    # === Batch embedding ===
    embedding_batch_size: int = DEFAULT_BATCH_SIZE
    embedding_batch_delay_ms: int = DEFAULT_BATCH_DELAY_MS
    embedding_timeout_s: float = 30.0
    embedding_max_retries: int = 2
    embedding_retry_backoff_s: float = 1.0

    # === Store ===
    # 0 = infer the dimension from the first stored document.
    expected_dimension: int = 0

    # === App ===
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding provider names that have enough configuration to try."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("ollama")
        return providers
