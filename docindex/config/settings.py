"""Application settings loaded from environment variables via pydantic-settings.

Values are read from, in priority order:

  1. Environment variables, e.g. ``OPENAI_API_KEY=sk-...``
  2. The ``.env`` file in the project root (local development)
  3. The defaults below

Field ``metadata_db_path`` maps to env var ``METADATA_DB_PATH`` and so on;
pydantic-settings uppercases and matches automatically.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docindex application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Embedding Providers ===
    # Empty key = "not configured"; main.py falls through to Ollama/Nomic.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_embedding_model: str = ""
    ollama_base_url: str = "http://localhost:11434"
    embedding_dimension: int = 1536

    # === Blob Store ===
    blob_root_dir: str = "./data/blobs"
    blob_public_base_url: str = ""

    # === Metadata Store ===
    metadata_db_path: str = "data/documents.db"

    # === Search Index ===
    chromadb_persist_dir: str = "./data/chromadb"
    search_index_name: str = "documents"
    chat_index_name: str = "chat_documents"
    search_default_top: int = 10

    # === Chunking (chat ingestion) ===
    chunk_size: int = 2300
    chunk_overlap_ratio: float = 0.25

    # === Upload Limits (bytes) ===
    document_max_bytes: int = 500 * 1024 * 1024
    chat_max_bytes: int = 20_000_000

    # === Stale record sweep (seconds; 0 disables) ===
    stale_sweep_interval: int = 0
    stale_after_seconds: int = 3600

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding provider names that have their connection settings configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.ollama_base_url:
            providers.append("nomic")
        return providers
