"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first):

  1. Environment variables, e.g. ``OLLAMA_BASE_URL=http://gpu-box:11434``
  2. The ``.env`` file in the working directory
  3. The defaults declared below

Field ``chromadb_persist_dir`` maps to env var ``CHROMADB_PERSIST_DIR``.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """docingest application settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Model services (Ollama, OpenAI-compatible /v1 endpoint) ===
    ollama_base_url: str = "http://localhost:11434"
    ollama_chat_model: str = "gemma3"
    ollama_embedding_model: str = "nomic-embed-text"
    embedding_dimension: int = 768

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "semantic_docs"

    # === Keyword store ===
    keyword_db_path: str = "data/keyword_index.db"
    keyword_table: str = "semantic_docs"

    # === Cloud drives ===
    # Empty string = "not configured"; the resolver is still registered
    # but requests are sent without an Authorization header.
    google_drive_access_token: str = ""
    microsoft_graph_access_token: str = ""
    http_timeout_seconds: float = 60.0

    # === Ingestion ===
    max_chunk_size: int = 500
    chunk_overlap: int = 50
    ingestion_concurrency: int = 0  # 0 = unbounded
    progress_ttl_seconds: int = 7200

    # === Retrieval ===
    rag_temperature: float = 0.2
    rag_max_tokens: int = 2000

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
