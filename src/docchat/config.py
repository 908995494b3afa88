"""Shared configuration loaded from environment / .env file."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, populated from env vars or .env file."""

    # LLM
    openai_api_key: str = Field(default="", description="API key for the OpenAI-compatible chat endpoint")
    llm_model_name: str = Field(default="llama-3.1-8b-instant", description="Chat model identifier")
    llm_base_url: str = Field(
        default="",
        description=(
            "Base URL for the chat completion API. Leave empty to use OpenAI cloud. "
            "Any OpenAI-compatible endpoint works, e.g. 'https://api.groq.com/openai/v1' "
            "or a vLLM server."
        ),
    )
    llm_temperature: float = 0.0
    llm_timeout_seconds: float = Field(default=60.0, gt=0)
    llm_max_retries: int = Field(default=2, ge=0)

    # Embedding
    embedding_model: str = "sentence-transformers/all-MiniLM-L6-v2"
    embedding_batch_size: int = Field(default=64, gt=0)
    fallback_embedding_dim: int = Field(default=384, gt=0)
    allow_embedding_fallback: bool = True
    embedding_retry_cooldown_seconds: float = Field(
        default=60.0, ge=0, description="Wait before retrying a failed embedding provider start"
    )

    # Document store
    store_backend: str = Field(default="chroma", description="'chroma' or 'memory'")
    chroma_host: str = "localhost"
    chroma_port: int = 8000
    chroma_collection: str = "docchat"

    # Chunking
    chunk_size: int = 1000
    chunk_overlap: int = 200

    # Search
    search_match_count: int = Field(default=10, gt=0)
    search_match_threshold: float = 0.0
    search_result_limit: int = Field(default=3, gt=0)

    # Orchestrator
    short_circuit_empty_retrieval: bool = True

    # Files
    upload_dir: str = "uploads"

    # Serving
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton — import `settings` wherever needed.
settings = Settings()
