"""Application configuration management."""

from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Site-builder knowledge engine settings loaded from environment variables."""

    # LLM
    anthropic_api_key: str = ""
    sitekb_llm_provider: str = "anthropic"
    sitekb_llm_model: str = "claude-sonnet-4-5-20250929"

    # Storage
    sitekb_data_path: str = "./data"
    sitekb_persist: bool = True

    # Ingestion
    sitekb_chunk_size: int = 500

    # Scoring
    sitekb_min_confidence: float = 0.25
    sitekb_keyword_match_score: float = 0.9
    sitekb_name_match_score: float = 0.85
    sitekb_chat_context_min_score: float = 0.5

    # Vector search
    sitekb_vector_enabled: bool = False
    sitekb_embedding_model: str = "all-MiniLM-L6-v2"
    sitekb_embedding_delay_seconds: float = 0.05

    # Verification
    sitekb_otp_ttl_seconds: int = 300
    sitekb_otp_max_attempts: int = 3
    sitekb_totp_max_attempts: int = 3
    sitekb_max_code_reissues: int = 2
    sitekb_session_ttl_seconds: int = 1800
    sitekb_totp_issuer: str = "SiteBuilder"

    @property
    def data_path(self) -> Path:
        return Path(self.sitekb_data_path)

    @property
    def tables_path(self) -> Path:
        return self.data_path / "tables"

    @property
    def embeddings_cache_path(self) -> Path:
        return self.data_path / "embeddings.json"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


def get_settings() -> Settings:
    """Get application settings."""
    return Settings()
