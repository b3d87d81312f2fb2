"""
Configuration settings for Financial Report RAG system
"""

from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings using Pydantic BaseSettings for validation
    """

    model_config = SettingsConfigDict(env_file=".env",
                                      case_sensitive=False,
                                      extra="ignore")

    # LLM Configuration
    default_llm_provider: str = Field("groq")
    llm_temperature: float = Field(0.1)
    llm_max_tokens: int = Field(4000)

    openai_api_key: Optional[str] = Field(None)
    openai_base_url: Optional[str] = Field(None)
    openai_model: str = Field("gpt-4o-mini")

    groq_api_key: Optional[str] = Field(None)
    groq_base_url: str = Field("https://api.groq.com/openai/v1")
    groq_model: str = Field("llama-3.3-70b-versatile")

    anthropic_api_key: Optional[str] = Field(None)
    anthropic_model: str = Field("claude-3-5-haiku-latest")

    gemini_api_key: Optional[str] = Field(None)
    gemini_base_url: str = Field(
        "https://generativelanguage.googleapis.com/v1beta")
    gemini_model: str = Field("gemini-2.0-flash")

    # Ollama Configuration
    enable_ollama: bool = Field(False)
    ollama_base_url: str = Field("http://localhost:11434")
    ollama_model: str = Field("gemma3:27b")

    # Embedding Configuration
    embedding_provider: str = Field("local")  # "local" or "gemini"
    embedding_model: str = Field("all-MiniLM-L6-v2")
    gemini_embedding_model: str = Field("gemini-embedding-001")
    embedding_dimension: int = Field(3072)
    embedding_request_delay: float = Field(0.6)  # seconds between calls
    embedding_max_text_length: int = Field(8000)

    # Vector Database (ChromaDB)
    chroma_persist_directory: str = Field("./chroma_db")

    # Financial data (Financial Modeling Prep)
    fmp_api_key: Optional[str] = Field(None)
    fmp_base_url: str = Field("https://financialmodelingprep.com/stable")

    # Data Storage
    data_directory: str = Field("./data")

    # SEC EDGAR Settings
    edgar_user_agent: str = Field("Financial Report RAG Research Tool")
    edgar_email: str = Field("research@example.com")
    edgar_listing_timeout: float = Field(20.0)
    edgar_download_timeout: float = Field(30.0)
    edgar_retry_delay: float = Field(2.0)
    edgar_max_chars: int = Field(500000)

    # Processing Settings
    max_workers: int = Field(4)
    chunk_size: int = Field(3000)
    chunk_overlap: int = Field(300)
    max_chunks: int = Field(30)

    # Retrieval Settings
    search_top_k: int = Field(5)
    similarity_threshold: float = Field(0.4)

    # Timeouts and retries
    evidence_timeout: float = Field(90.0)
    generation_timeout: float = Field(120.0)
    llm_max_retries: int = Field(3)
    llm_retry_base_delay: float = Field(2.0)

    @property
    def edgar_headers(self) -> dict:
        """HTTP headers identifying this client to SEC EDGAR"""
        return {
            "User-Agent": f"{self.edgar_user_agent} ({self.edgar_email})",
            "Accept-Encoding": "gzip, deflate",
        }


def get_settings() -> Settings:
    """Get application settings"""
    return Settings()


# Global settings instance
settings = get_settings()


# Ensure required directories exist
def setup_directories(config: Settings = None):
    """Create necessary directories if they don't exist"""
    config = config or settings
    Path(config.data_directory).mkdir(parents=True, exist_ok=True)
    Path(config.chroma_persist_directory).mkdir(parents=True, exist_ok=True)
