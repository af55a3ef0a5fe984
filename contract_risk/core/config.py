"""
Application configuration settings
"""

from pydantic_settings import BaseSettings
from typing import Optional, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""
    
    # Application
    APP_NAME: str = "Contract Risk Analyzer"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    
    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    
    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]
    
    # OpenAI Configuration
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_TIMEOUT: float = 60.0
    OPENAI_TRANSPORT_RETRIES: int = 1  # SDK-level retries for a single attempt
    DEFAULT_MODEL: str = "gpt-4o-mini"
    TEMPERATURE: float = 0.5
    
    # Extraction retry policy (extra attempts beyond the first)
    MAX_RETRIES: int = 2
    INITIAL_RETRY_DELAY: float = 1.0  # seconds
    BACKOFF_MULTIPLIER: float = 2.0
    MAX_RETRY_DELAY: float = 30.0  # seconds
    REQUEST_TIMEOUT: float = 120.0  # seconds, whole run including retries
    
    # Token counting fallback
    TOKENIZER_ENCODING: str = "o200k_base"
    
    # Pre-flight content guardrail
    GUARDRAIL_ENABLED: bool = True
    
    # How often the analyze endpoint checks for a dropped client
    DISCONNECT_POLL_INTERVAL: float = 0.5
    
    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
