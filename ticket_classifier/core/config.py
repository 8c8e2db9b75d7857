from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "AI Ticket Classifier API"
    ENVIRONMENT: str = "local"
    DATABASE_URL: str = "sqlite:///./ticket_classifier.db"
    LOG_LEVEL: str = "INFO"

    # Replay protection
    NONCE_TTL_SECONDS: int = 3600
    HMAC_SECRET: str = "change-me"
    HMAC_MAX_AGE_SECONDS: int = 300
    BYPASS_SECURITY: bool = False

    # CSV uploads
    CSV_MAX_ROWS: int = 50

    class Config:
        env_file = ".env"

settings = Settings()
