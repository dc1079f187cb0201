from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Configurações básicas do projeto
    PROJECT_NAME: str = "ServiceBell"
    PROJECT_VERSION: str = "1.0.0"
    API_STR: str = "/api"
    ENVIRONMENT: str = "development"
    SUPPORT_EMAIL: str = "support@example.com"

    # Configurações de segurança
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24

    # Configurações de banco de dados
    DATABASE_URL: str = "sqlite+aiosqlite:///./servicebell.db"
    CREATE_TABLES_ON_STARTUP: bool = True

    # Sessões de mesa
    TABLE_SESSION_DURATION_SECONDS: int = 60 * 60
    SESSION_TOKEN_LENGTH: int = 26
    SESSION_TOKEN_ALPHABET: str = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    SESSION_REVALIDATE_SECONDS: float = 10.0

    # URL pública usada nos QR Codes das mesas (ex: https://bell.meurestaurante.com)
    PUBLIC_BASE_URL: Optional[str] = None

    # Espelhamento opcional dos eventos em tempo real no Redis
    REDIS_EVENTS_ENABLED: bool = False
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_EVENTS_CHANNEL: str = "servicebell:events"

    LOG_LEVEL: str = "INFO"

    # Configurações de CORS
    BACKEND_CORS_ORIGINS: List[str] = []

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignora variáveis extras não declaradas
    )

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


settings = Settings()
