"""
配置管理 - 从环境变量加载配置
"""

from pydantic import Field
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """应用配置"""

    # 应用配置
    app_name: str = "HelioScribe"
    app_version: str = "0.1.0"
    debug: bool = True
    environment: str = "development"

    # 数据库配置 (sqlite | postgresql)
    database_type: str = "sqlite"
    sqlite_path: str = "./data/helioscribe.db"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "helioscribe"
    postgres_password: str = "helioscribe_dev_pass"
    postgres_db: str = "helioscribe"

    # Tokens
    secret_key: str = "dev-secret-change-in-production"
    session_token_expire_days: int = 7
    password_reset_token_expire_minutes: int = 10

    # One-time codes
    verification_code_expire_minutes: int = Field(15, alias="VERIFICATION_CODE_EXPIRE")
    reset_code_expire_minutes: int = 15

    # Password hashing
    bcrypt_rounds: int = 12

    # Fernet key for secrets at rest (MFA secrets)
    encryption_key: Optional[str] = None
    # Retired keys, comma separated, still accepted for decryption
    encryption_previous_keys: Optional[str] = None

    # Google OAuth
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_redirect_uri: Optional[str] = None
    google_redirect_uri_register: Optional[str] = None

    # URLs
    frontend_url: str = "http://localhost:3000"
    backend_url: str = "http://localhost:5000"
    cors_origins: List[str] = ["http://localhost:3000"]

    # reCAPTCHA
    recaptcha_enabled: bool = True
    recaptcha_secret_key: Optional[str] = None
    recaptcha_score_threshold: float = 0.5
    recaptcha_timeout_seconds: float = 5.0

    # SMTP
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_pass: Optional[str] = None
    email_from: str = "noreply@helioscribe.local"
    email_from_name: str = "HelioScribe"

    # Qdrant (per-website vector collections)
    qdrant_url: str = "http://localhost:6333"
    qdrant_api_key: Optional[str] = None
    qdrant_vector_size: int = 2560

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        populate_by_name = True
        extra = "ignore"

    @property
    def database_url(self) -> str:
        """异步数据库连接URL"""
        if self.database_type == "sqlite":
            return f"sqlite+aiosqlite:///{self.sqlite_path}"
        return f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"

    @property
    def google_login_redirect_uri(self) -> str:
        return self.google_redirect_uri or f"{self.backend_url}/api/auth/google/callback"

    @property
    def google_register_redirect_uri(self) -> str:
        return self.google_redirect_uri_register or f"{self.backend_url}/api/auth/google/callback/register"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


# 全局配置实例
settings = Settings()
