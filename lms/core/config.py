from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str

    # Only used for postgres URLs. Managed poolers usually need ssl on.
    DB_SSL: bool = False

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    BCRYPT_ROUNDS: int = 12

    SUPER_ADMIN_EMAIL: str | None = None
    SUPER_ADMIN_PASSWORD: str | None = None
    SUPER_ADMIN_NAME: str | None = "Super Admin"
    ENV: str = "dev"  # "dev" or "prod"
    TESTING: bool = False

    # --- EMAIL SETTINGS ---
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 2525  # Default to Mailtrap port
    SMTP_USER: str | None = None
    SMTP_PASSWORD: str | None = None
    EMAILS_FROM_EMAIL: str = "no-reply@campus-lms.edu"
    EMAILS_FROM_NAME: str = "Campus LMS"
    FRONTEND_URL: str = "http://localhost:3000"

    # --- REDIS (rate limiting + analytics cache) ---
    REDIS_URL: str | None = None
    ANALYTICS_CACHE_TTL: int = 300
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: str = "10/minute"

    # Progress rules
    VIDEO_COMPLETION_RATIO: float = 0.9

    # Unit quizzes and certificates
    QUIZ_PASS_PERCENTAGE: int = 70
    QUIZ_TIME_LIMIT_MINUTES: int = 30
    CERTIFICATE_PREFIX: str = "CLMS"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
