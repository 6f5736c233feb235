from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv(".env.local")

class Settings(BaseSettings):
    DATABASE_URL: str
    DB_POOL_MIN_SIZE: int = 1
    DB_POOL_MAX_SIZE: int = 10
    # 0 = wait for a concurrent update on the same invoice indefinitely
    LOCK_TIMEOUT_MS: int = 0
    LOG_LEVEL: str = "INFO"

settings = Settings()
