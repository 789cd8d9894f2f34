from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()


class Settings(BaseSettings):
    PROJECT_NAME: str = "School Records Backend"
    API_V1_STR: str = "/api/v1"
    DATABASE_URL: str
    ENVIRONMENT: str = "development"
    LOG_DIR: str = "logs"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    # 0 отключает ограничение по времени
    TRANSCRIPT_WORKER_TIMEOUT: float = 300
    TRANSCRIPT_LOG_DIR: str = "logs/transcript_result"

    class Config:
        case_sensitive = True


settings = Settings()
