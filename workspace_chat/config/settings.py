from typing import Literal
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    FRONTEND_ORIGIN: str = "*"
    ENV: str = "development"
    ENV_PORT: int = 10000

    AI_ENDPOINT: str = "http://your-company-ai-endpoint/api"
    AI_API_KEY: str = ""
    AI_MODEL: str = "default"
    AI_REQUEST_PROFILE: Literal["simple", "chat"] = "simple"
    AI_TIMEOUT_SECONDS: float = 60.0

    HOST_API_URL: str = "http://localhost:4848/api"
    HOST_API_KEY: str = ""
    SOURCE_FETCH_TIMEOUT_SECONDS: float = 15.0
    HYPERCUBE_PAGE_WIDTH: int = 10
    HYPERCUBE_PAGE_HEIGHT: int = 100

    DEFAULT_VOICE: str = "en-US"
    CALL_BACKEND_WITHOUT_CONTEXT: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

settings = Settings()
