from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # TuneHub music API; music routes answer 500 while the key is missing
    TUNEHUB_API_KEY: Optional[str] = None
    TUNEHUB_BASE_URL: str = "https://tunehub.sayqz.com/api"

    # Legacy QQ song lookup
    LOLIMI_BASE_URL: str = "https://api.lolimi.cn"

    # Outbound HTTP timeout in seconds, applied to every upstream call
    HTTP_TIMEOUT: float = 10.0

    # Search configuration
    MUSIC_PLATFORMS: list[str] = ["netease", "qq", "kuwo"]
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    CORS_ORIGINS: list = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    class Config:
        env_file = ".env"
        extra = "allow"


# Global settings instance
settings = Settings()
