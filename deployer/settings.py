import os
from pydantic_settings import BaseSettings

ENV_PATH = os.path.join(os.path.dirname(__file__), ".env")

class Settings(BaseSettings):
    EXPECTED_SECRET: str = "change-me"
    GITHUB_USERNAME: str = ""
    GITHUB_TOKEN: str = ""
    GITHUB_API_BASE: str = "https://api.github.com"
    DEFAULT_BRANCH: str = "main"
    PAGES_BUILD_PATH: str = "/"
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: str = ""
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_TIMEOUT_SECONDS: float = 120.0
    # GitHub Pages needs a few seconds before the site stops returning 404
    NOTIFY_DELAY_SECONDS: float = 15.0
    HTTP_TIMEOUT_SECONDS: float = 20.0
    ADOPT_EXISTING_REPO: bool = False
    MAX_WORKERS: int = 4
    # how many (task, round, nonce) keys the notifier remembers for de-duplication
    NOTIFY_DEDUP_SIZE: int = 1024
    LOG_FILE_PATH: str = "/tmp/deployer.log"

    class Config:
        env_file = ENV_PATH  # <- always read deployer/.env

settings = Settings()
