import os
import logging
from pathlib import Path
from typing import List, Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

current_file_path = Path(__file__).resolve()
root_dir = current_file_path.parent.parent
env_path = root_dir / ".env"

if env_path.exists():
    load_dotenv(dotenv_path=env_path)
else:
    load_dotenv()  # Fall back to process environment

class TaskHubConfig:
    def __init__(
        self,
        database_url: Optional[str] = None,
        secret_key: Optional[str] = None,
        default_page_size: Optional[int] = None,
        max_page_size: Optional[int] = None,
    ) -> None:
        self.DATABASE_URL = database_url or os.getenv("DATABASE_URL", "sqlite:///./taskhub.db")
        self.SECRET_KEY = secret_key or os.getenv("SECRET_KEY")
        self.ALGORITHM = os.getenv("ALGORITHM", "HS256")
        self.ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))
        self.DEFAULT_PAGE_SIZE = default_page_size or int(os.getenv("DEFAULT_PAGE_SIZE", 20))
        self.MAX_PAGE_SIZE = max_page_size or int(os.getenv("MAX_PAGE_SIZE", 100))
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.CORS_ORIGINS: List[str] = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
            if origin.strip()
        ]

        if self.DEFAULT_PAGE_SIZE > self.MAX_PAGE_SIZE:
            raise ValueError(
                f"DEFAULT_PAGE_SIZE ({self.DEFAULT_PAGE_SIZE}) exceeds MAX_PAGE_SIZE ({self.MAX_PAGE_SIZE})"
            )
        if not self.SECRET_KEY:
            logger.warning("SECRET_KEY is not set; bearer tokens will be rejected")

config = TaskHubConfig()
