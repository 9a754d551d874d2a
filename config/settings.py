import logging
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from the backend .env explicitly (works regardless of cwd)
load_dotenv(dotenv_path=Path(__file__).parent.parent / ".env")

TRIPAY_PRODUCTION_URL = "https://tripay.co.id/api"
TRIPAY_SANDBOX_URL = "https://tripay.co.id/api-sandbox"
DEFAULT_DOMAIN = "shiroine.my.id"

class Settings(BaseSettings):
    """Application settings"""

    # Base directory
    BASE_DIR: Path = Path(__file__).parent.parent

    # Tripay
    TRIPAY_API_KEY: str = ""
    TRIPAY_PRIVATE_KEY: str = ""
    TRIPAY_MERCHANT_CODE: str = ""
    TRIPAY_MODE: str = "sandbox"  # sandbox | production
    GATEWAY_TIMEOUT: float = 30.0  # seconds

    # Frontend / cookies
    FRONTEND_URL: str = ""
    DOMAIN: Optional[str] = None
    NODE_ENV: str = ""
    PORT: int = 3001

    # Transactions
    HISTORY_LIMIT: int = 50
    TRANSACTION_EXPIRY_HOURS: int = 24

    # Ledger database
    DATABASE_URL: str = "sqlite:///./payments.db"

    # Rate limiting
    REDIS_URL: str = "redis://localhost:6379"
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_WINDOW: int = 15 * 60  # seconds

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    @property
    def TRIPAY_API_URL(self) -> str:
        if self.TRIPAY_MODE == "production":
            return TRIPAY_PRODUCTION_URL
        return TRIPAY_SANDBOX_URL

    @property
    def IS_PRODUCTION(self) -> bool:
        return self.NODE_ENV == "production"

    @property
    def EFFECTIVE_DOMAIN(self) -> str:
        """Domain used for customer email and default return URL"""
        return self.DOMAIN or DEFAULT_DOMAIN

    @property
    def COOKIE_DOMAIN(self) -> Optional[str]:
        """Apex cookie domain, shared across subdomains in production only"""
        if self.DOMAIN and self.IS_PRODUCTION:
            return f".{self.DOMAIN}"
        return None

    @property
    def CORS_ORIGINS(self) -> List[str]:
        """Allowed origins; FRONTEND_URL is cut down to scheme://host[:port]"""
        if self.FRONTEND_URL:
            url = urlsplit(self.FRONTEND_URL.strip())
            if url.scheme and url.netloc:
                return [f"{url.scheme}://{url.netloc}"]
            return [self.FRONTEND_URL.strip().rstrip("/")]
        return ["http://localhost:3000", "http://127.0.0.1:3000"]

    @property
    def gateway_configured(self) -> bool:
        return bool(self.TRIPAY_API_KEY and self.TRIPAY_PRIVATE_KEY and self.TRIPAY_MERCHANT_CODE)

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


def setup_logging(settings: Settings) -> None:
    """Configure root logging once for the process"""
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if settings.LOG_DIR:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(exist_ok=True)
        handlers.append(logging.FileHandler(log_dir / "app.log"))

    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
    )
