"""Application configuration loaded from environment variables."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent.parent


def _bool_env(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    # SQLite DB URL
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'localbeet_inventory.db'}"
    )

    # API server
    API_HOST: str = os.getenv("API_HOST", "0.0.0.0")
    API_PORT: int = int(os.getenv("API_PORT", "8000"))

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_DIR: Path = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))

    # CORS
    CORS_ORIGINS: list[str] = [
        o.strip()
        for o in os.getenv(
            "CORS_ORIGINS", "http://localhost:5173,http://localhost:3000"
        ).split(",")
    ]

    # Raw bill snapshots land here
    DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))
    BILLS_SNAPSHOT_FILE: Path = Path(
        os.getenv("BILLS_SNAPSHOT_FILE", str(DATA_DIR / "zoho_bills_raw.json"))
    )

    # Zoho Inventory
    ZOHO_API_BASE_URL: str = os.getenv("ZOHO_API_BASE_URL", "https://www.zohoapis.com")
    ZOHO_ACCOUNTS_URL: str = os.getenv("ZOHO_ACCOUNTS_URL", "https://accounts.zoho.com")
    ZOHO_ORGANIZATION_ID: str = os.getenv("ZOHO_ORGANIZATION_ID", "")
    ZOHO_CLIENT_ID: str = os.getenv("ZOHO_CLIENT_ID", "")
    ZOHO_CLIENT_SECRET: str = os.getenv("ZOHO_CLIENT_SECRET", "")
    ZOHO_REFRESH_TOKEN: str = os.getenv("ZOHO_REFRESH_TOKEN", "")
    ZOHO_REDIRECT_URI: str = os.getenv("ZOHO_REDIRECT_URI", "")
    # Static token, skips the refresh-token grant when set
    ZOHO_ACCESS_TOKEN: str = os.getenv("ZOHO_ACCESS_TOKEN", "")
    ZOHO_AUTH_SCHEME: str = os.getenv("ZOHO_AUTH_SCHEME", "Zoho-oauthtoken")
    ZOHO_TIMEOUT_SECONDS: float = float(os.getenv("ZOHO_TIMEOUT_SECONDS", "30"))
    ZOHO_PAGE_SIZE: int = int(os.getenv("ZOHO_PAGE_SIZE", "200"))
    ZOHO_PAGE_DELAY_SECONDS: float = float(os.getenv("ZOHO_PAGE_DELAY_SECONDS", "0.2"))

    # Location → module table (JSON list of {"pattern", "module"}); built-in table if unset
    LOCATION_MAPPING_FILE: str = os.getenv("LOCATION_MAPPING_FILE", "")
    LOCATION_EXACT_ONLY: bool = _bool_env("LOCATION_EXACT_ONLY")

    # Defaults for stock items created from a bill
    STOCK_DEFAULT_MIN: float = float(os.getenv("STOCK_DEFAULT_MIN", "0"))
    STOCK_DEFAULT_MAX: float = float(os.getenv("STOCK_DEFAULT_MAX", "1000"))
    STOCK_DEFAULT_REORDER: float = float(os.getenv("STOCK_DEFAULT_REORDER", "10"))
    STOCK_DEFAULT_CATEGORY: str = os.getenv("STOCK_DEFAULT_CATEGORY", "General")
    STOCK_DEFAULT_UNIT: str = os.getenv("STOCK_DEFAULT_UNIT", "pcs")

    def __init__(self):
        # Ensure directories exist
        self.DATA_DIR.mkdir(parents=True, exist_ok=True)
        self.BILLS_SNAPSHOT_FILE.parent.mkdir(parents=True, exist_ok=True)


settings = Settings()
