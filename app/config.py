"""Application configuration settings."""

from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "postgresql://localhost:5432/helmetpulse"

    # Redis
    redis_url: str = "redis://localhost:6379/0"

    # Outbound scraping
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )
    http_timeout_seconds: float = 30.0

    # Shop RSA (Shopify)
    rsa_base_url: str = "https://www.shoprsa.com"
    rsa_max_pages: int = 20
    rsa_page_delay_seconds: float = 0.5
    rsa_collection_delay_seconds: float = 1.0

    # Radtke Sports (WooCommerce, browser rendered)
    radtke_base_url: str = "https://www.radtkesports.com"
    radtke_max_pages: int = 100
    radtke_settle_seconds: float = 1.5
    radtke_page_delay_seconds: float = 1.0

    # Fanatics via hosted crawler
    firecrawl_api_key: str = ""
    firecrawl_base_url: str = "https://api.firecrawl.dev"
    fanatics_search_url: str = "https://www.fanatics.com/search/NFL%20autographed%20helmet"
    fanatics_max_pages: int = 5
    fanatics_page_delay_seconds: float = 1.0

    # eBay sold listings (monthly re-price)
    ebay_search_url: str = "https://www.ebay.com/sch/i.html"
    ebay_min_price: float = 50.0
    ebay_max_price: float = 15000.0
    ebay_helmet_delay_seconds: float = 2.0

    # Reconciler: fall back to (player, team, type) then (player, team)
    reconcile_relaxed_matching: bool = True

    # Spreadsheet drop folder and scrape caches
    imports_dir: str = "imports"
    cache_dir: str = "cache"
    watch_poll_seconds: float = 5.0

    # Weekly email notifier
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    from_email: str = "alerts@cardpulse.app"
    from_name: str = "CardPulse"
    api_url: str = "http://localhost:3000"
    subscribers_file: str = "./subscribers.json"
    notifier_request_delay_seconds: float = 2.0
    notifier_timezone: str = "America/New_York"

    # Environment
    environment: str = "development"

    # Task scheduling
    scheduler_enabled: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
