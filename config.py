from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    db_path: str = "data/bookings.db"
    max_concurrent_extractions: int = 3
    max_links_per_batch: int = 50
    fetch_attempts: int = 2
    fetch_timeout_ms: int = 12000
    fetch_retry_timeout_ms: int = 18000
    min_page_text_chars: int = 3000
    headless: bool = True
    page_load_wait_ms: int = 3000
    scan_timeout_ms: int = 30000
    firecrawl_api_key: str = ""
    firecrawl_wait_ms: int = 5000
    anthropic_api_key: str = ""
    llm_model: str = "claude-haiku-4-5-20251001"
    llm_max_tokens: int = 4096
    llm_html_chars: int = 15000
    cors_origins: list[str] = ["*"]

    model_config = {"env_prefix": "BOOKINGS_", "env_file": ".env"}


settings = Settings()
