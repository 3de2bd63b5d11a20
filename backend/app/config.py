from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Amadeus
    amadeus_client_id: str = ""
    amadeus_client_secret: str = ""
    amadeus_base_url: str = "https://test.api.amadeus.com"
    amadeus_currency: str = "USD"
    amadeus_max_results: int = 10
    amadeus_timeout_seconds: float = 30.0

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    search_cache_enabled: bool = True
    search_cache_ttl: int = 15 * 60  # 15 minutes

    # Filters
    fallback_max_price: int = 10000

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""

    # CORS
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",")]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
