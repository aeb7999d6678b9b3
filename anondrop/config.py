from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "anondrop"
    app_env: str = "dev"
    log_level: str = "INFO"

    # cloudflare | memory
    metadata_backend: str = "cloudflare"
    cloudflare_account_id: str = ""
    cloudflare_api_token: str = ""
    cloudflare_kv_namespace_id: str = ""
    cloudflare_api_base: str = "https://api.cloudflare.com/client/v4"

    r2_bucket_name: str = ""
    r2_endpoint_url: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: str = ""
    r2_region: str = "auto"

    signed_url_ttl_seconds: int = 3600
    object_ttl_seconds: int = 3600
    adapter_timeout_seconds: float = 10.0
    s3_max_attempts: int = 3
    sweep_interval_seconds: float = 0

    model_config = SettingsConfigDict(env_file=".env", env_prefix="ANONDROP_")


@lru_cache
def get_settings() -> Settings:
    return Settings()
