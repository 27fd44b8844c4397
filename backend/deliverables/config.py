from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Deliverables API"
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    cors_origins: str = "http://localhost:3000"
    cors_allow_credentials: bool = True
    log_level: str = "INFO"
    request_id_header: str = "X-Request-ID"

    aws_region: str = "us-east-1"
    # Region-agnostic foundation model ID. Some accounts need an inference profile ID instead.
    bedrock_model_id: str = "amazon.nova-pro-v1:0"
    agent_temperature: float = 0.2
    agent_max_tokens: int = 2048
    text_producer: str = "template"  # template|bedrock

    storage_backend: str = "local"  # local|s3
    storage_root: str = "data/artifacts"
    s3_bucket: str = "deliverables-dev"
    s3_prefix: str = "deliverables"
    signed_url_ttl_seconds: int = 300

    composition_concurrency: int = 1
    validate_artifacts_inline: bool = True
    max_context_files: int = 10
    max_context_file_bytes: int = 10 * 1024 * 1024

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
