"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    refiner_env: str = "development"
    refiner_log_level: str = "info"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Instruction boundary
    max_instruction_length: int = 1000

    # Refinement chains: 0 keeps chains for the life of the process
    chain_ttl_seconds: float = 0.0
    refiner_chain_store_path: str | None = None

    # Enrichment vocabulary override (merged over the bundled catalog)
    refiner_vocabulary_path: str | None = None

    # Provider polling
    provider_poll_attempts: int = 60
    provider_poll_interval: float = 3.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
