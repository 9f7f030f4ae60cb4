"""Config file."""
from urllib.parse import quote_plus

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # PROJECT
    project_name: str = Field("chain-equity-indexer", alias="PROJECT_NAME")
    indexer_version: str = Field("1.0.0", alias="INDEXER_VERSION")

    # DATABASE
    postgres_user: str = Field("postgres", alias="POSTGRES_USER")
    postgres_password: SecretStr = Field(SecretStr("postgres"), alias="POSTGRES_PASSWORD")
    postgres_server: str = Field("localhost", alias="POSTGRES_SERVER")
    postgres_port: int = Field(5432, alias="POSTGRES_PORT")
    postgres_db: str = Field("chain_equity", alias="POSTGRES_DB")
    database_url: str | None = Field(None, alias="DATABASE_URL")
    sync_database_url: str | None = Field(None, alias="SYNC_DATABASE_URL")

    # CHAIN
    rpc_url: str = Field("http://127.0.0.1:8545", alias="RPC_URL")
    chain_id: int = Field(31337, alias="CHAIN_ID")
    rpc_timeout_seconds: float = Field(30.0, alias="RPC_TIMEOUT_SECONDS")
    rpc_max_attempts: int = Field(4, ge=1, alias="RPC_MAX_ATTEMPTS")
    rpc_retry_base_delay: float = Field(1.0, ge=0, alias="RPC_RETRY_BASE_DELAY")

    # CONTRACTS
    cap_table_address: str | None = Field(None, alias="CAP_TABLE_ADDRESS")
    token_address: str | None = Field(None, alias="TOKEN_ADDRESS")
    deployments_path: str = Field("contracts/exports/deployments.json", alias="DEPLOYMENTS_PATH")
    company_name: str = Field("AcmeInc", alias="COMPANY_NAME")

    # INDEXER
    start_block: int = Field(0, ge=0, alias="START_BLOCK")
    confirmation_blocks: int = Field(3, ge=0, alias="CONFIRMATION_BLOCKS")
    batch_size: int = Field(100, gt=0, alias="BATCH_SIZE")
    checkpoint_interval_seconds: float = Field(10.0, gt=0, alias="CHECKPOINT_INTERVAL_SECONDS")
    poll_interval_seconds: float = Field(2.0, gt=0, alias="POLL_INTERVAL_SECONDS")

    @model_validator(mode="after")
    def assemble_db_urls(self) -> "Settings":
        user = quote_plus(self.postgres_user)
        password = quote_plus(self.postgres_password.get_secret_value())
        host = self.postgres_server
        port = self.postgres_port
        db = self.postgres_db

        if not self.database_url:
            self.database_url = f"postgresql+asyncpg://{user}:{password}@{host}:{port}/{db}"

        if not self.sync_database_url:
            self.sync_database_url = f"postgresql://{user}:{password}@{host}:{port}/{db}"

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )


settings: Settings = Settings()
