"""Configuration management using Pydantic Settings"""

from decimal import Decimal
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./copra_ledger.db"

    # External Services
    reconciliation_webhook_url: str = "http://localhost:8002/reconciliation"

    # Service
    service_name: str = "copra-ledger"
    log_level: str = "INFO"
    allowed_roles: str = "admin,owner"

    # Ledger policy
    auto_debit_ceiling: Decimal = Decimal("0.40")  # Share of a purchase that may retire loans
    credit_percentage: Decimal = Decimal("0.40")  # Share of the average purchase granted as credit
    ideal_transaction_cycle: int = 10

    # HTTP Client
    http_timeout_seconds: float = 5.0
    webhook_max_retries: int = 5
    webhook_backoff_base: float = 1.0  # Exponential backoff base in seconds

    @property
    def allowed_roles_list(self) -> List[str]:
        return [role.strip() for role in self.allowed_roles.split(",") if role.strip()]


settings = Settings()
