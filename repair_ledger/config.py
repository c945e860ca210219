"""
Configuration Management for the Warranty Repair Ledger
========================================================
Centralized configuration for warranty rules, storage and server settings.
"""

import os
from typing import List
from pydantic import BaseModel, Field


DEFAULT_ALLOW_ORIGINS = [
    "http://localhost:5173",
    "https://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:4173",
    "https://localhost:4173",
    "http://127.0.0.1:4173",
]


class WarrantyOptions(BaseModel):
    """Warranty rules applied by the evaluator."""

    default_months: int = Field(
        default=24,
        gt=0,
        description="Warranty length used when a product has no positive length of its own"
    )
    repair_extension_months: int = Field(
        default=12,
        ge=0,
        description="Coverage granted from the closure of a consumer-opted repair"
    )


class LedgerConfig(BaseModel):
    """Main configuration for the ledger application."""

    warranty: WarrantyOptions = Field(default_factory=WarrantyOptions)

    # Storage
    database_url: str = Field(
        default="sqlite:///./data/ledger.db",
        description="SQLAlchemy database URL"
    )

    # HTTP API
    host: str = Field(default="127.0.0.1", description="API bind address")
    port: int = Field(default=8080, description="API port")
    allow_origins: List[str] = Field(
        default_factory=lambda: list(DEFAULT_ALLOW_ORIGINS),
        description="Origins allowed by CORS"
    )

    # MCP server
    mcp_port: int = Field(default=8004, description="Port for the warranty MCP server")

    # Reports
    expiring_window_days: int = Field(
        default=30,
        gt=0,
        description="Window used for 'expiring soon' counts"
    )

    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls) -> "LedgerConfig":
        """Load configuration from environment variables."""

        warranty = WarrantyOptions(
            default_months=int(os.environ.get("WARRANTY_DEFAULT_MONTHS", "24")),
            repair_extension_months=int(os.environ.get("WARRANTY_REPAIR_EXTENSION_MONTHS", "12"))
        )

        origins = os.environ.get("LEDGER_ALLOW_ORIGINS")
        allow_origins = (
            [origin.strip() for origin in origins.split(",") if origin.strip()]
            if origins
            else list(DEFAULT_ALLOW_ORIGINS)
        )

        return cls(
            warranty=warranty,
            database_url=os.environ.get("LEDGER_DATABASE_URL", "sqlite:///./data/ledger.db"),
            host=os.environ.get("LEDGER_HOST", "127.0.0.1"),
            port=int(os.environ.get("LEDGER_PORT", "8080")),
            allow_origins=allow_origins,
            mcp_port=int(os.environ.get("LEDGER_MCP_PORT", "8004")),
            expiring_window_days=int(os.environ.get("LEDGER_EXPIRING_DAYS", "30")),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper()
        )


# Global config instance
config = LedgerConfig.from_env()
