"""Application configuration using pydantic-settings.

The remote quoting strategy needs SERVER_URL; the direct routing strategy
needs an RPC endpoint and router address.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")
    cors_origins: str = Field(
        default="*", description="Comma-separated list of allowed CORS origins"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Quote backend
    # ======================
    quote_backend: str = Field(
        default="remote", description="Quote strategy: 'remote' (HTTP service) or 'direct' (router contract)"
    )
    server_url: Optional[str] = Field(
        default=None, description="Base URL of the remote quoting service (required for 'remote')"
    )
    routing_algorithm: str = Field(default="alpha", description="Routing algorithm hint for the quote service")
    slippage_tolerance_percent: float = Field(
        default=0.5, description="Slippage tolerance in percent (0.5 = 0.50%)"
    )
    deadline_seconds: int = Field(
        default=360, description="Deadline passed to the remote quoting service, in seconds"
    )
    route_deadline_seconds: int = Field(
        default=1800, description="Deadline offset for direct-routing swaps, in seconds from now"
    )

    # ======================
    # Chain
    # ======================
    chain_id: int = Field(default=1, description="Active chain ID")
    rpc_url: str = Field(default="https://eth.llamarpc.com", description="Ethereum JSON-RPC endpoint")
    swap_router_address: str = Field(
        default="0xE592427A0AEce92De3Edee1F18E0157C05861564",
        description="Router the remote service's calldata targets (spender for approvals)",
    )
    v2_router_address: str = Field(
        default="0x7a250d5630B4cF539739dF2C5dAcb4c659F2488D",
        description="Uniswap V2 Router02 used by the direct routing strategy",
    )
    weth_address: str = Field(
        default="0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", description="Wrapped native token address"
    )

    # ======================
    # Timing
    # ======================
    quote_debounce_ms: int = Field(default=500, description="Quiet window before a quote is requested")
    quote_timeout_seconds: float = Field(default=20.0, description="Upper bound on a single quote call")
    confirmation_timeout_seconds: Optional[float] = Field(
        default=None, description="Upper bound on a confirmation wait (None = wait for the chain)"
    )
    wallet_lock_timeout_seconds: float = Field(
        default=30.0, description="Maximum wait for the per-wallet submission lock"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment.lower() == "production"

    @property
    def allowed_origins(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def get_safe_dict(self) -> dict:
        """Get settings as dict with sensitive values redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "quote": {
                "backend": self.quote_backend,
                "server_url": "***" if self.server_url else "(not set)",
                "algorithm": self.routing_algorithm,
                "slippage_percent": self.slippage_tolerance_percent,
                "deadline_seconds": self.deadline_seconds,
                "route_deadline_seconds": self.route_deadline_seconds,
            },
            "chain": {
                "chain_id": self.chain_id,
                "rpc": self._redact_url(self.rpc_url),
                "swap_router": self.swap_router_address,
                "v2_router": self.v2_router_address,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact API keys embedded in an RPC URL path."""
        if "://" not in url:
            return url
        proto, rest = url.split("://", 1)
        host = rest.split("/", 1)[0]
        if "/" in rest and len(rest.split("/", 1)[1]) > 0:
            return f"{proto}://{host}/***"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
