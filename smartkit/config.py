from pathlib import Path
from typing import Any, Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]

# ERC-4337 EntryPoint v0.7 (same address on every supported chain)
ENTRY_POINT_V07 = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Derive the bundler/paymaster URLs from the Pimlico key when not set explicitly."""

        super().model_post_init(__context)

        if self.pimlico_api_key:
            pimlico_url = (
                f"https://api.pimlico.io/v2/{self.chain_id}/rpc?apikey={self.pimlico_api_key}"
            )
            if not self.bundler_url:
                object.__setattr__(self, "bundler_url", pimlico_url)
            if not self.paymaster_url:
                object.__setattr__(self, "paymaster_url", pimlico_url)

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Chain
    chain_id: int = Field(default=84532, description="Default chain id (Base Sepolia)")
    rpc_url: str = Field(
        default="https://sepolia.base.org",
        description="Chain node JSON-RPC endpoint",
        validation_alias=AliasChoices("rpc_url", "BASE_SEPOLIA_RPC_URL"),
    )
    rpc_timeout_seconds: float = Field(default=15.0, gt=0, description="Per-call RPC timeout")

    # ERC-4337 contracts
    entry_point_address: str = Field(default=ENTRY_POINT_V07, description="EntryPoint contract address")
    factory_address: str = Field(
        default=ZERO_ADDRESS,
        description="Smart account factory address",
        validation_alias=AliasChoices("factory_address", "NEXT_PUBLIC_FACTORY_ADDRESS"),
    )
    account_execute_signature: str = Field(
        default="execute(address,uint256,bytes)",
        description="Smart account single-call function signature",
    )
    account_execute_batch_signature: str = Field(
        default="executeBatch(address[],uint256[],bytes[])",
        description="Smart account batch-call function signature",
    )

    # Bundler / Paymaster
    pimlico_api_key: str = Field(default="", description="Pimlico API key for bundler and paymaster")
    bundler_url: str = Field(default="", description="Override bundler JSON-RPC URL")
    paymaster_url: str = Field(default="", description="Override paymaster JSON-RPC URL")
    paymaster_rpc_method: str = Field(
        default="pm_sponsorUserOperation",
        description="Paymaster sponsorship RPC method",
    )
    sponsorship_policy_id: Optional[str] = Field(
        default=None,
        description="Optional sponsorship policy id sent to the paymaster",
        validation_alias=AliasChoices("sponsorship_policy_id", "PIMLICO_SPONSORSHIP_POLICY_ID"),
    )
    default_sponsored: bool = Field(default=True, description="Sponsor gas unless the caller opts out")

    # Operator signing key (custodial)
    operator_private_key: SecretStr = Field(
        default=SecretStr(""),
        description="Operator key that signs UserOperations for every managed wallet",
    )

    # Fee fallbacks when the node gives no suggestion
    fallback_max_fee_per_gas: int = Field(default=1_000_000_000, description="1 gwei")
    fallback_max_priority_fee_per_gas: int = Field(default=100_000_000, description="0.1 gwei")

    # Send limits
    max_batch_calls: int = Field(default=10, ge=1, description="Maximum calls in one batch send")

    # Confirmation polling
    receipt_poll_interval_seconds: float = Field(default=2.0, gt=0, description="Seconds between receipt checks")
    receipt_poll_max_attempts: int = Field(default=30, ge=1, description="Receipt checks before timing out")
    recover_pending_on_startup: bool = Field(
        default=True,
        description="Respawn confirmation pollers for pending rows when the app starts",
    )
    stale_pending_max_age_seconds: int = Field(
        default=3600,
        description="Pending transactions older than this are marked failed by the cleanup worker",
    )
    stale_cleanup_interval_seconds: int = Field(
        default=600,
        ge=0,
        description="Seconds between stale-pending cleanups run by the API process (0 disables)",
    )

    # Persistence
    store_backend: str = Field(default="memory", description="Persistence backend: memory or convex")
    convex_url: str = Field(default="", description="Convex deployment URL")
    convex_deploy_key: str = Field(default="", description="Convex deploy key")

    @property
    def has_operator_key(self) -> bool:
        return bool(self.operator_private_key.get_secret_value())

    @property
    def has_paymaster(self) -> bool:
        return bool(self.paymaster_url)

    @property
    def fallback_fees(self) -> tuple[int, int]:
        return self.fallback_max_fee_per_gas, self.fallback_max_priority_fee_per_gas


# Global settings instance
settings = Settings()
