# config.py
# Environment-derived configuration, resolved once and passed into Harness.
#
# A .env file in the working directory is honoured. Required fields are
# validated by check_required(), which Harness calls at construction.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from web3 import Web3

DEFAULT_RPC_URL = "https://ethereum-sepolia-rpc.publicnode.com"

BACKENDS = ("web3", "memory")


class ConfigurationError(Exception):
    """Raised when required configuration is missing or malformed. Always fatal."""


class HarnessConfig(BaseModel):
    contract_address: str | None = None
    private_key: str | None = Field(default=None, repr=False)
    rpc_url: str = DEFAULT_RPC_URL
    backend: str = "web3"
    tx_timeout: float = 120.0
    consumer_min_balance: int = Web3.to_wei(0.1, "ether")
    consumer_funding: int = Web3.to_wei(0.2, "ether")
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> "HarnessConfig":
        """
        Build a config from the process environment (after loading .env).

        Pass `env` to read from an explicit mapping instead; .env is not
        loaded in that case.
        """
        if env is None:
            load_dotenv()
            env = dict(os.environ)

        try:
            return cls(
                contract_address=env.get("CONTRACT_ADDRESS") or None,
                private_key=env.get("PRIVATE_KEY") or None,
                rpc_url=env.get("RPC_URL") or DEFAULT_RPC_URL,
                backend=(env.get("HARNESS_BACKEND") or "web3").lower(),
                tx_timeout=float(env.get("TX_TIMEOUT") or 120),
                consumer_min_balance=Web3.to_wei(env.get("CONSUMER_MIN_BALANCE") or "0.1", "ether"),
                consumer_funding=Web3.to_wei(env.get("CONSUMER_FUNDING") or "0.2", "ether"),
                log_level=(env.get("LOG_LEVEL") or "WARNING").upper(),
            )
        except (ValueError, ArithmeticError) as exc:
            raise ConfigurationError(f"Invalid configuration value: {exc}") from exc

    def check_required(self) -> None:
        if not self.contract_address:
            raise ConfigurationError("Please set CONTRACT_ADDRESS in .env file")
        if self.backend not in BACKENDS:
            raise ConfigurationError(
                f"Unknown HARNESS_BACKEND {self.backend!r}; expected one of {', '.join(BACKENDS)}"
            )
        if self.backend == "web3" and not self.private_key:
            raise ConfigurationError("Please set PRIVATE_KEY in .env file")
        if self.tx_timeout <= 0:
            raise ConfigurationError("TX_TIMEOUT must be positive")
