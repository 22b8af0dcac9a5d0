"""Configuration for the provisioning and verification flow."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .errors import ConfigurationError
from .execution.driver import PollSettings
from .execution.types import TEE_TAG
from .generation.types import SecretType

DEFAULT_CHAIN_ID = 421614
DEFAULT_RPC_URL = "https://sepolia-rollup.arbitrum.io/rpc"
DEFAULT_SMS_URL = "https://sms.arbitrum-sepolia-testnet.iex.ec"
DEFAULT_MARKET_URL = "https://api-market.arbitrum-sepolia-testnet.iex.ec"
DEFAULT_RESULT_PROXY_URL = "https://ipfs-upload.arbitrum-sepolia-testnet.iex.ec"
DEFAULT_RESULT_GATEWAY_URL = "https://ipfs-gateway.arbitrum-sepolia-testnet.iex.ec"
DEFAULT_WORKERPOOL = "0xB967057a21dc6A66A29721d96b8Aa7454B7c383F"
DEFAULT_TAGS = (TEE_TAG, "scone")
DEFAULT_PRICE_CEILING = 100_000_000


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError([key], f"{key} must be an integer, got {raw!r}") from exc


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError([key], f"{key} must be a number, got {raw!r}") from exc


def _tags(raw: Optional[str]) -> frozenset[str]:
    if not raw:
        return frozenset(DEFAULT_TAGS)
    return frozenset(t.strip().lower() for t in raw.split(",") if t.strip())


@dataclass(frozen=True)
class ProducerCredentials:
    """Credential bundle the producer program reads from its developer secret."""

    private_key: str
    sms_url: str = DEFAULT_SMS_URL
    rpc_url: str = DEFAULT_RPC_URL

    def to_secret_value(self) -> str:
        return json.dumps(
            {
                "DEDICATED_PRIVATE_KEY": self.private_key,
                "SMS_URL": self.sms_url,
                "RPC_URL": self.rpc_url,
            }
        )

    @classmethod
    def from_secret_value(cls, raw: Optional[str]) -> Optional["ProducerCredentials"]:
        """Parse the developer secret; None if absent, unparseable or keyless."""
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict) or not data.get("DEDICATED_PRIVATE_KEY"):
            return None
        return cls(
            private_key=str(data["DEDICATED_PRIVATE_KEY"]),
            sms_url=str(data.get("SMS_URL") or DEFAULT_SMS_URL),
            rpc_url=str(data.get("RPC_URL") or DEFAULT_RPC_URL),
        )

    def __repr__(self) -> str:
        return f"ProducerCredentials(private_key='***', sms_url={self.sms_url!r}, rpc_url={self.rpc_url!r})"


@dataclass
class FlowConfig:
    """Endpoints, identities and execution parameters for one run."""

    producer_app: Optional[str] = None
    consumer_app: Optional[str] = None
    private_key: Optional[str] = field(default=None, repr=False)
    chain_id: int = DEFAULT_CHAIN_ID
    rpc_url: str = DEFAULT_RPC_URL
    sms_url: str = DEFAULT_SMS_URL
    market_url: str = DEFAULT_MARKET_URL
    result_proxy_url: str = DEFAULT_RESULT_PROXY_URL
    result_gateway_url: str = DEFAULT_RESULT_GATEWAY_URL
    workerpool: str = DEFAULT_WORKERPOOL
    category: int = 0
    tags: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_TAGS))
    price_ceiling: int = DEFAULT_PRICE_CEILING
    secret_type: SecretType = SecretType.API_KEY
    consumer_args: str = "hash"
    lock_file: str = ".secret-lock.json"
    pg_dsn: Optional[str] = field(default=None, repr=False)
    poll: PollSettings = field(default_factory=PollSettings)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FlowConfig":
        """Build config from environment variables, falling back to testnet defaults."""
        env = os.environ if environ is None else environ
        poll = PollSettings(
            settle_delay=_float(env, "SETTLE_DELAY", 5.0),
            poll_interval=_float(env, "POLL_INTERVAL", 3.0),
            max_wait=_float(env, "MAX_WAIT", 600.0),
        )
        return cls(
            producer_app=env.get("TARGET_APP_ADDRESS") or None,
            consumer_app=env.get("CONSUME_APP_ADDRESS") or None,
            private_key=env.get("WALLET_PRIVATE_KEY") or None,
            chain_id=_int(env, "CHAIN_ID", DEFAULT_CHAIN_ID),
            rpc_url=env.get("RPC_URL") or DEFAULT_RPC_URL,
            sms_url=env.get("SMS_URL") or DEFAULT_SMS_URL,
            market_url=env.get("MARKET_URL") or DEFAULT_MARKET_URL,
            result_proxy_url=env.get("RESULT_PROXY_URL") or DEFAULT_RESULT_PROXY_URL,
            result_gateway_url=env.get("RESULT_GATEWAY_URL") or DEFAULT_RESULT_GATEWAY_URL,
            workerpool=env.get("WORKERPOOL_ADDRESS") or DEFAULT_WORKERPOOL,
            category=_int(env, "TASK_CATEGORY", 0),
            tags=_tags(env.get("TASK_TAGS")),
            price_ceiling=_int(env, "WORKERPOOL_MAX_PRICE", DEFAULT_PRICE_CEILING),
            secret_type=SecretType.parse(env.get("SECRET_TYPE") or SecretType.API_KEY.value),
            consumer_args=env.get("CONSUMER_ARGS") or "hash",
            lock_file=env.get("SECRET_LOCK_FILE") or ".secret-lock.json",
            pg_dsn=env.get("SECRET_HANDOFF_PG_DSN") or None,
            poll=poll,
        )

    def validate(self) -> "FlowConfig":
        """Presence checks only; malformed values surface from the calls that use them."""
        missing = [
            env_name
            for env_name, value in (
                ("WALLET_PRIVATE_KEY", self.private_key),
                ("TARGET_APP_ADDRESS", self.producer_app),
                ("CONSUME_APP_ADDRESS", self.consumer_app),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(missing)
        if TEE_TAG not in self.tags:
            raise ConfigurationError(["TASK_TAGS"], f"TASK_TAGS must include '{TEE_TAG}'")
        return self

    def producer_credentials(self) -> ProducerCredentials:
        if not self.private_key:
            raise ConfigurationError(["WALLET_PRIVATE_KEY"])
        return ProducerCredentials(private_key=self.private_key, sms_url=self.sms_url, rpc_url=self.rpc_url)
