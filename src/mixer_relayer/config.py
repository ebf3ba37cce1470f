"""
Relayer Configuration Management

Loads the relayer's settings from the environment (optionally a ``.env``
file) and provides the table of supported mixer instances per network.

Environment Variables:
    - RELAYER_PRIVATE_KEY: Relayer account private key (required)
    - RPC_URL: JSON-RPC endpoint of the node (default: http://localhost:8545)
    - NET_ID: Network id transactions are signed for (default: 1)
    - REDIS_URL: Redis connection URL; empty selects in-memory stores
    - STORE_PREFIX: Prefix of every Redis key (default: relayer)
    - RELAYER_SERVICE_FEE: Service fee in percent of the amount (default: 2.5)
    - GAS_LIMIT_MARGIN: Gas added on top of the node's estimate (default: 50000)
    - MAX_NONCE_RETRIES: Broadcast retries on nonce conflicts (default: 10)
    - RPC_TIMEOUT: HTTP timeout of RPC requests in seconds (default: 60)
    - APP_PORT: HTTP port (default: 8000)
    - LOG_LEVEL: Logging level name (default: INFO)
    - MIXERS_JSON: JSON override of the supported instances
    - GAS_PRICES_JSON / ETH_PRICES_JSON: JSON seeds of the price snapshot
"""

import json
import os
from decimal import Decimal
from typing import Dict, Optional, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from web3 import Web3
import dotenv

from .engine.exceptions import ConfigurationError

VERSION = "1.0.0"


class MixerCurrency(BaseModel):
    """Instances of one currency, keyed by denomination."""
    decimals: int = Field(..., ge=0, description="Token decimals")
    instance_address: Dict[str, str] = Field(
        ..., alias="instanceAddress", description="Denomination -> instance address"
    )
    model_config = ConfigDict(populate_by_name=True)


class MixerInstance(BaseModel):
    """A supported mixer contract resolved from its address."""
    address: str
    currency: str
    amount: str
    decimals: int


# Supported instances per network id. Networks missing here must be described
# through MIXERS_JSON.
MIXERS_BY_NET_ID: Dict[int, Dict[str, Any]] = {
    1: {
        "eth": {
            "decimals": 18,
            "instanceAddress": {
                "0.1": "0x12d66f87a04a9e220743712ce6d9bb1b5616b8fc",
                "1": "0x47ce0c6ed5b0ce3d3a51fdb1c52dc66a7c3c2936",
                "10": "0x910cbd523d972eb0a6f4cae4618ad62622b39dbf",
                "100": "0xa160cdab225685da1d56aa342ad8841c3b53f291",
            },
        },
        "dai": {
            "decimals": 18,
            "instanceAddress": {
                "100": "0xd4b88df4d29f5cedd6857912842cff3b20c8cfa3",
                "1000": "0xfd8610d20aa15b7b2e3be39b396a1bc3516c7144",
                "10000": "0x07687e702b410fa43f4cb4af7fa097918ffd2730",
                "100000": "0x23773e65ed146a459791799d01336db287f25334",
            },
        },
        "usdc": {
            "decimals": 6,
            "instanceAddress": {
                "100": "0xd96f2b1c14db8458374d9aca76e26c3d18364307",
                "1000": "0x4736dcf1b7a3d580672cce6e7c65cd5cc9cfba9d",
            },
        },
        "usdt": {
            "decimals": 6,
            "instanceAddress": {
                "100": "0x169ad27a470d064dede56a2d3ff727986b15d52b",
                "1000": "0x0836222f2b2b24a3f36f98668ed8f0b38d1a872f",
            },
        },
    },
}

DEFAULT_GAS_PRICES: Dict[str, str] = {"instant": "30", "fast": "20", "standard": "10", "low": "5"}


class RelayerConfig(BaseModel):
    """Resolved relayer settings."""
    private_key: str = Field(..., repr=False, description="Relayer account private key")
    rpc_url: str = Field(default="http://localhost:8545")
    net_id: int = Field(default=1, ge=1)
    redis_url: str = Field(default="")
    store_prefix: str = Field(default="relayer")
    relayer_service_fee: Decimal = Field(default=Decimal("2.5"), ge=0)
    gas_limit_margin: int = Field(default=50000, ge=0)
    max_nonce_retries: int = Field(default=10, ge=0)
    rpc_timeout: int = Field(default=60, ge=1)
    app_port: int = Field(default=8000, ge=1)
    log_level: str = Field(default="INFO")
    native_currency: str = Field(default="eth")
    mixers: Dict[str, MixerCurrency] = Field(default_factory=dict)
    gas_prices: Dict[str, Decimal] = Field(default_factory=dict)
    eth_prices: Dict[str, int] = Field(default_factory=dict)
    version: str = Field(default=VERSION)

    @property
    def nonce_key(self) -> str:
        return f"{self.store_prefix}:nonce"

    def find_instance(self, contract: str) -> Optional[MixerInstance]:
        """
        Resolve a mixer instance from its address (case-insensitive).

        Args:
            contract: Address from the relay request.

        Returns:
            MixerInstance, or None when the relayer does not serve it.
        """
        if not isinstance(contract, str):
            return None
        target = contract.lower()
        for currency, mixer in self.mixers.items():
            for amount, address in mixer.instance_address.items():
                if address.lower() == target:
                    return MixerInstance(
                        address=Web3.to_checksum_address(address),
                        currency=currency,
                        amount=amount,
                        decimals=mixer.decimals,
                    )
        return None

    def decimals_of(self, currency: str) -> int:
        mixer = self.mixers.get(currency)
        if mixer is None:
            raise ConfigurationError(f"Unsupported currency: {currency}")
        return mixer.decimals

    def public_mixers(self) -> Dict[str, Dict[str, str]]:
        """Instances as ``{currency: {amount: address}}`` for the status endpoint."""
        return {currency: dict(m.instance_address) for currency, m in self.mixers.items()}


def get_private_key_from_env() -> Optional[str]:
    """
    Load the relayer private key from the environment.

    Environment Variable:
        - RELAYER_PRIVATE_KEY: 0x-prefixed hex private key

    Note:
        The key should live in the environment or an untracked ``.env`` file,
        never in version control.
    """
    return os.getenv("RELAYER_PRIVATE_KEY")


def _load_json_env(name: str) -> Optional[Any]:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"{name} is not valid JSON: {e}") from e


def _env(name: str, default: Any) -> Any:
    value = os.getenv(name)
    return default if value is None or value == "" else value


def resolve_mixers(net_id: int, override: Optional[Dict[str, Any]] = None) -> Dict[str, MixerCurrency]:
    """
    Build the mixer table for ``net_id``.

    Args:
        net_id: Network id.
        override: Table in the ``{currency: {decimals, instanceAddress}}`` form.

    Raises:
        ConfigurationError: If no table exists for the network or it is malformed.
    """
    data = override if override is not None else MIXERS_BY_NET_ID.get(net_id)
    if not data:
        raise ConfigurationError(
            f"No mixer instances configured for net id {net_id}. Set MIXERS_JSON."
        )
    try:
        return {currency.lower(): MixerCurrency.model_validate(entry) for currency, entry in data.items()}
    except (ValidationError, AttributeError) as e:
        raise ConfigurationError(f"Invalid mixer configuration: {e}") from e


def load_config(env_file: Optional[str] = None, **overrides: Any) -> RelayerConfig:
    """
    Load relayer settings from the environment.

    Args:
        env_file: Optional ``.env`` path; the default lookup is used when None.
        **overrides: Field values taking precedence over the environment.

    Returns:
        RelayerConfig

    Raises:
        ConfigurationError: If the private key is missing or a value is invalid.
    """
    dotenv.load_dotenv(dotenv_path=env_file)

    private_key = overrides.pop("private_key", None) or get_private_key_from_env()
    if not private_key:
        raise ConfigurationError(
            "Private key not provided. Set the 'RELAYER_PRIVATE_KEY' environment variable."
        )

    net_id = int(overrides.pop("net_id", None) or _env("NET_ID", 1))
    mixers = overrides.pop("mixers", None) or resolve_mixers(net_id, _load_json_env("MIXERS_JSON"))

    values: Dict[str, Any] = {
        "private_key": private_key,
        "net_id": net_id,
        "mixers": mixers,
        "rpc_url": _env("RPC_URL", "http://localhost:8545"),
        "redis_url": _env("REDIS_URL", ""),
        "store_prefix": _env("STORE_PREFIX", "relayer"),
        "relayer_service_fee": _env("RELAYER_SERVICE_FEE", "2.5"),
        "gas_limit_margin": _env("GAS_LIMIT_MARGIN", 50000),
        "max_nonce_retries": _env("MAX_NONCE_RETRIES", 10),
        "rpc_timeout": _env("RPC_TIMEOUT", 60),
        "app_port": _env("APP_PORT", 8000),
        "log_level": _env("LOG_LEVEL", "INFO"),
        "gas_prices": _load_json_env("GAS_PRICES_JSON") or DEFAULT_GAS_PRICES,
        "eth_prices": _load_json_env("ETH_PRICES_JSON") or {},
    }
    values.update(overrides)

    try:
        return RelayerConfig.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid relayer configuration: {e}") from e
