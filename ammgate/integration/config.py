"""
Client configuration.

Two configuration shapes are accepted, discriminated by an explicit
`variant` marker:

- `LegacyClientConfig` ("legacy"): only a network, or none at all, in which
  case the network reported by the wallet identity is used.
- `GatewayClientConfig` ("gateway"): a network plus either a named
  environment or a custom gateway URL.

`resolve_config()` turns either shape into one `ResolvedConfig`, once, at
client construction. Nothing downstream inspects which shape was given.

Environment overrides (all optional):
    AMMGATE_GATEWAY_URL      custom gateway URL
    AMMGATE_TIMEOUT_S        HTTP timeout, seconds
    AMMGATE_AUTO_CLAWBACK    1/0
    AMMGATE_ENVIRONMENTS     path to a YAML file of named environments
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from enum import Enum
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .errors import AmmGateError

DEFAULT_SLIPPAGE_BPS = 500
DEFAULT_TIMEOUT_S = 30.0
MIN_HOST_FEE_BPS_WITHOUT_HOST = 10
MAX_ROUTE_HOPS = 4


class ConfigError(AmmGateError, ValueError):
    pass


class Network(Enum):
    MAINNET = "MAINNET"
    REGTEST = "REGTEST"
    TESTNET = "TESTNET"
    SIGNET = "SIGNET"
    LOCAL = "LOCAL"


def parse_network(value: Union[str, Network]) -> Network:
    if isinstance(value, Network):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ConfigError("network must be a non-empty string")
    try:
        return Network(value.strip().upper())
    except ValueError:
        raise ConfigError(f"unknown network: {value!r}") from None


@dataclass(frozen=True)
class Environment:
    name: str
    network: Network
    gateway_url: str


BUILTIN_ENVIRONMENTS: Dict[str, Environment] = {
    "mainnet": Environment("mainnet", Network.MAINNET, "https://api.amm.flashnet.xyz"),
    "regtest": Environment("regtest", Network.REGTEST, "http://localhost:8090"),
    "testnet": Environment("testnet", Network.TESTNET, "https://api.amm.makebitcoingreatagain.dev"),
    "signet": Environment("signet", Network.SIGNET, "https://api.amm.makebitcoingreatagain.dev"),
    "local": Environment("local", Network.LOCAL, "http://localhost:8083"),
}

DEFAULT_ENVIRONMENT_FOR_NETWORK: Dict[Network, str] = {
    Network.MAINNET: "mainnet",
    Network.REGTEST: "regtest",
    Network.TESTNET: "testnet",
    Network.SIGNET: "signet",
    Network.LOCAL: "local",
}


@dataclass(frozen=True)
class PolicyTtls:
    feature_flags_s: float = 5.0
    min_amounts_s: float = 5.0
    allowed_assets_s: float = 60.0
    ping_s: float = 2.0


@dataclass(frozen=True)
class ClientOptions:
    """Knobs shared by both configuration shapes."""

    timeout_s: float = DEFAULT_TIMEOUT_S
    auto_authenticate: bool = True
    auto_clawback: bool = False
    default_slippage_bps: int = DEFAULT_SLIPPAGE_BPS
    # Fraction of an asset's minimum that an expected *output* must reach.
    output_min_fraction: Fraction = Fraction(1, 2)
    ttls: PolicyTtls = field(default_factory=PolicyTtls)


@dataclass(frozen=True)
class LegacyClientConfig:
    network: Optional[Network] = None
    options: ClientOptions = field(default_factory=ClientOptions)
    variant: str = "legacy"


@dataclass(frozen=True)
class GatewayClientConfig:
    network: Network
    environment: Optional[str] = None
    gateway_url: Optional[str] = None
    options: ClientOptions = field(default_factory=ClientOptions)
    variant: str = "gateway"


ClientConfig = Union[LegacyClientConfig, GatewayClientConfig]


@dataclass(frozen=True)
class ResolvedConfig:
    network: Network
    gateway_url: str
    environment: Optional[str]
    options: ClientOptions

    @property
    def timeout_s(self) -> float:
        return self.options.timeout_s

    @property
    def ttls(self) -> PolicyTtls:
        return self.options.ttls


def _env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def _env_float(name: str, default: float, *, lo: float, hi: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return float(default)
    try:
        v = float(raw.strip())
    except ValueError:
        return float(default)
    if v != v:
        return float(default)
    return float(min(max(v, lo), hi))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _validate_url(url: str) -> str:
    if not isinstance(url, str) or not url.strip():
        raise ConfigError("gateway_url must be a non-empty string")
    u = url.strip().rstrip("/")
    if not (u.startswith("http://") or u.startswith("https://")):
        raise ConfigError(f"gateway_url must be http(s): {url!r}")
    return u


def _validate_options(options: ClientOptions) -> ClientOptions:
    if not isinstance(options.timeout_s, (int, float)) or options.timeout_s <= 0:
        raise ConfigError("timeout_s must be positive")
    bps = options.default_slippage_bps
    if not isinstance(bps, int) or isinstance(bps, bool) or not (0 <= bps <= 10_000):
        raise ConfigError("default_slippage_bps must be in [0, 10000]")
    frac = options.output_min_fraction
    if not isinstance(frac, Fraction) or not (0 <= frac <= 1):
        raise ConfigError("output_min_fraction must be a Fraction in [0, 1]")
    for name in ("feature_flags_s", "min_amounts_s", "allowed_assets_s", "ping_s"):
        ttl = getattr(options.ttls, name)
        if not isinstance(ttl, (int, float)) or ttl < 0:
            raise ConfigError(f"ttls.{name} must be non-negative")
    return options


def load_environments(path: Union[str, Path]) -> Dict[str, Environment]:
    """
    Load named environments from YAML.

    Expected shape:

        environments:
          staging:
            network: TESTNET
            gateway_url: https://staging.example
    """
    p = Path(path)
    obj = yaml.safe_load(p.read_text(encoding="utf-8"))
    if obj is None:
        return {}
    if not isinstance(obj, Mapping):
        raise ConfigError(f"{p}: top-level YAML must be a mapping")
    envs = obj.get("environments", {}) or {}
    if not isinstance(envs, Mapping):
        raise ConfigError(f"{p}: 'environments' must be a mapping")
    out: Dict[str, Environment] = {}
    for name, raw in envs.items():
        if not isinstance(raw, Mapping):
            raise ConfigError(f"{p}: environment {name!r} must be a mapping")
        key = str(name).strip().lower()
        out[key] = Environment(
            name=key,
            network=parse_network(raw.get("network", "")),
            gateway_url=_validate_url(str(raw.get("gateway_url", ""))),
        )
    return out


def environments_from_env() -> Dict[str, Environment]:
    envs = dict(BUILTIN_ENVIRONMENTS)
    path = _env_str("AMMGATE_ENVIRONMENTS")
    if path:
        envs.update(load_environments(path))
    return envs


def options_from_env(base: Optional[ClientOptions] = None) -> ClientOptions:
    opts = base or ClientOptions()
    return replace(
        opts,
        timeout_s=_env_float("AMMGATE_TIMEOUT_S", opts.timeout_s, lo=0.1, hi=600.0),
        auto_clawback=_env_bool("AMMGATE_AUTO_CLAWBACK", opts.auto_clawback),
    )


def resolve_config(
    config: ClientConfig,
    *,
    wallet_network: Optional[str] = None,
    environments: Optional[Mapping[str, Environment]] = None,
) -> ResolvedConfig:
    """
    Resolve a configuration variant into the canonical `ResolvedConfig`.

    Args:
        config: Legacy or gateway configuration
        wallet_network: Network reported by the wallet (legacy auto-detect)
        environments: Named environments; defaults to built-ins plus AMMGATE_ENVIRONMENTS

    Raises:
        ConfigError: On an unknown variant, environment or network mismatch
    """
    envs = dict(environments) if environments is not None else environments_from_env()
    variant = getattr(config, "variant", None)

    if variant == "legacy":
        if config.network is not None:
            network = config.network
        elif wallet_network:
            network = parse_network(wallet_network)
        else:
            raise ConfigError("legacy config without a network requires a wallet-reported network")
        env_name = DEFAULT_ENVIRONMENT_FOR_NETWORK[network]
        env = envs.get(env_name, BUILTIN_ENVIRONMENTS[env_name])
        url = _env_str("AMMGATE_GATEWAY_URL") or env.gateway_url
        return ResolvedConfig(
            network=network,
            gateway_url=_validate_url(url),
            environment=env_name,
            options=_validate_options(options_from_env(config.options)),
        )

    if variant == "gateway":
        network = parse_network(config.network)
        if config.gateway_url and config.environment:
            raise ConfigError("give either environment or gateway_url, not both")
        if config.gateway_url:
            url = config.gateway_url
            env_name = None
        else:
            env_name = (config.environment or DEFAULT_ENVIRONMENT_FOR_NETWORK[network]).strip().lower()
            env = envs.get(env_name)
            if env is None:
                raise ConfigError(f"unknown environment: {env_name!r}")
            if env.network is not network:
                raise ConfigError(
                    f"environment {env_name!r} is for {env.network.value}, not {network.value}"
                )
            url = _env_str("AMMGATE_GATEWAY_URL") or env.gateway_url
        return ResolvedConfig(
            network=network,
            gateway_url=_validate_url(url),
            environment=env_name,
            options=_validate_options(options_from_env(config.options)),
        )

    raise ConfigError(f"unknown config variant: {variant!r}")


def config_from_dict(obj: Mapping[str, Any]) -> ClientConfig:
    """Build a config variant from a plain mapping (e.g. parsed YAML)."""
    variant = obj.get("variant")
    options = ClientOptions(
        timeout_s=float(obj.get("timeout_s", DEFAULT_TIMEOUT_S)),
        auto_authenticate=bool(obj.get("auto_authenticate", True)),
        auto_clawback=bool(obj.get("auto_clawback", False)),
        default_slippage_bps=int(obj.get("default_slippage_bps", DEFAULT_SLIPPAGE_BPS)),
        output_min_fraction=Fraction(str(obj.get("output_min_fraction", "1/2"))),
    )
    if variant == "legacy":
        net = obj.get("network")
        return LegacyClientConfig(network=parse_network(net) if net else None, options=options)
    if variant == "gateway":
        return GatewayClientConfig(
            network=parse_network(obj.get("network", "")),
            environment=obj.get("environment"),
            gateway_url=obj.get("gateway_url"),
            options=options,
        )
    raise ConfigError(f"unknown config variant: {variant!r}")


def load_config(path: Union[str, Path]) -> ClientConfig:
    obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    if not isinstance(obj, Mapping):
        raise ConfigError(f"{path}: top-level YAML must be a mapping")
    return config_from_dict(obj)
