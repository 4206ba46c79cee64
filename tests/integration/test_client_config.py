# [TESTER] v1

from __future__ import annotations

from fractions import Fraction
from pathlib import Path

import pytest

from ammgate.integration.config import (
    BUILTIN_ENVIRONMENTS,
    ClientOptions,
    ConfigError,
    Environment,
    GatewayClientConfig,
    LegacyClientConfig,
    Network,
    config_from_dict,
    environments_from_env,
    load_config,
    load_environments,
    options_from_env,
    parse_network,
    resolve_config,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("AMMGATE_GATEWAY_URL", "AMMGATE_TIMEOUT_S", "AMMGATE_AUTO_CLAWBACK", "AMMGATE_ENVIRONMENTS"):
        monkeypatch.delenv(name, raising=False)


def test_legacy_config_uses_wallet_network() -> None:
    resolved = resolve_config(LegacyClientConfig(), wallet_network="regtest")
    assert resolved.network is Network.REGTEST
    assert resolved.gateway_url == BUILTIN_ENVIRONMENTS["regtest"].gateway_url
    assert resolved.environment == "regtest"


def test_legacy_config_without_any_network_fails() -> None:
    with pytest.raises(ConfigError):
        resolve_config(LegacyClientConfig())


def test_legacy_explicit_network_wins_over_wallet() -> None:
    resolved = resolve_config(LegacyClientConfig(network=Network.MAINNET), wallet_network="REGTEST")
    assert resolved.network is Network.MAINNET


def test_gateway_config_named_environment() -> None:
    resolved = resolve_config(GatewayClientConfig(network=Network.TESTNET, environment="Testnet"))
    assert resolved.environment == "testnet"
    assert resolved.gateway_url.startswith("https://")


def test_gateway_config_custom_url_is_normalized() -> None:
    resolved = resolve_config(GatewayClientConfig(network=Network.LOCAL, gateway_url="http://127.0.0.1:9000/"))
    assert resolved.gateway_url == "http://127.0.0.1:9000"
    assert resolved.environment is None


@pytest.mark.parametrize(
    "config",
    [
        GatewayClientConfig(network=Network.MAINNET, environment="regtest"),
        GatewayClientConfig(network=Network.MAINNET, environment="nowhere"),
        GatewayClientConfig(network=Network.MAINNET, environment="mainnet", gateway_url="https://x"),
        GatewayClientConfig(network=Network.MAINNET, gateway_url="ftp://x"),
    ],
)
def test_gateway_config_errors(config: GatewayClientConfig) -> None:
    with pytest.raises(ConfigError):
        resolve_config(config)


def test_unknown_variant_rejected() -> None:
    class Other:
        variant = "other"

    with pytest.raises(ConfigError):
        resolve_config(Other())  # type: ignore[arg-type]


def test_invalid_options_rejected() -> None:
    with pytest.raises(ConfigError):
        resolve_config(LegacyClientConfig(network=Network.REGTEST, options=ClientOptions(timeout_s=0)))
    with pytest.raises(ConfigError):
        resolve_config(
            LegacyClientConfig(network=Network.REGTEST, options=ClientOptions(output_min_fraction=Fraction(3, 2)))
        )


def test_url_override_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AMMGATE_GATEWAY_URL", "https://override.test")
    resolved = resolve_config(LegacyClientConfig(network=Network.REGTEST))
    assert resolved.gateway_url == "https://override.test"


def test_options_from_env_clamps_and_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AMMGATE_TIMEOUT_S", "100000")
    monkeypatch.setenv("AMMGATE_AUTO_CLAWBACK", "yes")
    opts = options_from_env()
    assert opts.timeout_s == 600.0
    assert opts.auto_clawback is True
    monkeypatch.setenv("AMMGATE_TIMEOUT_S", "garbage")
    assert options_from_env().timeout_s == ClientOptions().timeout_s


def test_resolved_options_apply_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AMMGATE_TIMEOUT_S", "5")
    monkeypatch.setenv("AMMGATE_AUTO_CLAWBACK", "1")
    config = GatewayClientConfig(network=Network.TESTNET, options=ClientOptions(default_slippage_bps=75))
    resolved = resolve_config(config)
    assert resolved.options.timeout_s == 5.0
    assert resolved.options.auto_clawback is True
    assert resolved.options.default_slippage_bps == 75


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_yaml_environments_extend_builtins(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    p = _write(
        tmp_path / "envs.yaml",
        "environments:\n  Staging:\n    network: testnet\n    gateway_url: https://staging.test/\n",
    )
    envs = load_environments(p)
    assert envs == {"staging": Environment("staging", Network.TESTNET, "https://staging.test")}

    monkeypatch.setenv("AMMGATE_ENVIRONMENTS", str(p))
    merged = environments_from_env()
    assert "staging" in merged and "mainnet" in merged
    resolved = resolve_config(GatewayClientConfig(network=Network.TESTNET, environment="staging"))
    assert resolved.gateway_url == "https://staging.test"


def test_yaml_environments_shape_errors(tmp_path: Path) -> None:
    assert load_environments(_write(tmp_path / "empty.yaml", "")) == {}
    with pytest.raises(ConfigError):
        load_environments(_write(tmp_path / "list.yaml", "- a\n- b\n"))
    with pytest.raises(ConfigError):
        load_environments(_write(tmp_path / "bad.yaml", "environments:\n  x: 3\n"))


def test_load_config_from_yaml(tmp_path: Path) -> None:
    p = _write(
        tmp_path / "client.yaml",
        "variant: gateway\nnetwork: REGTEST\nenvironment: regtest\nauto_clawback: true\noutput_min_fraction: '1/4'\n",
    )
    config = load_config(p)
    assert isinstance(config, GatewayClientConfig)
    assert config.options.auto_clawback is True
    assert config.options.output_min_fraction == Fraction(1, 4)
    assert resolve_config(config).network is Network.REGTEST


def test_config_from_dict_requires_variant() -> None:
    with pytest.raises(ConfigError):
        config_from_dict({"network": "MAINNET"})
    legacy = config_from_dict({"variant": "legacy"})
    assert isinstance(legacy, LegacyClientConfig) and legacy.network is None


def test_parse_network_is_case_insensitive() -> None:
    assert parse_network("signet") is Network.SIGNET
    assert parse_network(Network.LOCAL) is Network.LOCAL
    with pytest.raises(ConfigError):
        parse_network("moonnet")
