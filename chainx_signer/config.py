"""Shared configuration loader for the signer client."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".chainx_signer.yaml"
DEFAULT_KEYSTORE_PATH = Path.home() / ".chainx_signer" / "appkey.yaml"
DEFAULT_PORTS = (10013, 10014, 10015)
DEFAULT_PLUGIN = "chainx-signer-py"
ENV_PREFIX = "CHAINX_SIGNER_"


@dataclass
class SignerConfig:
    """Configuration container for locating and talking to a local signer."""

    plugin: str = DEFAULT_PLUGIN
    host: str = "127.0.0.1"
    ports: tuple[int, ...] = DEFAULT_PORTS
    probe_timeout: float = 0.5
    open_timeout: float = 5.0
    auto_reconnect: bool = True
    reconnect_delay: float = 1.0
    heartbeat_interval: float = 25.0
    origin: str | None = None
    keystore_path: Path = field(default_factory=lambda: DEFAULT_KEYSTORE_PATH)


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with a 'signer' section")
    return loaded


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def _coerce_float(raw: Any, *, source: str, minimum: float = 0.0) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid number in {source}: {raw}") from exc
    if value < minimum:
        raise ConfigurationError(f"Value in {source} must be >= {minimum}: {raw}")
    return value


def _coerce_port(raw: Any, *, source: str) -> int:
    try:
        port = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid port in {source}: {raw}") from exc
    if not 0 < port < 65536:
        raise ConfigurationError(f"Port out of range in {source}: {raw}")
    return port


def parse_ports(raw: Any, *, source: str) -> tuple[int, ...] | None:
    """Parse ``"10013-10015"``, ``"10013,10020"``, a single port, or a list."""

    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        ports = [_coerce_port(item, source=source) for item in raw]
    elif isinstance(raw, int) and not isinstance(raw, bool):
        ports = [_coerce_port(raw, source=source)]
    elif isinstance(raw, str):
        ports = []
        for piece in raw.split(","):
            piece = piece.strip()
            if not piece:
                continue
            if "-" in piece:
                start_raw, _, end_raw = piece.partition("-")
                start = _coerce_port(start_raw, source=source)
                end = _coerce_port(end_raw, source=source)
                if end < start:
                    raise ConfigurationError(f"Invalid port range in {source}: {piece}")
                ports.extend(range(start, end + 1))
            else:
                ports.append(_coerce_port(piece, source=source))
    else:
        raise ConfigurationError(f"Invalid ports in {source}: {raw!r}")

    if not ports:
        raise ConfigurationError(f"No ports given in {source}")
    return tuple(ports)


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def load_signer_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> SignerConfig:
    """Load signer configuration from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None
    path = Path(config_path).expanduser() if explicit_path else DEFAULT_CONFIG_PATH

    file_config = _load_config_file(path, required=explicit_path)
    section = file_config.get("signer", {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected 'signer' to be a mapping in {path}")

    override_map = dict(overrides or {})

    def env_value(name: str) -> str | None:
        value = env_map.get(ENV_PREFIX + name)
        return value if value not in (None, "") else None

    def pick(key: str, env_name: str) -> tuple[Any, Any, Any]:
        return override_map.get(key), env_value(env_name), section.get(key)

    defaults = SignerConfig()

    plugin = _first_value(*pick("plugin", "PLUGIN"), default=defaults.plugin)
    host = _first_value(*pick("host", "HOST"), default=defaults.host)

    override_ports, env_ports, file_ports = pick("ports", "PORTS")
    ports = _first_value(
        parse_ports(override_ports, source="overrides"),
        parse_ports(env_ports, source="environment"),
        parse_ports(file_ports, source=f"{path} signer.ports"),
        default=defaults.ports,
    )

    def pick_float(key: str, env_name: str, default: float) -> float:
        override, from_env, from_file = pick(key, env_name)
        return _first_value(
            _coerce_float(override, source="overrides"),
            _coerce_float(from_env, source="environment"),
            _coerce_float(from_file, source=f"{path} signer.{key}"),
            default=default,
        )

    override_reconnect, env_reconnect, file_reconnect = pick("auto_reconnect", "AUTO_RECONNECT")
    auto_reconnect = _first_value(
        _coerce_bool(override_reconnect),
        _coerce_bool(env_reconnect),
        _coerce_bool(file_reconnect),
        default=defaults.auto_reconnect,
    )

    keystore_raw = _first_value(*pick("keystore_path", "KEYSTORE"))
    keystore_path = Path(keystore_raw).expanduser() if keystore_raw else defaults.keystore_path

    return SignerConfig(
        plugin=str(plugin),
        host=str(host),
        ports=ports,
        probe_timeout=pick_float("probe_timeout", "PROBE_TIMEOUT", defaults.probe_timeout),
        open_timeout=pick_float("open_timeout", "OPEN_TIMEOUT", defaults.open_timeout),
        auto_reconnect=bool(auto_reconnect),
        reconnect_delay=pick_float("reconnect_delay", "RECONNECT_DELAY", defaults.reconnect_delay),
        heartbeat_interval=pick_float(
            "heartbeat_interval", "HEARTBEAT_INTERVAL", defaults.heartbeat_interval
        ),
        origin=_first_value(*pick("origin", "ORIGIN")),
        keystore_path=keystore_path,
    )
