from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from ..errors import ConfigError

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

ENV_HOST = "RESONITELINK_HOST"
ENV_PORT = "RESONITELINK_PORT"
DEFAULT_HOST = "localhost"
DEFAULT_IMPORT_NAME = "Udonarium Import"

_BLEND_MODES = ("Opaque", "Cutout", "Alpha")
_FILTER_MODES = ("Default", "Point")

__all__ = [
    "ConverterSettings",
    "RemoteSettings",
    "ProbeSettings",
    "ImageOverride",
    "BridgeSettings",
    "port_from_env",
    "load_settings",
    "read_mapping_file",
    "as_bool",
]


def as_bool(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
    raise ConfigError(f"Setting '{key}' expects a boolean, got {value!r}")


def _as_float(value: Any, key: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Setting '{key}' expects a number, got {value!r}") from exc


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Setting '{key}' expects an integer, got {value!r}") from exc


def _validate_port(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid port {value!r}") from exc
    if not 1 <= port <= 65535:
        raise ConfigError(f"Port {port} is outside 1..65535")
    return port


def port_from_env(environ: Optional[Mapping[str, str]] = None) -> Optional[int]:
    """Port from ``RESONITELINK_PORT``; unset or invalid values yield None."""
    env = os.environ if environ is None else environ
    raw = env.get(ENV_PORT)
    if not raw:
        return None
    try:
        return _validate_port(raw)
    except ConfigError:
        log.warning("Ignoring invalid %s=%r", ENV_PORT, raw)
        return None


@dataclass(frozen=True)
class ConverterSettings:
    locked_terrain_character_collider: bool = True
    table_character_collider: bool = True
    id_prefix: str = "udon-obj"

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ConverterSettings":
        if not data:
            return cls()
        base = cls()
        return cls(
            locked_terrain_character_collider=as_bool(
                data.get("locked_terrain_character_collider", base.locked_terrain_character_collider),
                "locked_terrain_character_collider",
            ),
            table_character_collider=as_bool(
                data.get("table_character_collider", base.table_character_collider),
                "table_character_collider",
            ),
            id_prefix=str(data.get("id_prefix", base.id_prefix)),
        )


@dataclass(frozen=True)
class RemoteSettings:
    """Connection and retry settings handed to a remote transport."""

    host: str = DEFAULT_HOST
    port: Optional[int] = None
    max_attempts: int = 3
    initial_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 10.0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RemoteSettings":
        env = os.environ if environ is None else environ
        return cls(host=env.get(ENV_HOST) or DEFAULT_HOST, port=port_from_env(env))

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]],
        fallback: Optional["RemoteSettings"] = None,
    ) -> "RemoteSettings":
        base = fallback or cls()
        if not data:
            return base
        retry = data.get("retry") or {}
        max_attempts = _as_int(retry.get("max_attempts", base.max_attempts), "retry.max_attempts")
        if max_attempts < 1:
            raise ConfigError("retry.max_attempts must be at least 1")
        return cls(
            host=str(data.get("host", base.host)),
            port=_validate_port(data.get("port", base.port)),
            max_attempts=max_attempts,
            initial_delay=_as_float(retry.get("initial_delay", base.initial_delay), "retry.initial_delay"),
            backoff_multiplier=_as_float(
                retry.get("backoff_multiplier", base.backoff_multiplier), "retry.backoff_multiplier"
            ),
            max_delay=_as_float(retry.get("max_delay", base.max_delay), "retry.max_delay"),
        )


@dataclass(frozen=True)
class ProbeSettings:
    enabled: bool = True
    fetch_remote: bool = True
    timeout: float = 10.0

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "ProbeSettings":
        if not data:
            return cls()
        base = cls()
        timeout = _as_float(data.get("timeout", base.timeout), "probe.timeout")
        if timeout <= 0:
            raise ConfigError("probe.timeout must be positive")
        return cls(
            enabled=as_bool(data.get("enabled", base.enabled), "probe.enabled"),
            fetch_remote=as_bool(data.get("fetch_remote", base.fetch_remote), "probe.fetch_remote"),
            timeout=timeout,
        )


@dataclass(frozen=True)
class ImageOverride:
    aspect_ratio: Optional[float] = None
    blend_mode: Optional[str] = None
    filter_mode: Optional[str] = None
    texture_value: Optional[str] = None

    @classmethod
    def from_mapping(cls, identifier: str, data: Mapping[str, Any]) -> "ImageOverride":
        if not isinstance(data, Mapping):
            raise ConfigError(f"Image override for {identifier!r} must be a mapping")
        ratio = data.get("aspect_ratio")
        blend = data.get("blend_mode")
        filter_mode = data.get("filter_mode")
        if blend is not None and blend not in _BLEND_MODES:
            raise ConfigError(f"Image override {identifier!r}: unknown blend_mode {blend!r}")
        if filter_mode is not None and filter_mode not in _FILTER_MODES:
            raise ConfigError(f"Image override {identifier!r}: unknown filter_mode {filter_mode!r}")
        ratio_value = _as_float(ratio, f"images.{identifier}.aspect_ratio") if ratio is not None else None
        if ratio_value is not None and ratio_value <= 0:
            raise ConfigError(f"Image override {identifier!r}: aspect_ratio must be positive")
        texture = data.get("texture_value")
        return cls(
            aspect_ratio=ratio_value,
            blend_mode=blend,
            filter_mode=filter_mode,
            texture_value=str(texture) if texture is not None else None,
        )


@dataclass(frozen=True)
class BridgeSettings:
    import_name: str = DEFAULT_IMPORT_NAME
    converter: ConverterSettings = field(default_factory=ConverterSettings)
    remote: RemoteSettings = field(default_factory=RemoteSettings)
    probe: ProbeSettings = field(default_factory=ProbeSettings)
    image_overrides: Dict[str, ImageOverride] = field(default_factory=dict)

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "BridgeSettings":
        remote_base = RemoteSettings.from_env(environ)
        if not data:
            return cls(remote=remote_base)
        if not isinstance(data, Mapping):
            raise ConfigError("Settings document must be a mapping")
        images = data.get("images") or {}
        if not isinstance(images, Mapping):
            raise ConfigError("'images' must map identifiers to overrides")
        return cls(
            import_name=str(data.get("import_name", DEFAULT_IMPORT_NAME)),
            converter=ConverterSettings.from_mapping(data.get("converter")),
            remote=RemoteSettings.from_mapping(data.get("remote"), fallback=remote_base),
            probe=ProbeSettings.from_mapping(data.get("probe")),
            image_overrides={str(k): ImageOverride.from_mapping(str(k), v) for k, v in images.items()},
        )

    def with_remote(self, host: Optional[str] = None, port: Optional[int] = None) -> "BridgeSettings":
        remote = self.remote
        if host:
            remote = replace(remote, host=host)
        if port is not None:
            remote = replace(remote, port=_validate_port(port))
        return replace(self, remote=remote)

    def with_probe(self, enabled: Optional[bool] = None) -> "BridgeSettings":
        if enabled is None:
            return self
        return replace(self, probe=replace(self.probe, enabled=enabled))


def read_mapping_file(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    suffix = path.suffix.lower()
    try:
        if suffix in (".yaml", ".yml"):
            return yaml.safe_load(text)
        if suffix == ".json":
            return json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc
    raise ConfigError(f"Unsupported file format '{suffix}' (expected .yaml, .yml or .json)")


def load_settings(path: Optional[PathLike], environ: Optional[Mapping[str, str]] = None) -> BridgeSettings:
    """Load settings from YAML/JSON; ``None`` yields defaults plus environment overrides."""
    if path is None:
        return BridgeSettings.from_mapping(None, environ)
    settings_path = Path(path)
    data = read_mapping_file(settings_path)
    log.info("Loaded settings from %s", settings_path)
    return BridgeSettings.from_mapping(data or {}, environ)
