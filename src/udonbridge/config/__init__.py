from .settings import (
    BridgeSettings,
    ConverterSettings,
    ProbeSettings,
    RemoteSettings,
    load_settings,
)

__all__ = [
    "BridgeSettings",
    "ConverterSettings",
    "ProbeSettings",
    "RemoteSettings",
    "load_settings",
]
