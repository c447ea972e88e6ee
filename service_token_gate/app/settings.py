"""
Settings for the Static Token Gate service.
"""

from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field

from shared.config import BaseConfig, ServiceConfig
from shared.errors import ConfigurationError
from .domain.access_tokens import MIN_TOKEN_LENGTH, AccessTokenRecord

PLUGIN_NAME = "better-static-token"
SERVICE_NAME = "token_gate"
DEFAULT_PORT = 4873

# Registry config keys that differ from the settings field names.
_REGISTRY_KEYS = {
    "staticAccessTokens": "static_access_tokens",
}


class MiddlewareToggle(BaseModel):
    """Per-middleware block of the registry config."""

    model_config = ConfigDict(extra="allow")

    enabled: bool = False


class GateSettings(ServiceConfig):
    """Configuration for the credential gate and its token exchange."""

    middlewares: Dict[str, MiddlewareToggle] = Field(default_factory=dict)
    static_access_tokens: List[AccessTokenRecord] = Field(default_factory=list)
    min_token_length: int = MIN_TOKEN_LENGTH

    policy: Literal["exchange", "readonly"] = "exchange"

    token_cache_ttl_seconds: float = 60.0
    token_cache_sweep_interval_seconds: float = 30.0
    single_flight: bool = True

    token_issuer: Literal["jwt", "registry"] = "jwt"
    jwt_secret: Optional[str] = None
    jwt_expires_in_seconds: int = 7 * 24 * 3600
    registry_url: str = "http://localhost:4873"

    port: int = DEFAULT_PORT

    def __init__(self, service_name: str = SERVICE_NAME, port: Optional[int] = None, **kwargs):
        # Init kwargs outrank TOKENGATE_PORT.
        if port is not None:
            kwargs["port"] = port
        BaseConfig.__init__(self, service_name=service_name, **kwargs)

    def is_plugin_enabled(self) -> bool:
        """The gate runs only when its middleware block says ``enabled``."""
        toggle = self.middlewares.get(PLUGIN_NAME)
        return bool(toggle and toggle.enabled)


def load_gate_settings(path: Optional[Union[str, Path]] = None, **overrides: Any) -> GateSettings:
    """Load settings from a registry-style YAML file plus environment.

    ``path`` defaults to ``TOKENGATE_CONFIG_FILE``. Keys of the file that are
    not gate settings (storage, uplinks, ...) are ignored.
    """
    if path is None:
        path = BaseConfig().config_file

    values: Dict[str, Any] = {}
    if path is not None:
        values = _read_yaml(Path(path))

    values.update(overrides)
    return GateSettings(**values)


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Unable to read gate config file {path}",
            details={"error": str(e)},
        ) from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Gate config file {path} must contain a mapping")

    known = set(GateSettings.model_fields)
    values: Dict[str, Any] = {}
    for key, value in raw.items():
        field_name = _REGISTRY_KEYS.get(key, key)
        if field_name in known:
            values[field_name] = value
    return values
