"""
Runtime settings.

Priority for every value: CLI argument > environment variable > default.
"""
import os
from dataclasses import dataclass
from typing import Optional, Tuple

from service_exporter.errors import ConfigError
from service_exporter.orchestrator import DEFAULT_READY_TIMEOUT
from service_exporter.ports import DEFAULT_PORT_RANGE

TRUTHY = {"1", "true", "yes", "on"}


def parse_port_range(value):
    """
    Parse ``"<start>-<end>"`` into an inclusive port range.

    Raises:
        ConfigError: If the value is not two ports in ascending order
    """
    try:
        start, end = (int(part) for part in value.split("-", 1))
    except ValueError:
        raise ConfigError(f"invalid port range {value!r}, expected START-END") from None
    if not 0 < start <= end <= 65535:
        raise ConfigError(f"invalid port range {value!r}")
    return start, end


@dataclass
class Settings:
    ngrok_auth_token: Optional[str] = None
    kubeconfig_path: Optional[str] = None
    port_range: Tuple[int, int] = DEFAULT_PORT_RANGE
    ready_timeout: float = DEFAULT_READY_TIMEOUT
    mock: bool = False
    log_level: str = "INFO"

    def validate(self):
        if self.ready_timeout <= 0:
            raise ConfigError(f"ready timeout must be positive, got {self.ready_timeout}")
        if not self.mock and not self.ngrok_auth_token:
            raise ConfigError(
                "NGROK_AUTH_TOKEN environment variable is required when using default configuration"
            )
        return self


def load_settings(args=None, environ=None):
    """
    Build Settings from parsed CLI arguments and the environment.

    Args:
        args: argparse.Namespace (attributes may be missing or None)
        environ: Mapping to read instead of os.environ

    Returns:
        Settings: Validated settings
    """
    env = os.environ if environ is None else environ

    def pick(attr, env_name, default=None):
        value = getattr(args, attr, None) if args is not None else None
        if value is not None:
            return value
        return env.get(env_name) or default

    port_range = pick("port_range", "SERVICE_EXPORTER_PORT_RANGE")
    ready_timeout = pick("ready_timeout", "SERVICE_EXPORTER_READY_TIMEOUT", DEFAULT_READY_TIMEOUT)
    try:
        ready_timeout = float(ready_timeout)
    except ValueError:
        raise ConfigError(f"invalid ready timeout {ready_timeout!r}") from None

    mock = bool(getattr(args, "mock", False)) or env.get("SERVICE_EXPORTER_MOCK", "").lower() in TRUTHY

    settings = Settings(
        ngrok_auth_token=pick("ngrok_token", "NGROK_AUTH_TOKEN"),
        kubeconfig_path=pick("kubeconfig", "KUBECONFIG"),
        port_range=parse_port_range(port_range) if port_range else DEFAULT_PORT_RANGE,
        ready_timeout=ready_timeout,
        mock=mock,
        log_level=pick("log_level", "SERVICE_EXPORTER_LOG_LEVEL", "INFO").upper(),
    )
    return settings.validate()
