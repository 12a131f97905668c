"""Bootstrap configuration management.

Handles the tunables of a bootstrap run: Istio version, cluster sizing, log
destination and the namespaces and timeouts used by each stage. Values come
from ~/.mesh-bootstrap/config.yaml, environment variables and CLI flags.
"""

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .shared.paths import STATE_FILE, get_log_file

# Default values
DEFAULT_ISTIO_VERSION = "1.19.3"
DEFAULT_MEMORY_MB = 8192
DEFAULT_CPUS = 4
DEFAULT_KUBERNETES_VERSION = "v1.28.0"
DEFAULT_DRIVER = "docker"
DEFAULT_ACCESS_INFO_FILE = "istio_access_info.txt"

AUTHZ_ALLOW_ALL = "allow-all"
AUTHZ_LEAST_PRIVILEGE = "least-privilege"
AUTHZ_MODES = (AUTHZ_ALLOW_ALL, AUTHZ_LEAST_PRIVILEGE)

# Environment variable mappings
ENV_VARS = {
    "istio_version": "MESH_BOOTSTRAP_ISTIO_VERSION",
    "memory_mb": "MESH_BOOTSTRAP_MEMORY",
    "cpus": "MESH_BOOTSTRAP_CPUS",
    "log_file": "MESH_BOOTSTRAP_LOG_FILE",
    "work_dir": "MESH_BOOTSTRAP_WORK_DIR",
    "authz_mode": "MESH_BOOTSTRAP_AUTHZ_MODE",
    "state_file": "MESH_BOOTSTRAP_STATE_FILE",
}

_INT_KEYS = {
    "memory_mb",
    "cpus",
    "addon_timeout",
    "workload_timeout",
    "control_plane_timeout",
}
_PATH_KEYS = {"log_file", "work_dir", "state_file"}


@dataclass(frozen=True)
class BootstrapConfig:
    """Immutable configuration for one bootstrap run."""

    istio_version: str = DEFAULT_ISTIO_VERSION
    memory_mb: int = DEFAULT_MEMORY_MB
    cpus: int = DEFAULT_CPUS
    kubernetes_version: str = DEFAULT_KUBERNETES_VERSION
    driver: str = DEFAULT_DRIVER
    log_file: Path = field(default_factory=get_log_file)
    work_dir: Path = field(default_factory=Path.cwd)
    app_namespace: str = "default"
    istio_namespace: str = "istio-system"
    install_profile: str = "demo"
    control_plane_timeout: int = 300
    addon_timeout: int = 600
    workload_timeout: int = 300
    test_user: str = "jason"
    authz_mode: str = AUTHZ_ALLOW_ALL
    access_info_file: str = DEFAULT_ACCESS_INFO_FILE
    state_file: Path = STATE_FILE

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.authz_mode not in AUTHZ_MODES:
            raise ConfigError(
                f"Invalid authz_mode '{self.authz_mode}'. "
                f"Expected one of: {', '.join(AUTHZ_MODES)}"
            )

    @property
    def istio_dir(self) -> Path:
        """Directory the Istio release is unpacked into."""
        return self.work_dir / f"istio-{self.istio_version}"

    @property
    def istio_bin_dir(self) -> Path:
        return self.istio_dir / "bin"

    @property
    def access_info_path(self) -> Path:
        return self.work_dir / self.access_info_file

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def with_overrides(self, **overrides: Any) -> "BootstrapConfig":
        """Return a copy with non-None overrides applied (sourced as 'cli')."""
        applied = {k: _coerce(k, v) for k, v in overrides.items() if v is not None}
        if not applied:
            return self
        sources = dict(self._sources)
        sources.update({k: "cli" for k in applied})
        return replace(self, _sources=sources, **applied)


def _coerce(key: str, value: Any) -> Any:
    if key in _INT_KEYS:
        return int(value)
    if key in _PATH_KEYS:
        return Path(value).expanduser()
    return str(value)


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        Path to ~/.mesh-bootstrap/config.yaml
    """
    return Path.home() / ".mesh-bootstrap" / "config.yaml"


def load_config(config_path: str | Path | None = None) -> BootstrapConfig:
    """Load bootstrap configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.mesh-bootstrap/config.yaml or config_path)
    3. Defaults

    CLI flags are layered on top by the caller via with_overrides().

    Args:
        config_path: Optional explicit config file.

    Returns:
        BootstrapConfig with values and sources
    """
    known = {f.name for f in fields(BootstrapConfig) if not f.name.startswith("_")}
    values: dict[str, Any] = {}
    sources: dict[str, str] = {}

    path = Path(config_path).expanduser() if config_path else get_config_path()
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        for key, value in file_config.items():
            if key not in known:
                continue
            try:
                values[key] = _coerce(key, value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for '{key}' in {path}: {e}") from e
            sources[key] = "config file"
    elif config_path:
        raise ConfigError(f"Config file not found: {path}")

    for key, env_name in ENV_VARS.items():
        raw = os.environ.get(env_name)
        if not raw:
            continue
        try:
            values[key] = _coerce(key, raw)
        except ValueError:
            continue  # Ignore malformed numbers, keep the lower-precedence value
        sources[key] = "environment"

    return BootstrapConfig(_sources=sources, **values)
