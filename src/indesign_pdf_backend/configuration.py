"""
Service configuration built once at startup.

Defaults live on the ``ServiceConfig`` dataclass. ``load_config`` layers an
optional YAML file, environment variables (``.env`` is honoured) and explicit
overrides on top of them with OmegaConf, validates the result against the
structured schema and hands back a plain ``ServiceConfig`` object. Components
receive that object through their constructors and never read the
environment themselves.
"""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from omegaconf import OmegaConf

CONFIG_PATH_ENV = "INDESIGN_CONFIG_PATH"

# Environment variable -> config key
ENV_KEYS: Dict[str, str] = {
    "HOST": "host",
    "PORT": "port",
    "INDESIGN_APP_PATH": "indesign_app_path",
    "INDESIGN_APP_NAME": "indesign_app_name",
    "TEMP_UPLOAD_PATH": "temp_upload_path",
    "TEMP_EXTRACT_PATH": "temp_extract_path",
    "SCRATCH_DIR": "scratch_dir",
    "MAX_FILE_SIZE_MB": "max_file_size_mb",
    "PROCESS_TIMEOUT_SECONDS": "process_timeout_seconds",
    "KILL_GRACE_SECONDS": "kill_grace_seconds",
    "CLEANUP_MAX_AGE_HOURS": "cleanup_max_age_hours",
    "CLEANUP_INTERVAL_HOURS": "cleanup_interval_hours",
    "LOG_LEVEL": "log_level",
}


@dataclass
class ServiceConfig:
    """
    Runtime settings for the conversion service.

    Attributes:
        host: Interface uvicorn binds to
        port: HTTP port
        indesign_app_path: Override for the InDesign binary; ``None`` selects the
            per-platform default
        indesign_app_name: Application name targeted by the macOS AppleScript wrapper
        temp_upload_path: Directory receiving uploaded archives
        temp_extract_path: Directory holding one extraction folder per request
        scratch_dir: Directory for generated automation scripts
        max_file_size_mb: Upload size limit in megabytes
        process_timeout_seconds: Wall-clock bound for one InDesign run
        kill_grace_seconds: Wait between terminate and kill after a timeout
        cleanup_max_age_hours: Age after which leftover temp files are swept
        cleanup_interval_hours: Period of the background sweep; 0 disables it
        log_level: Root logging level
    """

    host: str = "0.0.0.0"
    port: int = 5000
    indesign_app_path: Optional[str] = None
    indesign_app_name: str = "Adobe InDesign 2026"
    temp_upload_path: str = "./temp/uploads"
    temp_extract_path: str = "./temp/extracted"
    scratch_dir: str = field(default_factory=tempfile.gettempdir)
    max_file_size_mb: int = 100
    process_timeout_seconds: float = 300.0
    kill_grace_seconds: float = 5.0
    cleanup_max_age_hours: float = 24.0
    cleanup_interval_hours: float = 6.0
    log_level: str = "INFO"

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def upload_dir(self) -> Path:
        return Path(self.temp_upload_path).resolve()

    @property
    def extract_dir(self) -> Path:
        return Path(self.temp_extract_path).resolve()

    @property
    def scratch_path(self) -> Path:
        return Path(self.scratch_dir).resolve()


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for env_name, key in ENV_KEYS.items():
        value = environ.get(env_name)
        if value is not None and value != "":
            overrides[key] = value
    return overrides


def _file_overrides(config_path: Optional[Path]) -> Dict[str, Any]:
    if config_path is None:
        return {}
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found at {config_path}")
    loaded = OmegaConf.to_container(OmegaConf.load(config_path), resolve=True)
    return dict(loaded or {})  # type: ignore[arg-type]


def load_config(
    config_path: Path | None = None,
    environ: Dict[str, str] | None = None,
    use_dotenv: bool = True,
    **overrides: Any,
) -> ServiceConfig:
    """
    Build the service configuration.

    Precedence, lowest first: dataclass defaults, YAML file, environment,
    keyword overrides.

    Args:
        config_path: Optional YAML file; falls back to ``$INDESIGN_CONFIG_PATH``
        environ: Environment mapping (default: ``os.environ``)
        use_dotenv: Load a ``.env`` file into the process environment first
        **overrides: Final values for individual keys

    Returns:
        A validated ServiceConfig

    Raises:
        omegaconf.errors.ValidationError: If a value does not fit its field type
        omegaconf.errors.ConfigKeyError: If an unknown key is supplied
    """
    if use_dotenv and environ is None:
        load_dotenv()
    env = dict(os.environ if environ is None else environ)

    if config_path is None and env.get(CONFIG_PATH_ENV):
        config_path = Path(env[CONFIG_PATH_ENV])

    base = OmegaConf.structured(ServiceConfig)
    OmegaConf.set_struct(base, True)
    merged = OmegaConf.merge(
        base,
        OmegaConf.create(_file_overrides(config_path)),
        OmegaConf.create(_env_overrides(env)),
        OmegaConf.create(overrides),
    )
    return OmegaConf.to_object(merged)  # type: ignore[return-value]


def describe_config(config: ServiceConfig) -> Dict[str, Any]:
    """Plain dictionary view of a config, used for startup logging and diagnostics."""
    return OmegaConf.to_container(OmegaConf.structured(config), resolve=True)  # type: ignore[return-value]
