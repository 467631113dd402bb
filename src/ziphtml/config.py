"""Configuration management for ziphtml.

Handles loading .ziphtml.yaml files with directory traversal,
environment variable overrides, and default values.
"""

import codecs
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".ziphtml.yaml"
ENV_OUTPUT = "ZIPHTML_OUTPUT"
ENV_ENCODING = "ZIPHTML_ENCODING"

DEFAULT_HTML_EXTENSIONS = [".html"]
DEFAULT_IMAGE_EXTENSIONS = [".png", ".jpg", ".jpeg", ".gif", ".svg", ".webp"]


@dataclass
class ZiphtmlConfig:
    """Complete ziphtml configuration."""

    output: str = "updated.zip"  # Default name for packed archives
    encoding: str = "utf-8"  # Encoding of HTML entries
    html_extensions: list[str] = field(
        default_factory=lambda: list(DEFAULT_HTML_EXTENSIONS)
    )
    image_extensions: list[str] = field(
        default_factory=lambda: list(DEFAULT_IMAGE_EXTENSIONS)
    )
    skip_tags: list[str] = field(default_factory=list)  # Never indexed
    config_path: Path | None = None  # Path where config was loaded from

    def validate(self) -> None:
        """Validate configuration.

        Raises:
            ConfigError: If configuration is invalid.
        """
        if not self.output or not self.output.strip():
            raise ConfigError("'output' cannot be empty")

        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ConfigError(f"Unknown encoding: {self.encoding}")

        for key in ("html_extensions", "image_extensions"):
            extensions = getattr(self, key)
            if not extensions:
                raise ConfigError(f"'{key}' must be a non-empty list")
            for ext in extensions:
                if not ext.startswith("."):
                    raise ConfigError(
                        f"Invalid extension in '{key}': {ext!r} "
                        "(must start with '.')"
                    )


def find_config_file(start_path: Path | None = None) -> Path | None:
    """Find .ziphtml.yaml by traversing up from start_path.

    Args:
        start_path: Directory to start searching from. Defaults to cwd.

    Returns:
        Path to config file if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    # An archive path starts the search in its directory
    if start_path.is_file():
        start_path = start_path.parent

    current = start_path
    while True:
        config_path = current / CONFIG_FILENAME
        if config_path.is_file():
            return config_path

        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    config_path: Path | None = None,
    start_path: Path | None = None,
    output_override: str | None = None,
) -> ZiphtmlConfig:
    """Load configuration from file, environment, and overrides.

    Priority (highest to lowest):
    1. Function arguments (output_override)
    2. Environment variables (ZIPHTML_OUTPUT, ZIPHTML_ENCODING)
    3. Config file (.ziphtml.yaml)
    4. Defaults

    Args:
        config_path: Explicit path to config file. If None, searches.
        start_path: Directory to start config file search from.
        output_override: Override output name from CLI argument.

    Returns:
        Loaded and validated configuration.
    """
    config = ZiphtmlConfig()

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_file(start_path)

    if config_path is not None:
        config = _load_config_file(config_path)
        config.config_path = config_path

    env_output = os.environ.get(ENV_OUTPUT)
    if env_output:
        config.output = env_output

    env_encoding = os.environ.get(ENV_ENCODING)
    if env_encoding:
        config.encoding = env_encoding

    if output_override is not None:
        config.output = output_override

    config.validate()
    return config


def _load_config_file(config_path: Path) -> ZiphtmlConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to .ziphtml.yaml file.

    Returns:
        Configuration loaded from file.

    Raises:
        ConfigError: If file cannot be read or parsed.
    """
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {config_path} must contain a mapping")

    config = ZiphtmlConfig(config_path=config_path)

    if "output" in data:
        config.output = str(data["output"])

    if "encoding" in data:
        config.encoding = str(data["encoding"])

    for key in ("html_extensions", "image_extensions", "skip_tags"):
        if key in data:
            if not isinstance(data[key], list):
                raise ConfigError(f"'{key}' must be a list in {config_path}")
            values = [str(v) for v in data[key]]
            if key != "skip_tags":
                values = [v.lower() for v in values]
            setattr(config, key, values)

    return config


def create_default_config(path: Path | None = None) -> Path:
    """Create a default .ziphtml.yaml config file.

    Args:
        path: Directory to create config in. Defaults to cwd.

    Returns:
        Path to created config file.

    Raises:
        ConfigError: If file already exists or cannot be written.
    """
    if path is None:
        path = Path.cwd()
    else:
        path = Path(path)

    config_path = path / CONFIG_FILENAME

    if config_path.exists():
        raise ConfigError(f"Config file already exists: {config_path}")

    config_content = """# ziphtml configuration

# Default file name for packed archives (or use ZIPHTML_OUTPUT env var)
output: "updated.zip"

# Encoding of HTML documents inside archives (or use ZIPHTML_ENCODING)
encoding: "utf-8"

# Entries treated as editable HTML documents
html_extensions:
  - ".html"

# Entries shown in previews
image_extensions:
  - ".png"
  - ".jpg"
  - ".jpeg"
  - ".gif"
  - ".svg"
  - ".webp"

# Text inside these tags is never offered for editing (uncomment to enable)
# skip_tags:
#   - "script"
#   - "style"
"""

    try:
        config_path.write_text(config_content)
    except OSError as e:
        raise ConfigError(f"Cannot write config file: {e}") from e

    return config_path


def config_to_dict(config: ZiphtmlConfig) -> dict[str, Any]:
    """Convert config to dictionary for display."""
    return {
        "output": config.output,
        "encoding": config.encoding,
        "html_extensions": list(config.html_extensions),
        "image_extensions": list(config.image_extensions),
        "skip_tags": list(config.skip_tags) if config.skip_tags else None,
        "config_path": str(config.config_path) if config.config_path else None,
    }
