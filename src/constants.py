"""Constants used in the project."""

import logging
import os
from enum import Enum

from errors import ConfigError

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    RESOLUTION_ERROR = 1
    CONNECTION_ERROR = 2
    FILE_ERROR = 3
    HASH_ERROR = 4


class DependencyKinds(Enum):
    """Dependency kinds recorded in the crates.io index.

    Args:
        Enum (string): Dependency kinds as spelled in index entries.
    """

    NORMAL = "normal"
    BUILD = "build"
    DEV = "dev"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_INDEX = os.environ.get("CARGUIX_INDEX_URL", "https://index.crates.io/")
    REGISTRY_URL_API = "https://crates.io/api/v1/crates/"
    DOWNLOAD_URL_TEMPLATE = "https://crates.io/api/v1/crates/{name}/{version}/download"
    INDEX_PATH = os.environ.get("CARGUIX_INDEX_PATH", "_index")
    HASH_DB_PATH = "hash.json"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    USER_AGENT = "carguix (https://github.com/carguix/carguix)"
    HTTP_RETRY_MAX = 3
    HTTP_CACHE_TTL_SEC = 300
    DEFAULT_JOBS = 1
    DEFAULT_POLICY = "earliest"
    POLICIES = ["earliest", "latest"]
    BUILD_SYSTEM = "cargo-build-system"
    HASH_PLACEHOLDER = "0000000000000000000000000000000000000000000000000000"

    CONFIG_LOCATIONS = [
        "carguix.yml",
        "carguix.yaml",
        os.path.join("~", ".config", "carguix", "carguix.yml"),
    ]


# Config keys accepted per section, mapped to the Constants attribute they override.
_CONFIG_KEYS = {
    "registry": {
        "index_url": "REGISTRY_URL_INDEX",
        "api_url": "REGISTRY_URL_API",
        "download_url_template": "DOWNLOAD_URL_TEMPLATE",
        "index_path": "INDEX_PATH",
        "request_timeout": "REQUEST_TIMEOUT",
        "retries": "HTTP_RETRY_MAX",
    },
    "hash": {
        "db_path": "HASH_DB_PATH",
    },
    "resolver": {
        "jobs": "DEFAULT_JOBS",
        "policy": "DEFAULT_POLICY",
    },
}


def _find_config_file(explicit_path=None):
    """Return the first configuration file that exists, or None."""
    candidates = []
    if explicit_path:
        candidates.append(explicit_path)
    env_path = os.environ.get("CARGUIX_CONFIG")
    if env_path:
        candidates.append(env_path)
    candidates.extend(Constants.CONFIG_LOCATIONS)
    for candidate in candidates:
        path = os.path.expanduser(candidate)
        if os.path.isfile(path):
            return path
    return None


def _load_yaml_config(explicit_path=None):
    """Load the YAML configuration file.

    Args:
        explicit_path (str, optional): Path given on the command line. Takes
            precedence over $CARGUIX_CONFIG and the default locations.

    Raises:
        ConfigError: If the file exists but cannot be read or parsed.

    Returns:
        dict: Parsed configuration, empty when no file was found.
    """
    import yaml  # pylint: disable=import-outside-toplevel

    if explicit_path and not os.path.isfile(os.path.expanduser(explicit_path)):
        raise ConfigError(f"configuration file not found: {explicit_path}")

    path = _find_config_file(explicit_path)
    if path is None:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read configuration file {path}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"configuration file {path} must contain a mapping")
    logger.debug("Loaded configuration from %s", path)
    return data


def apply_config(config):
    """Apply configuration sections onto Constants.

    Unknown sections and keys are ignored.

    Args:
        config (dict): Parsed configuration as returned by _load_yaml_config.
    """
    for section, keys in _CONFIG_KEYS.items():
        values = config.get(section)
        if not isinstance(values, dict):
            continue
        for key, attr in keys.items():
            if key in values and values[key] is not None:
                current = getattr(Constants, attr)
                value = values[key]
                if isinstance(current, int) and not isinstance(current, bool):
                    try:
                        value = int(value)
                    except (TypeError, ValueError) as exc:
                        raise ConfigError(f"{section}.{key} must be an integer") from exc
                setattr(Constants, attr, value)
