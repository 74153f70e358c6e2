"""Exception hierarchy for carguix."""

from typing import Optional


class CarguixError(Exception):
    """Base class for every error carguix reports to the user."""


class ConfigError(CarguixError):
    """A configuration file could not be read."""


class IndexUpdateError(CarguixError):
    """The local crates.io index could not be refreshed."""


class HashError(CarguixError):
    """The content hash of a crate source could not be computed."""

    def __init__(self, message: str, url: str):
        super().__init__(message)
        self.url = url


class ResolutionError(CarguixError):
    """Dependency resolution failed; no graph is produced."""


class RegistryError(ResolutionError):
    """A crate or version is unknown to the registry, or the registry is unreachable."""

    def __init__(self, message: str, name: str, version: Optional[str] = None):
        super().__init__(message)
        self.name = name
        self.version = version


class VersionNotFoundError(ResolutionError):
    """No available version satisfies a requirement."""

    def __init__(self, name: str, requirement: Optional[str]):
        if requirement is None:
            message = f"no version of crate {name} found"
        else:
            message = f"no version of crate {name} matching requirement {requirement} found"
        super().__init__(message)
        self.name = name
        self.requirement = requirement


class ManifestError(CarguixError):
    """A local Cargo.toml could not be read or uses an unsupported source."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path
