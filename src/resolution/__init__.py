"""Transitive dependency resolution."""

from .resolver import DependencyResolver, RegistryClient  # noqa: F401

__all__ = ["DependencyResolver", "RegistryClient"]
