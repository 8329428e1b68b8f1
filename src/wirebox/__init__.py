"""Minimal dependency injection container.

This package provides a small dependency injection container for Python that
creates and wires objects on demand, resolving constructor dependencies from
type hints or from explicitly declared dependency lists.

Exports:
- `Container`: Registry and resolver supporting class and factory registration,
  singleton / transient lifetimes and eager `compile()` validation.
- `Lifetime`: Enum for controlling object lifetimes (singleton or transient).
- `ResolutionError` and its subclasses `ServiceNotRegistered`,
  `CircularDependency` and `UnresolvableDependency`.
- `service`, `is_service`, `discover_services`: optional marker-based discovery
  that registers decorated classes found in modules and packages.
"""

from ._container import (
    CircularDependency,
    Container,
    Lifetime,
    Registration,
    ResolutionError,
    ServiceNotRegistered,
    UnresolvableDependency,
)
from ._discovery import discover_services, is_service, service


__all__ = [
    "CircularDependency",
    "Container",
    "Lifetime",
    "Registration",
    "ResolutionError",
    "ServiceNotRegistered",
    "UnresolvableDependency",
    "discover_services",
    "is_service",
    "service",
]
