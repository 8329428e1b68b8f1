from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
from typing import TYPE_CHECKING, Any, TypeVar, overload


if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from types import ModuleType

    from ._container import Container

    C = TypeVar("C", bound=type)

logger = logging.getLogger(__name__)

_MARKER = "__wirebox_service__"


@overload
def service(cls: C, /) -> C: ...


@overload
def service(*, transient: bool = False) -> Callable[[C], C]: ...


def service(cls: Any = None, /, *, transient: bool = False) -> Any:
    """Mark a class for `discover_services`.

    Usable bare (`@service`) or with options (`@service(transient=True)`).
    The class is returned unchanged apart from the marker attribute.
    """

    def mark(target: C) -> C:
        if not inspect.isclass(target):
            msg = f"@service can only decorate classes, got {target!r}"
            raise TypeError(msg)
        # stored in the class namespace so subclasses are not marked implicitly
        setattr(target, _MARKER, {"transient": transient})
        return target

    if cls is None:
        return mark
    return mark(cls)


def is_service(obj: object) -> bool:
    return inspect.isclass(obj) and _MARKER in vars(obj)


def discover_services(container: Container, *targets: ModuleType | str) -> list[type]:
    """Register every `@service` class defined in the given modules or packages.

    Packages are walked recursively. Only classes whose `__module__` is the
    scanned module are considered, so re-exported classes are registered once,
    from the module that defines them.
    """
    found: list[type] = []
    seen: set[type] = set()

    for module in _iter_modules(targets):
        for _, obj in _defined_classes(module):
            if obj in seen or not is_service(obj):
                continue
            seen.add(obj)
            container.register(obj, transient=vars(obj)[_MARKER]["transient"])
            found.append(obj)
            logger.debug("Discovered service %s in %s", obj.__qualname__, module.__name__)

    return found


def _iter_modules(targets: tuple[ModuleType | str, ...]) -> Iterator[ModuleType]:
    visited: set[str] = set()

    for target in targets:
        module = importlib.import_module(target) if isinstance(target, str) else target
        yield from _walk(module, visited)


def _walk(module: ModuleType, visited: set[str]) -> Iterator[ModuleType]:
    if module.__name__ in visited:
        return
    visited.add(module.__name__)
    yield module

    path = getattr(module, "__path__", None)
    if path is None:
        return

    for info in pkgutil.iter_modules(path, prefix=f"{module.__name__}."):
        yield from _walk(importlib.import_module(info.name), visited)


def _defined_classes(module: ModuleType) -> list[tuple[str, type]]:
    members = [(name, obj) for name, obj in inspect.getmembers(module, inspect.isclass) if obj.__module__ == module.__name__]
    # definition order rather than getmembers' alphabetical order
    return sorted(members, key=lambda item: _first_line(item[1]))


def _first_line(cls: type) -> int:
    try:
        return inspect.getsourcelines(cls)[1]
    except (OSError, TypeError):
        return 0
