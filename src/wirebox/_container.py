from __future__ import annotations

import inspect
import logging
import typing
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import (
    TYPE_CHECKING,
    Any,
    TypeVar,
    get_type_hints,
    overload,
)


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Iterator, Mapping, Sequence

    T = TypeVar("T")

    ServiceId = Hashable


class Lifetime(Enum):
    SINGLETON = "singleton"
    TRANSIENT = "transient"


@dataclass(frozen=True)
class Registration:
    producer: Callable[[], object]
    lifetime: Lifetime
    cls: type | None = None  # set for class producers only
    dependencies: tuple[Any, ...] | None = None  # declared ids, None means introspect


class ResolutionError(RuntimeError):
    pass


class ServiceNotRegistered(ResolutionError, KeyError):  # noqa: N818
    def __init__(self, service_id: object) -> None:
        self.service_id = service_id
        super().__init__(f"Service {_id_repr(service_id)!r} is not registered.")

    def __str__(self) -> str:
        # KeyError.__str__ would quote the whole message
        return str(self.args[0])


class CircularDependency(ResolutionError):  # noqa: N818
    def __init__(self, service_id: object, chain: Sequence[object] = ()) -> None:
        self.service_id = service_id
        self.chain = tuple(chain) or (service_id, service_id)
        path = " -> ".join(_id_repr(i) for i in self.chain)
        super().__init__(f"Circular reference detected for service {_id_repr(service_id)!r}: {path}")


class UnresolvableDependency(ResolutionError):  # noqa: N818
    def __init__(self, cls: type, index: int, parameter: str, reason: str) -> None:
        self.cls = cls
        self.index = index
        self.parameter = parameter
        super().__init__(
            f"Unable to resolve dependency for '{cls.__qualname__}': "
            f"constructor parameter #{index} '{parameter}' {reason}."
        )


class Container:
    """Minimal DI container.

    - register classes (constructor injection) or zero-argument factories
    - lifetimes: singleton (default) / transient
    - compile() resolves everything eagerly to surface missing services and cycles.

    A container owns all of its state; separate containers never share
    registrations or instances. Resolution is single-threaded: a container
    must not be used from several threads at once.
    """

    def __init__(self) -> None:
        self._registrations: dict[Any, Registration] = {}
        self._singletons: dict[Any, object] = {}
        # insertion ordered so the current resolution stack can be reported
        self._resolving: dict[Any, None] = {}

    def __contains__(self, service_id: object) -> bool:
        return service_id in self._registrations

    @property
    def registrations(self) -> Mapping[Any, Registration]:
        """Read-only view of the registry, in registration order."""
        return MappingProxyType(self._registrations)

    def is_transient(self, service_id: ServiceId) -> bool:
        reg = self._registrations.get(service_id)
        return reg is not None and reg.lifetime is Lifetime.TRANSIENT

    def register(
        self,
        service_id: type,
        transient: bool = False,  # noqa: FBT001, FBT002
        *,
        dependencies: Sequence[ServiceId] | None = None,
    ) -> None:
        """Register a class to be built by constructor injection.

        Constructor parameters are resolved through `get`, either from the
        explicitly declared `dependencies` or from the `__init__` type hints.
        Nothing about the parameters is checked until the class is resolved.

        Example:
          container.register(Logger)
          container.register(Mailer, transient=True)
          container.register(Repo, dependencies=["db"])

        """
        if not inspect.isclass(service_id):
            msg = f"register() needs a class to construct, got {service_id!r}. Use register_factory() instead."
            raise TypeError(msg)

        declared = tuple(dependencies) if dependencies is not None else None
        constructor = Constructor(self)

        def produce() -> object:
            return constructor.construct(service_id, declared)

        self._store(
            service_id,
            Registration(producer=produce, lifetime=_lifetime(transient), cls=service_id, dependencies=declared),
        )

    def register_factory(
        self,
        service_id: ServiceId,
        factory: Callable[[], T],
        transient: bool = False,  # noqa: FBT001, FBT002
    ) -> None:
        """Register a zero-argument callable that builds the service itself.

        Example:
          container.register_factory(Logger, lambda: Logger("app"))
          container.register_factory("db", connect, transient=True)

        """
        if not callable(factory):
            msg = f"Factory for {_id_repr(service_id)!r} must be callable, got {factory!r}"
            raise TypeError(msg)

        self._store(service_id, Registration(producer=factory, lifetime=_lifetime(transient)))

    def _store(self, service_id: ServiceId, registration: Registration) -> None:
        # any cached singleton for the id stays in place
        self._registrations[service_id] = registration
        logger.debug("Registered %s (%s)", _id_repr(service_id), registration.lifetime.value)

    def compile(self) -> None:
        """Resolve every registered service once, in registration order.

        Stops at the first failing service and re-raises its error. Singletons
        built before the failure stay cached.
        """
        logger.debug("Compiling %d registrations", len(self._registrations))
        # registrations made by factories while compiling are not visited
        for service_id in list(self._registrations):
            self.get(service_id)
        logger.debug("Compiled %d registrations", len(self._registrations))

    @overload
    def get(self, service_id: type[T]) -> T: ...

    @overload
    def get(self, service_id: ServiceId) -> object: ...

    def get(self, service_id: ServiceId) -> object:
        """Resolve the service id to an instance.

        - A cached singleton is returned without calling its producer.
        - Unknown ids raise `ServiceNotRegistered`.
        - Re-entering an id that is still being produced raises `CircularDependency`.
        """
        if service_id in self._singletons and not self.is_transient(service_id):
            logger.debug("Singleton cache hit for %s", _id_repr(service_id))
            return self._singletons[service_id]

        reg = self._registrations.get(service_id)
        if reg is None:
            raise ServiceNotRegistered(service_id)

        with self._resolution(service_id):
            if reg.cls is None:
                logger.debug("Invoking factory for %s", _id_repr(service_id))
            instance = reg.producer()

        if reg.lifetime is Lifetime.SINGLETON:
            self._singletons[service_id] = instance

        return instance

    @contextmanager
    def _resolution(self, service_id: ServiceId) -> Iterator[None]:
        if service_id in self._resolving:
            stack = list(self._resolving)
            chain = [*stack[stack.index(service_id) :], service_id]
            raise CircularDependency(service_id, chain)

        self._resolving[service_id] = None
        try:
            yield
        finally:
            del self._resolving[service_id]


class Constructor:
    def __init__(self, resolver: Container) -> None:
        self._resolver = resolver

    def construct(self, cls: type[T], declared: tuple[Any, ...] | None = None) -> T:
        func = _find_constructor(cls)
        params = self._injectable_parameters(cls, func) if func is not None else []

        if declared is not None:
            dependency_ids = self._check_declared(cls, params, declared)
        else:
            hints = _get_constructor_type_hints(cls, func) if func is not None else {}
            dependency_ids = [self._dependency_id(cls, index, p, hints) for index, p in enumerate(params)]

        # one at a time, each fully resolved before the next
        args = [self._resolver.get(dependency_id) for dependency_id in dependency_ids]

        logger.debug("Constructing %s with %d dependencies", cls.__qualname__, len(args))
        return cls(*args)

    def _injectable_parameters(self, cls: type, func: Callable[..., Any]) -> list[inspect.Parameter]:
        try:
            sig = inspect.signature(func)
        except (TypeError, ValueError) as e:
            raise UnresolvableDependency(cls, 0, "<signature>", f"cannot be read ({e})") from e

        # drop the bound self / cls
        return [
            p
            for p in list(sig.parameters.values())[1:]
            if p.kind not in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD)
        ]

    def _check_declared(
        self,
        cls: type,
        params: list[inspect.Parameter],
        declared: tuple[Any, ...],
    ) -> tuple[Any, ...]:
        if len(declared) != len(params):
            index = min(len(declared), len(params))
            name = params[index].name if index < len(params) else "<extra>"
            reason = f"does not line up with {len(declared)} declared dependencies for {len(params)} parameters"
            raise UnresolvableDependency(cls, index, name, reason)

        for index, p in enumerate(params):
            if p.kind is inspect.Parameter.KEYWORD_ONLY:
                raise UnresolvableDependency(cls, index, p.name, "is keyword-only")

        return declared

    def _dependency_id(self, cls: type, index: int, p: inspect.Parameter, hints: dict[str, Any]) -> type:
        """Map a constructor parameter to the service id it is resolved by.

        Only non-builtin classes qualify: primitives, typing constructs and
        unannotated parameters cannot name a service.
        """
        if p.kind is inspect.Parameter.KEYWORD_ONLY:
            raise UnresolvableDependency(cls, index, p.name, "is keyword-only")

        ann = hints.get(p.name, inspect.Parameter.empty)
        if ann is inspect.Parameter.empty:
            raise UnresolvableDependency(cls, index, p.name, "has no type annotation")

        if not inspect.isclass(ann) or typing.get_origin(ann) is not None:
            raise UnresolvableDependency(cls, index, p.name, f"is annotated with {ann!r}, which is not a class")

        if getattr(ann, "__module__", "") == "builtins":
            raise UnresolvableDependency(cls, index, p.name, f"has built-in type '{ann.__name__}'")

        return ann


def _lifetime(transient: bool) -> Lifetime:  # noqa: FBT001
    return Lifetime.TRANSIENT if transient else Lifetime.SINGLETON


def _id_repr(service_id: object) -> str:
    if inspect.isclass(service_id):
        return service_id.__qualname__
    return str(service_id)


def _find_constructor(cls: type) -> Callable[..., Any] | None:
    """Return the pure Python `__new__` or `__init__` that defines the constructor parameters.

    The MRO is searched the way `inspect.signature` does, `__new__` first on
    each class. None means only builtin constructors are involved (plain
    classes, subclasses of `dict` and similar) and the class takes no arguments.
    """
    for base in cls.__mro__:
        for name in ("__new__", "__init__"):
            attr = vars(base).get(name)
            if isinstance(attr, (staticmethod, classmethod)):
                attr = attr.__func__
            if inspect.isfunction(attr):
                return attr
    return None


def _get_constructor_type_hints(cls: type, func: Callable[..., Any]) -> dict[str, Any]:
    try:
        hints = get_type_hints(func)
        if hasattr(cls, "_fields"):
            # namedtuple __new__ is generated without annotations; fields are annotated on the class
            hints = {**get_type_hints(cls), **hints}
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)
        hints = {}

    hints.pop("return", None)
    return hints
