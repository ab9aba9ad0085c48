from __future__ import annotations

import keyword
import re
from collections.abc import Callable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any, Literal, TypeAlias, get_args, get_origin

from wireset._internal.dependencies import (
    ConstructorDependency,
    DependenciesExtractor,
    ProvidedTypeExtractor,
    SetterDependency,
)
from wireset.exceptions import (
    WiresetInvalidDescriptorError,
    WiresetUnknownDependencyError,
    describe_key,
)

ServiceKey: TypeAlias = Any
"""A hashable service identity: usually a class, sometimes a string or Annotated alias."""

ExplicitDependencies: TypeAlias = Sequence[ServiceKey] | Mapping[str, ServiceKey]

RESERVED_ACCESSOR_NAMES = frozenset({"close", "names", "resolve", "state", "closed", "keys"})
"""Names taken by ``Container`` members; accessors may not shadow them."""

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


class EdgeKind(str, Enum):
    """Kind of a dependency edge."""

    CONSTRUCTOR = "constructor"
    """Satisfied before the dependent service is created; must be acyclic."""

    SETTER = "setter"
    """Assigned after every service exists; may form cycles."""


@dataclass(frozen=True, slots=True)
class DependencyEdge:
    """A directed edge: ``source`` depends on ``target``."""

    source: ServiceKey
    target: ServiceKey
    kind: EdgeKind
    label: str | None = None
    """Parameter or attribute name that carries the dependency, if any."""


@dataclass(frozen=True, kw_only=True)
class ServiceDescriptor:
    """Describe how a single service is produced and wired.

    Exactly one provider source is set: a pre-built instance, a concrete type,
    a factory, a generator, or a context manager. Generator and context
    manager providers own teardown that runs when the container is closed.
    """

    provides: ServiceKey
    """The key under which the service is registered."""
    name: str
    """Accessor name on the container."""
    expose: bool = True
    """Whether the container exposes an attribute accessor for this service."""

    instance: Any | None = None
    concrete_type: type[Any] | None = None
    factory: Callable[..., Any] | None = None
    generator: Callable[..., Any] | None = None
    context_manager: Callable[..., Any] | None = None

    dependencies: tuple[ConstructorDependency, ...] = ()
    """Constructor dependencies, in call order."""
    setters: tuple[SetterDependency, ...] = ()
    """Setter dependencies assigned during wiring."""

    def __post_init__(self) -> None:
        sources = [
            source
            for source in (
                self.instance,
                self.concrete_type,
                self.factory,
                self.generator,
                self.context_manager,
            )
            if source is not None
        ]
        if len(sources) != 1:
            msg = (
                f"Service descriptor for {describe_key(self.provides)} must define exactly one "
                "provider (instance, concrete_type, factory, generator, or context_manager)."
            )
            raise WiresetInvalidDescriptorError(msg)
        if self.instance is None and not callable(sources[0]):
            msg = f"Provider for service {describe_key(self.provides)} must be callable."
            raise WiresetInvalidDescriptorError(msg)
        if self.instance is not None and (self.dependencies or self.setters):
            msg = (
                f"Instance service {describe_key(self.provides)} is shared and cannot declare "
                "constructor or setter dependencies."
            )
            raise WiresetInvalidDescriptorError(msg)
        validate_accessor_name(self.name, key=self.provides)

    @property
    def provider(self) -> Callable[..., Any]:
        """Return the callable that produces the service."""
        for candidate in (self.concrete_type, self.factory, self.generator, self.context_manager):
            if candidate is not None:
                return candidate
        msg = f"Instance service {describe_key(self.provides)} has no provider callable."
        raise WiresetInvalidDescriptorError(msg)

    @property
    def needs_cleanup(self) -> bool:
        return self.generator is not None or self.context_manager is not None

    def edges(self) -> tuple[DependencyEdge, ...]:
        """Return constructor edges in call order, then setter edges."""
        constructor_edges = tuple(
            DependencyEdge(
                source=self.provides,
                target=dependency.provides,
                kind=EdgeKind.CONSTRUCTOR,
                label=dependency.parameter_name,
            )
            for dependency in self.dependencies
        )
        setter_edges = tuple(
            DependencyEdge(
                source=self.provides,
                target=setter.provides,
                kind=EdgeKind.SETTER,
                label=setter.attribute,
            )
            for setter in self.setters
        )
        return constructor_edges + setter_edges


@dataclass(frozen=True, kw_only=True)
class InputDescriptor:
    """Declare a caller-owned value bound into the container at build time."""

    provides: ServiceKey
    name: str
    expose: bool = True

    def __post_init__(self) -> None:
        validate_accessor_name(self.name, key=self.provides)


class DescriptorTable:
    """Store service descriptors and external inputs indexed by key.

    Registration order is kept and drives the deterministic construction
    order. Keys and accessor names are unique across services and inputs.
    The table is frozen by the first build; later registration fails.
    """

    def __init__(self) -> None:
        self._services: dict[ServiceKey, ServiceDescriptor] = {}
        self._inputs: dict[ServiceKey, InputDescriptor] = {}
        self._names: dict[str, ServiceKey] = {}
        self._frozen = False
        self._dependencies_extractor = DependenciesExtractor()
        self._provided_type_extractor = ProvidedTypeExtractor()

    # region Registration

    def add_concrete(
        self,
        concrete_type: type[Any],
        *,
        provides: ServiceKey | Literal["infer"] = "infer",
        dependencies: ExplicitDependencies | Literal["infer"] = "infer",
        setters: Mapping[str, ServiceKey] | Literal["infer"] = "infer",
        name: str | None = None,
        expose: bool = True,
    ) -> None:
        """Register a class that is called to create the service.

        Args:
            concrete_type: Class to instantiate.
            provides: Registration key; defaults to ``concrete_type``.
            dependencies: Constructor dependencies, or ``"infer"`` to read ``__init__`` annotations.
            setters: Attribute name to key, or ``"infer"`` to read ``Setter[T]`` class annotations.
            name: Accessor name; derived from the key when omitted.
            expose: Whether the container exposes an attribute accessor.

        """
        if not isinstance(concrete_type, type):
            msg = f"Concrete provider {concrete_type!r} must be a class."
            raise WiresetInvalidDescriptorError(msg)
        key = concrete_type if provides == "infer" else provides
        self.add(
            ServiceDescriptor(
                provides=key,
                name=name or default_accessor_name(key),
                expose=expose,
                concrete_type=concrete_type,
                dependencies=self._constructor_dependencies(concrete_type, dependencies),
                setters=self._setter_dependencies(concrete_type, setters),
            ),
        )

    def add_factory(
        self,
        factory: Callable[..., Any],
        *,
        provides: ServiceKey | Literal["infer"] = "infer",
        dependencies: ExplicitDependencies | Literal["infer"] = "infer",
        setters: Mapping[str, ServiceKey] | Literal["infer"] = "infer",
        name: str | None = None,
        expose: bool = True,
    ) -> None:
        """Register a function whose return value is the service.

        Factories model derived services, for example a value read from an
        external input: ``add_factory(lambda module: module.builtins, ...)``.

        Args:
            factory: Callable producing the service.
            provides: Registration key; defaults to the return annotation.
            dependencies: Constructor dependencies, or ``"infer"`` to read parameter annotations.
            setters: Attribute name to key, or ``"infer"`` to read ``Setter[T]``
                annotations of the provided class.
            name: Accessor name; derived from the key when omitted.
            expose: Whether the container exposes an attribute accessor.

        """
        key = self._provided_key(factory, provides, self._provided_type_extractor.extract_from_factory)
        self.add(
            ServiceDescriptor(
                provides=key,
                name=name or default_accessor_name(key),
                expose=expose,
                factory=factory,
                dependencies=self._constructor_dependencies(factory, dependencies),
                setters=self._setter_dependencies(key, setters),
            ),
        )

    def add_generator(
        self,
        generator: Callable[..., Any],
        *,
        provides: ServiceKey | Literal["infer"] = "infer",
        dependencies: ExplicitDependencies | Literal["infer"] = "infer",
        setters: Mapping[str, ServiceKey] | Literal["infer"] = "infer",
        name: str | None = None,
        expose: bool = True,
    ) -> None:
        """Register a generator function that yields the service once.

        Code after ``yield`` runs when the container is closed.

        Args:
            generator: Generator function producing the service.
            provides: Registration key; defaults to the yielded type annotation.
            dependencies: Constructor dependencies, or ``"infer"``.
            setters: Attribute name to key, or ``"infer"``.
            name: Accessor name; derived from the key when omitted.
            expose: Whether the container exposes an attribute accessor.

        """
        key = self._provided_key(
            generator,
            provides,
            self._provided_type_extractor.extract_from_generator,
        )
        self.add(
            ServiceDescriptor(
                provides=key,
                name=name or default_accessor_name(key),
                expose=expose,
                generator=generator,
                dependencies=self._constructor_dependencies(generator, dependencies),
                setters=self._setter_dependencies(key, setters),
            ),
        )

    def add_context_manager(
        self,
        context_manager: Callable[..., Any],
        *,
        provides: ServiceKey | Literal["infer"] = "infer",
        dependencies: ExplicitDependencies | Literal["infer"] = "infer",
        setters: Mapping[str, ServiceKey] | Literal["infer"] = "infer",
        name: str | None = None,
        expose: bool = True,
    ) -> None:
        """Register a callable returning a context manager around the service.

        The context manager is entered during instantiation and exited when the
        container is closed.

        Args:
            context_manager: Callable returning a context manager.
            provides: Registration key; defaults to the managed type annotation.
            dependencies: Constructor dependencies, or ``"infer"``.
            setters: Attribute name to key, or ``"infer"``.
            name: Accessor name; derived from the key when omitted.
            expose: Whether the container exposes an attribute accessor.

        """
        key = self._provided_key(
            context_manager,
            provides,
            self._provided_type_extractor.extract_from_context_manager,
        )
        self.add(
            ServiceDescriptor(
                provides=key,
                name=name or default_accessor_name(key),
                expose=expose,
                context_manager=context_manager,
                dependencies=self._constructor_dependencies(context_manager, dependencies),
                setters=self._setter_dependencies(key, setters),
            ),
        )

    def add_instance(
        self,
        instance: Any,
        *,
        provides: ServiceKey | Literal["infer"] = "infer",
        name: str | None = None,
        expose: bool = True,
    ) -> None:
        """Register a pre-built shared object as a leaf service.

        The container never constructs, wires, or tears down the instance.

        Args:
            instance: The shared object; must not be ``None``.
            provides: Registration key; defaults to ``type(instance)``.
            name: Accessor name; derived from the key when omitted.
            expose: Whether the container exposes an attribute accessor.

        """
        if instance is None:
            msg = "Instance services cannot be None."
            raise WiresetInvalidDescriptorError(msg)
        key = type(instance) if provides == "infer" else provides
        self.add(
            ServiceDescriptor(
                provides=key,
                name=name or default_accessor_name(key),
                expose=expose,
                instance=instance,
            ),
        )

    def add_input(
        self,
        provides: ServiceKey,
        *,
        name: str | None = None,
        expose: bool = True,
    ) -> None:
        """Declare an external input whose value is supplied to ``build``.

        Args:
            provides: Input key.
            name: Accessor name; derived from the key when omitted.
            expose: Whether the container exposes an attribute accessor.

        """
        self.add(
            InputDescriptor(
                provides=provides,
                name=name or default_accessor_name(provides),
                expose=expose,
            ),
        )

    def add(self, descriptor: ServiceDescriptor | InputDescriptor) -> None:
        """Register a prebuilt descriptor.

        Args:
            descriptor: Service or input descriptor to register.

        """
        if self._frozen:
            msg = (
                f"Cannot register {describe_key(descriptor.provides)}: the descriptor table "
                "is frozen after the first build."
            )
            raise WiresetInvalidDescriptorError(msg)
        if descriptor.provides in self:
            msg = f"Service {describe_key(descriptor.provides)} is already registered."
            raise WiresetInvalidDescriptorError(msg)
        if (owner := self._names.get(descriptor.name)) is not None:
            msg = (
                f"Accessor name '{descriptor.name}' of {describe_key(descriptor.provides)} is "
                f"already used by {describe_key(owner)}. Pass name= to disambiguate."
            )
            raise WiresetInvalidDescriptorError(msg)

        if isinstance(descriptor, InputDescriptor):
            self._inputs[descriptor.provides] = descriptor
        else:
            self._services[descriptor.provides] = descriptor
        self._names[descriptor.name] = descriptor.provides

    # endregion Registration

    # region Lookup

    def get(self, key: ServiceKey) -> ServiceDescriptor | InputDescriptor:
        """Return the descriptor registered for ``key``.

        Args:
            key: Service or input key.

        """
        descriptor = self.find(key)
        if descriptor is None:
            raise WiresetUnknownDependencyError(key)
        return descriptor

    def find(self, key: ServiceKey) -> ServiceDescriptor | InputDescriptor | None:
        """Return the descriptor registered for ``key``, if any.

        Args:
            key: Service or input key.

        """
        service = self._services.get(key)
        if service is not None:
            return service
        return self._inputs.get(key)

    def get_service(self, key: ServiceKey) -> ServiceDescriptor:
        """Return the service descriptor registered for ``key``.

        Args:
            key: Service key; input keys are not services.

        """
        service = self._services.get(key)
        if service is None:
            raise WiresetUnknownDependencyError(key)
        return service

    def services(self) -> list[ServiceDescriptor]:
        """Return service descriptors in registration order."""
        return list(self._services.values())

    def inputs(self) -> list[InputDescriptor]:
        """Return input descriptors in registration order."""
        return list(self._inputs.values())

    def is_input(self, key: ServiceKey) -> bool:
        return key in self._inputs

    def edges(self) -> list[DependencyEdge]:
        """Return every dependency edge, grouped by source in registration order."""
        return [edge for service in self._services.values() for edge in service.edges()]

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, key: object) -> bool:
        return key in self._services or key in self._inputs

    def __iter__(self) -> Iterator[ServiceDescriptor | InputDescriptor]:
        yield from self._inputs.values()
        yield from self._services.values()

    def __len__(self) -> int:
        return len(self._services) + len(self._inputs)

    # endregion Lookup

    def validate(self) -> None:
        """Check that every edge points at a registered service or input.

        Raises:
            WiresetUnknownDependencyError: For the first edge, in registration
                order, whose target is unknown.

        """
        for edge in self.edges():
            if edge.target not in self:
                raise WiresetUnknownDependencyError(edge.target, required_by=edge.source)

    def freeze(self) -> None:
        """Validate the table and reject any later registration."""
        self.validate()
        self._frozen = True

    def _constructor_dependencies(
        self,
        provider: Callable[..., Any],
        dependencies: ExplicitDependencies | Literal["infer"],
    ) -> tuple[ConstructorDependency, ...]:
        if dependencies == "infer":
            return self._dependencies_extractor.extract_constructor_dependencies(provider)
        return self._dependencies_extractor.normalize_explicit_dependencies(provider, dependencies)

    def _setter_dependencies(
        self,
        service_type: Any,
        setters: Mapping[str, ServiceKey] | Literal["infer"],
    ) -> tuple[SetterDependency, ...]:
        if setters == "infer":
            return self._dependencies_extractor.extract_setter_dependencies(service_type)
        return self._dependencies_extractor.normalize_explicit_setters(setters)

    def _provided_key(
        self,
        provider: Callable[..., Any],
        provides: ServiceKey | Literal["infer"],
        extract: Callable[[Callable[..., Any]], Any],
    ) -> ServiceKey:
        if not callable(provider):
            msg = f"Provider {provider!r} must be callable."
            raise WiresetInvalidDescriptorError(msg)
        if provides != "infer":
            return provides
        return extract(provider)


def default_accessor_name(key: ServiceKey) -> str:
    """Derive a snake_case accessor name from a service key.

    Classes use their ``__name__`` (``TypeResolver`` becomes ``type_resolver``),
    string keys are used as is, and ``Annotated`` keys use the base type plus
    any string metadata.

    Args:
        key: Service key.

    """
    if isinstance(key, str):
        return key
    if get_origin(key) is Annotated:
        base, *metadata = get_args(key)
        suffix = [item for item in metadata if isinstance(item, str)]
        return "_".join([default_accessor_name(base), *suffix])
    name = getattr(key, "__name__", None)
    if not isinstance(name, str):
        msg = f"Cannot derive an accessor name for key {key!r}. Pass name= explicitly."
        raise WiresetInvalidDescriptorError(msg)
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def validate_accessor_name(name: str, *, key: ServiceKey) -> None:
    if not name.isidentifier() or keyword.iskeyword(name) or name.startswith("_"):
        msg = (
            f"Accessor name '{name}' of {describe_key(key)} must be a public identifier. "
            "Pass name= explicitly."
        )
        raise WiresetInvalidDescriptorError(msg)
    if name in RESERVED_ACCESSOR_NAMES:
        msg = f"Accessor name '{name}' of {describe_key(key)} is reserved by the container."
        raise WiresetInvalidDescriptorError(msg)


__all__ = [
    "RESERVED_ACCESSOR_NAMES",
    "ConstructorDependency",
    "DependencyEdge",
    "DescriptorTable",
    "EdgeKind",
    "InputDescriptor",
    "ServiceDescriptor",
    "ServiceKey",
    "SetterDependency",
    "default_accessor_name",
]
