from __future__ import annotations

from collections.abc import Iterable
from typing import Annotated, Any, get_args, get_origin


def describe_key(key: Any) -> str:
    """Return a readable name for a service key used in diagnostics.

    ``Annotated`` keys render as the base type followed by their metadata, for
    example ``Database['primary']``. Other generic aliases fall back to ``repr``.

    Args:
        key: Service key (class, string token, or ``Annotated`` alias).

    """
    if isinstance(key, str):
        return repr(key)
    if get_origin(key) is Annotated:
        base, *metadata = get_args(key)
        return f"{describe_key(base)}[{', '.join(repr(item) for item in metadata)}]"
    if get_origin(key) is not None:
        return repr(key)
    qualname = getattr(key, "__qualname__", None)
    if isinstance(qualname, str):
        return qualname
    return repr(key)


class WiresetError(Exception):
    """Represent a base class for all wireset-specific failures.

    Catch this type when you want to handle any wireset error path without
    matching each concrete exception class individually.
    """


class WiresetBuildError(WiresetError):
    """Represent a failure that aborted building a container.

    Every error raised while validating descriptors, planning the construction
    order, binding inputs, instantiating, or wiring derives from this class.
    When it is raised no container was produced.
    """


class WiresetInvalidDescriptorError(WiresetBuildError):
    """Signal an invalid service descriptor or table mutation.

    Raised by ``DescriptorTable`` registration methods for duplicate keys,
    duplicate accessor names, providers that are not callable, and by any
    registration attempted after the table was frozen by a build.

    Typical fixes include registering each key once, passing ``name=...`` to
    disambiguate accessor names, and finishing registration before building.
    """


class WiresetDependencyInferenceError(WiresetInvalidDescriptorError):
    """Signal that dependencies of a provider cannot be inferred.

    Common triggers are required provider parameters without a type annotation
    and annotations that cannot be evaluated.

    Typical fixes include adding concrete parameter annotations or passing
    explicit ``dependencies=...`` during registration.
    """


class WiresetUnknownDependencyError(WiresetBuildError):
    """Signal that an edge references a key with no descriptor and no input.

    Raised by ``DescriptorTable.validate`` before any planning happens, and by
    ``DescriptorTable.get`` for direct lookups.

    Typical fixes include registering the missing service or declaring it as an
    external input with ``add_input``.
    """

    def __init__(self, key: Any, *, required_by: Any | None = None) -> None:
        self.key = key
        self.required_by = required_by
        if required_by is None:
            msg = f"Service {describe_key(key)} is not registered."
        else:
            msg = (
                f"Dependency {describe_key(key)} required by service "
                f"{describe_key(required_by)} is not registered."
            )
        super().__init__(msg)


class WiresetConstructorCycleError(WiresetBuildError):
    """Signal a cycle made only of constructor dependencies.

    Constructor edges must be satisfiable by ordered construction. The
    ``cycle`` attribute lists the member keys in edge order: each member's
    constructor depends on the next one, and the last depends on the first.

    Typical fix is turning one edge of the cycle into a setter dependency.
    """

    def __init__(self, cycle: Iterable[Any]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join(describe_key(key) for key in (*self.cycle, self.cycle[0]))
        super().__init__(f"Constructor dependency cycle detected: {path}.")


class WiresetInputError(WiresetBuildError):
    """Signal that supplied inputs do not match the declared external inputs.

    ``missing`` holds declared input keys with no supplied value and
    ``unexpected`` holds supplied keys that were never declared.
    """

    def __init__(self, *, missing: Iterable[Any] = (), unexpected: Iterable[Any] = ()) -> None:
        self.missing = tuple(missing)
        self.unexpected = tuple(unexpected)
        parts: list[str] = []
        if self.missing:
            parts.append("missing inputs: " + ", ".join(describe_key(key) for key in self.missing))
        if self.unexpected:
            parts.append(
                "undeclared inputs: " + ", ".join(describe_key(key) for key in self.unexpected),
            )
        super().__init__("Invalid external inputs: " + "; ".join(parts) + ".")


class WiresetConstructionError(WiresetBuildError):
    """Signal that creating or wiring a service failed.

    The provider's own exception (if any) is chained as ``__cause__``. Services
    created before the failure are torn down before this error propagates.
    """

    def __init__(self, key: Any, reason: str) -> None:
        self.key = key
        super().__init__(f"Failed to build service {describe_key(key)}: {reason}")


class WiresetContainerClosedError(WiresetError):
    """Signal access to a container after ``close()``.

    Raised by every accessor once the container is closed, instead of returning
    instances whose resources were already released.
    """
