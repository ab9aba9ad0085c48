from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType, TracebackType
from typing import TYPE_CHECKING, Any, TypeVar, overload

from wireset._internal.policies import ContainerState
from wireset.exceptions import (
    WiresetContainerClosedError,
    WiresetUnknownDependencyError,
)

if TYPE_CHECKING:
    from typing_extensions import Self

    from wireset._internal.assembly import CleanupCallback
    from wireset._internal.descriptors import ServiceKey

T = TypeVar("T")

logger = logging.getLogger(__name__)
_MISSING_KEY: Any = object()


class Container:
    """Expose one fully wired instance per service until closed.

    A container is produced only by ``build``/``ContainerBuilder.build`` once
    every constructor and setter dependency is assigned, so callers never see
    a partially wired graph. The instance map is read-only and safe for
    concurrent reads without locking.

    Accessors:
        - ``container.resolve(Key)`` or ``container[Key]`` for any service or input.
        - ``container.<name>`` for every exposed service or input name.

    ``close()`` runs generator/context-manager teardown and ``on_close`` hooks
    in reverse construction order. It runs once; later calls are no-ops and
    every accessor raises ``WiresetContainerClosedError`` afterwards.
    """

    def __init__(
        self,
        *,
        instances: Mapping[ServiceKey, Any],
        names: Mapping[str, ServiceKey],
        cleanup_callbacks: Iterable[CleanupCallback] = (),
        _from_builder: bool = False,
    ) -> None:
        if not _from_builder:
            msg = (
                "Container instances must be created via wireset.build() "
                "or ContainerBuilder.build()."
            )
            raise RuntimeError(msg)
        self._instances = MappingProxyType(dict(instances))
        self._names = MappingProxyType(dict(names))
        self._cleanup_callbacks = list(cleanup_callbacks)
        self._lock = threading.Lock()
        self._state = ContainerState.WIRED

    @property
    def state(self) -> ContainerState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._state is ContainerState.CLOSED

    @overload
    def resolve(self, key: type[T]) -> T: ...

    @overload
    def resolve(self, key: Any) -> Any: ...

    def resolve(self, key: Any) -> Any:
        """Return the instance registered for ``key``.

        Args:
            key: Service or input key.

        Raises:
            WiresetContainerClosedError: If the container was closed.
            WiresetUnknownDependencyError: If nothing is registered for ``key``.

        """
        self._ensure_open()
        try:
            return self._instances[key]
        except KeyError:
            raise WiresetUnknownDependencyError(key) from None

    def __getitem__(self, key: Any) -> Any:
        return self.resolve(key)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        key = self._names.get(name, _MISSING_KEY)
        if key is _MISSING_KEY:
            msg = f"{type(self).__name__!r} has no service accessor {name!r}"
            raise AttributeError(msg)
        return self.resolve(key)

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *self._names})

    def names(self) -> tuple[str, ...]:
        """Return the accessor names of exposed services and inputs."""
        self._ensure_open()
        return tuple(self._names)

    def keys(self) -> tuple[ServiceKey, ...]:
        """Return every key held by the container, inputs first, then construction order."""
        self._ensure_open()
        return tuple(self._instances)

    def __contains__(self, key: object) -> bool:
        self._ensure_open()
        return key in self._instances

    def __iter__(self) -> Iterator[ServiceKey]:
        return iter(self.keys())

    def __len__(self) -> int:
        self._ensure_open()
        return len(self._instances)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} state={self._state.value} services={len(self._instances)}>"

    def __enter__(self) -> Self:
        self._ensure_open()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        """Close the container, passing the exception (if any) to cleanups.

        A cleanup error is raised only when the block itself did not raise.
        """
        self._close(exc_type, exc_value, traceback)

    def close(self) -> None:
        """Release resources held by the wired services.

        Runs once. The first caller moves the container to ``CLOSED`` and runs
        every cleanup, newest first. Concurrent or repeated calls return
        immediately, even while the first caller is still running cleanups:
        only that first caller waits for teardown to finish. If several
        cleanups fail, the first failure is raised after all of them ran.
        """
        self._close(None, None, None)

    def _close(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        with self._lock:
            if self._state is ContainerState.CLOSED:
                return
            self._state = ContainerState.CLOSED
            callbacks, self._cleanup_callbacks = self._cleanup_callbacks, []

        logger.debug("Closing container with %d cleanup callbacks", len(callbacks))
        cleanup_error: BaseException | None = None
        while callbacks:
            cleanup = callbacks.pop()
            try:
                cleanup(exc_type, exc_value, traceback)
            except BaseException as error:
                if exc_type is None and cleanup_error is None:
                    cleanup_error = error
        if exc_type is None and cleanup_error is not None:
            raise cleanup_error

    def _ensure_open(self) -> None:
        if self._state is ContainerState.CLOSED:
            msg = "Container is closed; its services are no longer accessible."
            raise WiresetContainerClosedError(msg)
