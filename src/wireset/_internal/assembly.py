from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from contextlib import contextmanager
from types import TracebackType
from typing import Any

from wireset._internal.descriptors import DescriptorTable, ServiceDescriptor, ServiceKey
from wireset._internal.graph import WiringPlan
from wireset._internal.policies import ContainerState, SetterPolicy
from wireset.exceptions import WiresetConstructionError, WiresetInputError, describe_key

logger = logging.getLogger(__name__)

CleanupCallback = Callable[
    [type[BaseException] | None, BaseException | None, TracebackType | None],
    Any,
]


class Assembler:
    """Hold instances of one container while it is being built.

    The assembler is the unwired intermediate state: services exist but setter
    slots may still be empty. It is never handed to callers: the builder
    moves its instances into a frozen ``Container``, or calls ``abort`` to
    tear down whatever was created when a phase fails.
    """

    def __init__(
        self,
        table: DescriptorTable,
        *,
        setter_policy: SetterPolicy = SetterPolicy.ATTRIBUTE,
    ) -> None:
        self._table = table
        self._setter_policy = SetterPolicy(setter_policy)
        self._instances: dict[ServiceKey, Any] = {}
        self._cleanup_callbacks: list[CleanupCallback] = []
        self.state = ContainerState.BUILDING

    @property
    def instances(self) -> Mapping[ServiceKey, Any]:
        return self._instances

    def bind_inputs(self, plan: WiringPlan, inputs: Mapping[ServiceKey, Any]) -> None:
        """Store caller-owned input values as ready-made leaves.

        Args:
            plan: Plan listing the declared inputs.
            inputs: Supplied values by input key.

        Raises:
            WiresetInputError: If a declared input is missing or ``None``, or a
                supplied key was never declared.

        """
        declared = set(plan.inputs)
        missing = [key for key in plan.inputs if inputs.get(key) is None]
        unexpected = [key for key in inputs if key not in declared]
        if missing or unexpected:
            raise WiresetInputError(missing=missing, unexpected=unexpected)

        for key in plan.inputs:
            self._instances[key] = inputs[key]

    def instantiate(self, plan: WiringPlan) -> None:
        """Create every service in plan order.

        Args:
            plan: Plan whose order places constructor dependencies first.

        Raises:
            WiresetConstructionError: If a provider raises or returns ``None``.

        """
        for key in plan.order:
            descriptor = self._table.get_service(key)
            self._instances[key] = self._create(descriptor)
            logger.debug("Created service %s", describe_key(key))

    def wire(self, plan: WiringPlan) -> None:
        """Assign every setter dependency now that all instances exist.

        Args:
            plan: Plan holding the setter edges.

        Raises:
            WiresetConstructionError: If an assignment fails.

        """
        for edge in plan.setter_edges:
            source = self._instances[edge.source]
            target = self._instances[edge.target]
            attribute = edge.label or ""
            try:
                self._assign(source, attribute, target)
            except Exception as error:
                reason = (
                    f"assigning setter dependency '{attribute}' = {describe_key(edge.target)} "
                    f"raised {type(error).__name__}: {error}"
                )
                raise WiresetConstructionError(edge.source, reason) from error
            logger.debug(
                "Wired %s.%s = %s",
                describe_key(edge.source),
                attribute,
                describe_key(edge.target),
            )
        self.state = ContainerState.WIRED

    def abort(self, error: BaseException) -> None:
        """Tear down every service created so far, newest first.

        Cleanups run as on a normal close so code after ``yield`` executes. The
        build error stays the one reported; cleanup failures are logged.

        Args:
            error: The error that aborted the build.

        """
        while self._cleanup_callbacks:
            cleanup = self._cleanup_callbacks.pop()
            try:
                cleanup(None, None, None)
            except Exception:
                logger.warning(
                    "Cleanup failed while aborting a build that failed with %r",
                    error,
                    exc_info=True,
                )
        self._instances.clear()

    def take_cleanup_callbacks(self) -> list[CleanupCallback]:
        """Hand over ownership of the registered cleanups to the container."""
        callbacks, self._cleanup_callbacks = self._cleanup_callbacks, []
        return callbacks

    def _create(self, descriptor: ServiceDescriptor) -> Any:
        if descriptor.instance is not None:
            return descriptor.instance

        args, kwargs = self._arguments(descriptor)
        try:
            if descriptor.generator is not None:
                instance = self._enter(contextmanager(descriptor.generator)(*args, **kwargs))
            elif descriptor.context_manager is not None:
                instance = self._enter(descriptor.context_manager(*args, **kwargs))
            else:
                instance = descriptor.provider(*args, **kwargs)
        except Exception as error:
            reason = f"provider raised {type(error).__name__}: {error}"
            raise WiresetConstructionError(descriptor.provides, reason) from error

        if instance is None:
            raise WiresetConstructionError(descriptor.provides, "provider returned None")
        return instance

    def _enter(self, context_manager: Any) -> Any:
        instance = context_manager.__enter__()
        self._cleanup_callbacks.append(context_manager.__exit__)
        return instance

    def _arguments(self, descriptor: ServiceDescriptor) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        for dependency in descriptor.dependencies:
            value = self._instances[dependency.provides]
            if dependency.parameter_name is None:
                args.append(value)
            else:
                kwargs[dependency.parameter_name] = value
        return args, kwargs

    def _assign(self, source: Any, attribute: str, target: Any) -> None:
        if self._setter_policy is SetterPolicy.ATTRIBUTE:
            setattr(source, attribute, target)
            return

        setter = getattr(source, f"set_{attribute}", None)
        if callable(setter):
            setter(target)
            return
        if self._setter_policy is SetterPolicy.AUTO:
            setattr(source, attribute, target)
            return

        msg = f"setter method 'set_{attribute}' is not defined on {type(source).__qualname__}"
        raise AttributeError(msg)
