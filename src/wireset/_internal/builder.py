from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from wireset._internal.assembly import Assembler
from wireset._internal.container import Container
from wireset._internal.descriptors import DescriptorTable, ServiceKey
from wireset._internal.graph import GraphBuilder, WiringPlan
from wireset._internal.policies import SetterPolicy

logger = logging.getLogger(__name__)


class ContainerBuilder:
    """Build containers from a frozen descriptor table.

    The table is validated, frozen, and planned once; ``build`` can then be
    called any number of times, including from several threads, and every call
    produces an independent container with its own instances.
    """

    def __init__(
        self,
        table: DescriptorTable,
        *,
        setter_policy: SetterPolicy = SetterPolicy.ATTRIBUTE,
    ) -> None:
        """Validate and plan ``table``.

        Args:
            table: Descriptors to build from; frozen once planning succeeds.
            setter_policy: How setter dependencies are assigned during wiring.

        Raises:
            WiresetUnknownDependencyError: If an edge targets an unknown key.
            WiresetConstructorCycleError: If constructor edges form a cycle.

        """
        self._plan = GraphBuilder(table).build_plan()
        table.freeze()
        self._table = table
        self._setter_policy = SetterPolicy(setter_policy)
        self._names = {
            descriptor.name: descriptor.provides for descriptor in table if descriptor.expose
        }

    @property
    def plan(self) -> WiringPlan:
        return self._plan

    def build(
        self,
        inputs: Mapping[ServiceKey, Any] | None = None,
        *,
        on_close: Iterable[Callable[[], Any]] = (),
    ) -> Container:
        """Instantiate and wire every service, then freeze the result.

        The build is atomic: if any phase fails, services created so far are
        torn down and the error propagates; no container is returned.

        Args:
            inputs: Values for the declared external inputs, by key.
            on_close: Hooks run by ``Container.close()`` before service teardown.

        Raises:
            WiresetInputError: If inputs do not match the declared inputs.
            WiresetConstructionError: If a provider or a setter assignment fails.

        """
        assembler = Assembler(self._table, setter_policy=self._setter_policy)
        try:
            hooks = [_as_cleanup(hook) for hook in on_close]
            assembler.bind_inputs(self._plan, inputs or {})
            assembler.instantiate(self._plan)
            assembler.wire(self._plan)
        except BaseException as error:
            logger.debug("Build aborted: %s", error)
            assembler.abort(error)
            raise

        cleanup_callbacks = assembler.take_cleanup_callbacks()
        cleanup_callbacks.extend(hooks)
        return Container(
            instances=assembler.instances,
            names=self._names,
            cleanup_callbacks=cleanup_callbacks,
            _from_builder=True,
        )


def build(
    table: DescriptorTable,
    inputs: Mapping[ServiceKey, Any] | None = None,
    *,
    setter_policy: SetterPolicy = SetterPolicy.ATTRIBUTE,
    on_close: Iterable[Callable[[], Any]] = (),
) -> Container:
    """Build a fully wired container from ``table`` in one call.

    Args:
        table: Descriptors to build from; frozen by this call.
        inputs: Values for the declared external inputs, by key.
        setter_policy: How setter dependencies are assigned during wiring.
        on_close: Hooks run by ``Container.close()`` before service teardown.

    Examples:
        .. code-block:: python

            table = DescriptorTable()
            table.add_input(Project)
            table.add_concrete(TypeResolver)
            table.add_concrete(CallResolver)

            with build(table, {Project: project}) as container:
                container.call_resolver.resolve_call(...)

    """
    builder = ContainerBuilder(table, setter_policy=setter_policy)
    return builder.build(inputs, on_close=on_close)


def _as_cleanup(hook: Callable[[], Any]) -> Callable[..., Any]:
    def cleanup(*_exc_info: Any) -> None:
        hook()

    return cleanup
