from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from wireset._internal.descriptors import (
    DependencyEdge,
    DescriptorTable,
    EdgeKind,
    ServiceKey,
)
from wireset.exceptions import WiresetConstructorCycleError, describe_key

logger = logging.getLogger(__name__)
_EXHAUSTED: Any = object()


@dataclass(frozen=True, slots=True)
class WiringPlan:
    """Deterministic construction plan consumed by the assembler."""

    order: tuple[ServiceKey, ...]
    """Service keys such that every constructor dependency precedes its dependent."""
    setter_edges: tuple[DependencyEdge, ...]
    """Every setter edge, assigned after all instances exist."""
    inputs: tuple[ServiceKey, ...]
    """Declared external input keys; never constructed."""

    def describe(self) -> str:
        """Render the plan as readable lines, one step per line."""
        lines = [f"input {describe_key(key)}" for key in self.inputs]
        lines.extend(f"create {describe_key(key)}" for key in self.order)
        lines.extend(
            f"wire {describe_key(edge.source)}.{edge.label} = {describe_key(edge.target)}"
            for edge in self.setter_edges
        )
        return "\n".join(lines)


class GraphBuilder:
    """Order services by constructor edges and reject constructor cycles.

    The sort is a depth-first post-order walk: descriptors are visited in
    registration order and each descriptor's constructor dependencies in
    declaration order, so equal tables always give equal plans. Setter edges do
    not take part in ordering.
    """

    def __init__(self, table: DescriptorTable) -> None:
        self._table = table

    def build_plan(self) -> WiringPlan:
        """Validate the table and compute the construction plan.

        Raises:
            WiresetUnknownDependencyError: If an edge targets an unknown key.
            WiresetConstructorCycleError: If constructor edges form a cycle.

        """
        self._table.validate()

        order: list[ServiceKey] = []
        completed: set[ServiceKey] = set()
        for service in self._table.services():
            if service.provides not in completed:
                self._visit(service.provides, order=order, completed=completed)

        setter_edges = tuple(
            edge for edge in self._table.edges() if edge.kind is EdgeKind.SETTER
        )
        plan = WiringPlan(
            order=tuple(order),
            setter_edges=setter_edges,
            inputs=tuple(descriptor.provides for descriptor in self._table.inputs()),
        )
        logger.debug(
            "Planned %d services, %d inputs, %d setter edges",
            len(plan.order),
            len(plan.inputs),
            len(plan.setter_edges),
        )
        return plan

    def _visit(
        self,
        root: ServiceKey,
        *,
        order: list[ServiceKey],
        completed: set[ServiceKey],
    ) -> None:
        # Iterative walk: deep constructor chains must not hit the recursion limit.
        path: list[ServiceKey] = [root]
        position_on_path: dict[ServiceKey, int] = {root: 0}
        pending: list[Iterator[ServiceKey]] = [self._constructor_targets(root)]

        while pending:
            target = next(pending[-1], _EXHAUSTED)
            if target is _EXHAUSTED:
                pending.pop()
                finished = path.pop()
                del position_on_path[finished]
                completed.add(finished)
                order.append(finished)
                continue
            if target in completed:
                continue
            if target in position_on_path:
                raise WiresetConstructorCycleError(path[position_on_path[target] :])

            position_on_path[target] = len(path)
            path.append(target)
            pending.append(self._constructor_targets(target))

    def _constructor_targets(self, key: ServiceKey) -> Iterator[ServiceKey]:
        for edge in self._table.get_service(key).edges():
            if edge.kind is EdgeKind.CONSTRUCTOR and not self._table.is_input(edge.target):
                yield edge.target
