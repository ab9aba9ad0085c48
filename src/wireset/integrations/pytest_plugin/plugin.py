from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, Protocol

import pytest

from wireset._internal.builder import build
from wireset._internal.container import Container
from wireset._internal.descriptors import DescriptorTable, ServiceKey
from wireset._internal.policies import SetterPolicy


class BuildContainer(Protocol):
    def __call__(
        self,
        table: DescriptorTable,
        inputs: Mapping[ServiceKey, Any] | None = None,
        *,
        setter_policy: SetterPolicy = SetterPolicy.ATTRIBUTE,
        on_close: tuple[Callable[[], Any], ...] = (),
    ) -> Container: ...


@pytest.fixture()
def wireset_table() -> DescriptorTable:
    """Create an empty, per-test descriptor table.

    Returns:
        A new ``DescriptorTable`` instance.

    """
    return DescriptorTable()


@pytest.fixture()
def wireset_build() -> Iterator[BuildContainer]:
    """Build containers that are closed automatically when the test ends.

    The fixture yields a callable with the signature of ``wireset.build``.
    Every container it returns is closed at fixture teardown, newest first,
    unless the test already closed it.

    Yields:
        A ``build``-compatible callable.

    """
    built: list[Container] = []

    def _build(
        table: DescriptorTable,
        inputs: Mapping[ServiceKey, Any] | None = None,
        *,
        setter_policy: SetterPolicy = SetterPolicy.ATTRIBUTE,
        on_close: tuple[Callable[[], Any], ...] = (),
    ) -> Container:
        container = build(table, inputs, setter_policy=setter_policy, on_close=on_close)
        built.append(container)
        return container

    yield _build

    while built:
        built.pop().close()
