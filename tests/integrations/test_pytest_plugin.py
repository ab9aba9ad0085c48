from __future__ import annotations

from collections.abc import Iterator

import pytest

from wireset import Container, DescriptorTable
from wireset.integrations.pytest_plugin.plugin import BuildContainer


class Connection:
    pass


def _open_connection() -> Iterator[Connection]:
    yield Connection()


@pytest.fixture()
def connection_container(
    wireset_table: DescriptorTable,
    wireset_build: BuildContainer,
) -> Container:
    wireset_table.add_generator(_open_connection)
    return wireset_build(wireset_table)


def test_wireset_table_fixture_is_empty(wireset_table: DescriptorTable) -> None:
    assert len(wireset_table) == 0
    assert not wireset_table.frozen


def test_wireset_build_fixture_returns_wired_container(connection_container: Container) -> None:
    assert isinstance(connection_container.connection, Connection)
    assert not connection_container.closed


def test_wireset_build_tolerates_containers_closed_by_the_test(
    wireset_table: DescriptorTable,
    wireset_build: BuildContainer,
) -> None:
    wireset_table.add_generator(_open_connection, name="closed_early")
    container = wireset_build(wireset_table)

    container.close()

    assert container.closed


def test_wireset_build_closes_containers_at_teardown_newest_first(
    pytester: pytest.Pytester,
) -> None:
    pytester.makeconftest('pytest_plugins = ["wireset.integrations.pytest_plugin.plugin"]')
    pytester.makepyfile(
        """
        from collections.abc import Iterator

        from wireset import DescriptorTable

        EVENTS = []


        class Connection:
            pass


        def connection_provider(label):
            def open_connection() -> Iterator[Connection]:
                EVENTS.append(f"open {label}")
                yield Connection()
                EVENTS.append(f"close {label}")

            return open_connection


        def test_builds_two_containers(wireset_build):
            for label in ("first", "second"):
                table = DescriptorTable()
                table.add_generator(connection_provider(label), provides=Connection)
                wireset_build(table)
            assert EVENTS == ["open first", "open second"]


        def test_containers_were_closed_by_fixture_teardown():
            assert EVENTS == ["open first", "open second", "close second", "close first"]
        """,
    )

    result = pytester.runpytest()

    result.assert_outcomes(passed=2)
