"""Service classes shared by the test suite.

They live at module level so that ``get_type_hints`` can resolve the forward
references used by setter annotations.
"""

from __future__ import annotations

from wireset import Setter


class ServiceA:
    pass


class ServiceB:
    def __init__(self, a: ServiceA) -> None:
        self.a = a


class ServiceC:
    d: Setter[ServiceD]

    def __init__(self, b: ServiceB) -> None:
        self.b = b


class ServiceD:
    c: Setter[ServiceC]


class Project:
    def __init__(self, name: str = "project") -> None:
        self.name = name


class Builtins:
    pass


class Module:
    def __init__(self) -> None:
        self.builtins = Builtins()


class TypeResolver:
    call_resolver: Setter[CallResolver]

    def __init__(self, project: Project) -> None:
        self.project = project


class CallResolver:
    type_resolver: Setter[TypeResolver]

    def __init__(self, project: Project, builtins: Builtins) -> None:
        self.project = project
        self.builtins = builtins


class CycleX:
    def __init__(self, y: CycleY) -> None:
        self.y = y


class CycleY:
    def __init__(self, z: CycleZ) -> None:
        self.z = z


class CycleZ:
    def __init__(self, x: CycleX) -> None:
        self.x = x


class SelfLoop:
    def __init__(self, other: SelfLoop) -> None:
        self.other = other


class HTTPClient:
    pass
