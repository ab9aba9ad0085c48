from wireset._internal.builder import ContainerBuilder, build
from wireset._internal.container import Container
from wireset._internal.graph import GraphBuilder, WiringPlan

__all__ = ["Container", "ContainerBuilder", "GraphBuilder", "WiringPlan", "build"]
