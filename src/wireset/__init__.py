from wireset.container import Container, ContainerBuilder, GraphBuilder, WiringPlan, build
from wireset.descriptors import (
    ConstructorDependency,
    DependencyEdge,
    DescriptorTable,
    EdgeKind,
    InputDescriptor,
    ServiceDescriptor,
    SetterDependency,
)
from wireset.exceptions import (
    WiresetBuildError,
    WiresetConstructionError,
    WiresetConstructorCycleError,
    WiresetContainerClosedError,
    WiresetDependencyInferenceError,
    WiresetError,
    WiresetInputError,
    WiresetInvalidDescriptorError,
    WiresetUnknownDependencyError,
)
from wireset.markers import Setter
from wireset.policies import ContainerState, SetterPolicy

__all__ = [
    "ConstructorDependency",
    "Container",
    "ContainerBuilder",
    "ContainerState",
    "DependencyEdge",
    "DescriptorTable",
    "EdgeKind",
    "GraphBuilder",
    "InputDescriptor",
    "ServiceDescriptor",
    "Setter",
    "SetterDependency",
    "SetterPolicy",
    "WiresetBuildError",
    "WiresetConstructionError",
    "WiresetConstructorCycleError",
    "WiresetContainerClosedError",
    "WiresetDependencyInferenceError",
    "WiresetError",
    "WiresetInputError",
    "WiresetInvalidDescriptorError",
    "WiresetUnknownDependencyError",
    "WiringPlan",
    "build",
]
