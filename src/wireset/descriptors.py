from wireset._internal.descriptors import (
    DependencyEdge,
    DescriptorTable,
    EdgeKind,
    InputDescriptor,
    ServiceDescriptor,
    ServiceKey,
)
from wireset._internal.dependencies import ConstructorDependency, SetterDependency

__all__ = [
    "ConstructorDependency",
    "DependencyEdge",
    "DescriptorTable",
    "EdgeKind",
    "InputDescriptor",
    "ServiceDescriptor",
    "ServiceKey",
    "SetterDependency",
]
