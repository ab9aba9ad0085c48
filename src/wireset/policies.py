from wireset._internal.policies import ContainerState, SetterPolicy

__all__ = ["ContainerState", "SetterPolicy"]
