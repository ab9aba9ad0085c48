from enum import Enum


class SetterPolicy(str, Enum):
    """Policy for assigning setter dependencies during wiring."""

    ATTRIBUTE = "attribute"
    """Assign with ``setattr(instance, attribute, value)``."""

    METHOD = "method"
    """Call ``instance.set_<attribute>(value)``; the method must exist."""

    AUTO = "auto"
    """Call ``set_<attribute>`` when the instance defines it, otherwise ``setattr``."""


class ContainerState(str, Enum):
    """Lifecycle state of a container."""

    BUILDING = "building"
    """Instances are being created or wired; never visible outside the builder."""

    WIRED = "wired"
    """Every dependency is assigned and accessors are usable."""

    CLOSED = "closed"
    """Teardown ran; accessors raise."""
