from wireset._internal.markers import Setter, SetterMarker

__all__ = ["Setter", "SetterMarker"]
