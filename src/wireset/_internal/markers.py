from typing import TYPE_CHECKING, Annotated, Any, TypeVar, get_args, get_origin

T = TypeVar("T")
_ANNOTATED_MARKER_MIN_ARGS = 2


class SetterMarker:
    """Marker that declares a class attribute as a setter dependency.

    Setter dependencies are assigned after every service of the container has
    been created, which is how two services can hold references to each other.
    """

    def __repr__(self) -> str:
        return "SetterMarker()"


if TYPE_CHECKING:
    Setter = Annotated[T, SetterMarker()]
    """Declare a class attribute that the container assigns during wiring.

    At runtime ``Setter[T]`` becomes ``Annotated[T, SetterMarker()]``.

    Examples:
        .. code-block:: python

            class CallResolver:
                type_resolver: Setter[TypeResolver]
    """

else:

    class Setter:
        """Declare a class attribute that the container assigns during wiring.

        At runtime ``Setter[T]`` resolves to ``Annotated[T, SetterMarker()]``.
        Existing ``Annotated`` metadata on ``T`` is kept, so component-style
        string or marker keys survive.

        Examples:
            .. code-block:: python

                class CallResolver:
                    type_resolver: Setter[TypeResolver]

        """

        def __class_getitem__(cls, item: T) -> Annotated[T, SetterMarker]:
            if get_origin(item) is Annotated:
                args = get_args(item)
                return build_annotated_key((args[0], *args[1:], SetterMarker()))
            return build_annotated_key((item, SetterMarker()))


def is_setter_annotation(annotation: Any) -> bool:
    """Return True when annotation is Annotated[..., SetterMarker()]."""
    if get_origin(annotation) is not Annotated:
        return False
    annotation_args = get_args(annotation)
    if len(annotation_args) < _ANNOTATED_MARKER_MIN_ARGS:
        return False
    return any(isinstance(item, SetterMarker) for item in annotation_args[1:])


def strip_setter_annotation(annotation: Any) -> Any:
    """Strip the Setter marker while preserving other Annotated metadata."""
    if not is_setter_annotation(annotation):
        return annotation

    annotation_args = get_args(annotation)
    metadata = tuple(item for item in annotation_args[1:] if not isinstance(item, SetterMarker))
    if not metadata:
        return annotation_args[0]
    return build_annotated_key((annotation_args[0], *metadata))


def build_annotated_key(params: tuple[object, ...]) -> Any:
    """Return Annotated[...] with a pre-built params tuple (Py 3.10+ compatible)."""
    try:
        return Annotated.__class_getitem__(params)  # type: ignore[attr-defined]
    except AttributeError:
        return Annotated.__getitem__(params)  # type: ignore[attr-defined]
