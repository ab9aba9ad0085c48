from __future__ import annotations

import inspect
import sys
from collections.abc import Callable, Generator, Iterator, Mapping, Sequence
from contextlib import AbstractContextManager
from dataclasses import dataclass
from inspect import Parameter
from typing import Annotated, Any, ForwardRef, get_args, get_origin, get_type_hints

from wireset._internal.integrations.pydantic_settings import is_pydantic_settings_subclass
from wireset._internal.markers import (
    build_annotated_key,
    is_setter_annotation,
    strip_setter_annotation,
)
from wireset.exceptions import WiresetDependencyInferenceError, WiresetInvalidDescriptorError

_MISSING_ANNOTATION: Any = object()
_GENERATOR_ORIGINS: tuple[type[Any], ...] = (Generator, Iterator)
_CONTEXT_MANAGER_ORIGINS: tuple[type[Any], ...] = (AbstractContextManager, *_GENERATOR_ORIGINS)


@dataclass(frozen=True, slots=True)
class ConstructorDependency:
    """A dependency passed to the provider when the service is created.

    ``parameter_name`` of ``None`` means the value is passed positionally, in
    declaration order, ahead of every keyword argument.
    """

    provides: Any
    parameter_name: str | None = None


@dataclass(frozen=True, slots=True)
class SetterDependency:
    """A dependency assigned to ``attribute`` after every service exists."""

    provides: Any
    attribute: str


@dataclass(slots=True)
class DependenciesExtractor:
    """Extracts constructor and setter dependencies from user-defined providers."""

    def extract_constructor_dependencies(
        self,
        provider: Callable[..., Any],
    ) -> tuple[ConstructorDependency, ...]:
        """Infer constructor dependencies from the provider signature.

        Required parameters must be annotated; the annotation is the dependency
        key. Parameters with defaults are left to the provider.

        Args:
            provider: Concrete class or factory callable to inspect.

        """
        if is_pydantic_settings_subclass(provider):
            return ()

        provider_name = provider_name_of(provider)
        try:
            parameters = self._provider_parameters(provider)
        except (TypeError, ValueError) as error:
            msg = (
                f"Unable to inspect the signature of provider '{provider_name}'. "
                "Pass explicit dependencies."
            )
            raise WiresetDependencyInferenceError(msg) from error

        annotations, annotation_error = self._resolved_type_hints(provider)
        dependencies: list[ConstructorDependency] = []

        for parameter in parameters:
            if not self._is_required_parameter(parameter):
                continue
            provides = annotations.get(parameter.name, _MISSING_ANNOTATION)
            if provides is _MISSING_ANNOTATION:
                raw_annotation = parameter.annotation
                if raw_annotation is Parameter.empty or isinstance(raw_annotation, str):
                    self._raise_missing_annotation(
                        parameter=parameter,
                        provider_name=provider_name,
                        annotation_error=annotation_error,
                    )
                provides = raw_annotation

            parameter_name = None if parameter.kind is Parameter.POSITIONAL_ONLY else parameter.name
            dependencies.append(ConstructorDependency(provides=provides, parameter_name=parameter_name))

        return tuple(dependencies)

    def normalize_explicit_dependencies(
        self,
        provider: Callable[..., Any],
        dependencies: Sequence[Any] | Mapping[str, Any],
    ) -> tuple[ConstructorDependency, ...]:
        """Turn explicit dependencies into constructor dependency records.

        A sequence means positional arguments; a mapping means keyword
        arguments by parameter name, validated against the provider signature
        when it can be inspected.

        Args:
            provider: Provider the dependencies are passed to.
            dependencies: Keys in positional order, or parameter name to key.

        """
        if isinstance(dependencies, Mapping):
            self._validate_parameter_names(provider, dependencies)
            return tuple(
                ConstructorDependency(provides=provides, parameter_name=name)
                for name, provides in dependencies.items()
            )
        if isinstance(dependencies, (str, bytes)):
            msg = (
                f"Explicit dependencies for provider '{provider_name_of(provider)}' must be a "
                "sequence of keys or a mapping of parameter names to keys, not a string."
            )
            raise WiresetInvalidDescriptorError(msg)
        return tuple(ConstructorDependency(provides=provides) for provides in dependencies)

    def extract_setter_dependencies(self, service_type: Any) -> tuple[SetterDependency, ...]:
        """Collect ``Setter[T]`` class annotations, base classes first.

        When some class annotation cannot be evaluated (for example a type
        imported only under ``TYPE_CHECKING``), annotations are read one by one
        and only the ones referring to ``Setter`` have to resolve.

        Args:
            service_type: Class whose annotations declare setter slots.

        """
        if not isinstance(service_type, type) or is_pydantic_settings_subclass(service_type):
            return ()
        try:
            hints = get_type_hints(service_type, include_extras=True)
        except (AttributeError, NameError, TypeError) as error:
            hints = self._setter_hints_from_raw_annotations(service_type, error)

        return tuple(
            SetterDependency(provides=strip_setter_annotation(annotation), attribute=attribute)
            for attribute, annotation in hints.items()
            if is_setter_annotation(annotation)
        )

    def normalize_explicit_setters(self, setters: Mapping[str, Any]) -> tuple[SetterDependency, ...]:
        normalized: list[SetterDependency] = []
        for attribute, provides in setters.items():
            if not attribute.isidentifier():
                msg = f"Setter attribute '{attribute}' is not a valid identifier."
                raise WiresetInvalidDescriptorError(msg)
            normalized.append(SetterDependency(provides=provides, attribute=attribute))
        return tuple(normalized)

    def _validate_parameter_names(
        self,
        provider: Callable[..., Any],
        dependencies: Mapping[str, Any],
    ) -> None:
        try:
            parameters = {parameter.name: parameter for parameter in self._provider_parameters(provider)}
        except (TypeError, ValueError):
            return
        accepts_any_keyword = any(
            parameter.kind is Parameter.VAR_KEYWORD for parameter in parameters.values()
        )
        for name in dependencies:
            parameter = parameters.get(name)
            if parameter is None and not accepts_any_keyword:
                msg = (
                    f"Explicit dependency for unknown parameter '{name}' in "
                    f"provider '{provider_name_of(provider)}'."
                )
                raise WiresetInvalidDescriptorError(msg)
            if parameter is not None and parameter.kind is Parameter.POSITIONAL_ONLY:
                msg = (
                    f"Explicit dependency for positional-only parameter '{name}' in provider "
                    f"'{provider_name_of(provider)}' must be passed as a sequence."
                )
                raise WiresetInvalidDescriptorError(msg)

    def _setter_hints_from_raw_annotations(
        self,
        service_type: type[Any],
        hints_error: Exception,
    ) -> dict[str, Any]:
        hints: dict[str, Any] = {}
        for klass in reversed(service_type.__mro__):
            module = sys.modules.get(klass.__module__)
            globalns = vars(module) if module is not None else {}
            localns = dict(vars(klass))
            for attribute, annotation in inspect.get_annotations(klass).items():
                if not _mentions_setter(annotation):
                    continue
                try:
                    resolved = _evaluate_annotation(annotation, globalns, localns)
                    if is_setter_annotation(resolved):
                        base, *metadata = get_args(resolved)
                        resolved = build_annotated_key(
                            (_evaluate_annotation(base, globalns, localns), *metadata),
                        )
                except (AttributeError, NameError, SyntaxError, TypeError) as error:
                    msg = (
                        f"Unable to evaluate setter annotation '{attribute}' of "
                        f"'{service_type.__qualname__}': {error}"
                    )
                    raise WiresetDependencyInferenceError(msg) from hints_error
                hints[attribute] = resolved
        return hints

    def _provider_parameters(self, provider: Callable[..., Any]) -> tuple[Parameter, ...]:
        return tuple(inspect.signature(provider).parameters.values())

    def _resolved_type_hints(
        self,
        provider: Callable[..., Any],
    ) -> tuple[dict[str, Any], Exception | None]:
        annotations: dict[str, Any] = {}
        annotation_error: Exception | None = None

        targets: list[Any] = [provider]
        if inspect.isclass(provider):
            # __init__ hints win over class-level (dataclass field) hints.
            targets = [provider.__init__, provider]

        for target in targets:
            try:
                hints = get_type_hints(target, include_extras=True)
            except (AttributeError, NameError, TypeError) as error:
                if annotation_error is None:
                    annotation_error = error
                continue
            for name, annotation in hints.items():
                annotations.setdefault(name, annotation)

        annotations.pop("return", None)
        return annotations, annotation_error

    def _is_required_parameter(self, parameter: Parameter) -> bool:
        return (
            parameter.default is Parameter.empty
            and parameter.kind is not Parameter.VAR_POSITIONAL
            and parameter.kind is not Parameter.VAR_KEYWORD
        )

    def _raise_missing_annotation(
        self,
        *,
        parameter: Parameter,
        provider_name: str,
        annotation_error: Exception | None,
    ) -> None:
        error_message = (
            f"Unable to infer dependency for required parameter '{parameter.name}' "
            f"in provider '{provider_name}'. Add a type annotation or pass explicit dependencies."
        )
        if annotation_error is None:
            raise WiresetDependencyInferenceError(error_message)
        msg = f"{error_message} Original annotation error: {annotation_error}"
        raise WiresetDependencyInferenceError(msg) from annotation_error


@dataclass(slots=True)
class ProvidedTypeExtractor:
    """Infers the key a provider produces from its return annotation."""

    def extract_from_factory(self, factory: Callable[..., Any]) -> Any:
        """Return the factory's return annotation.

        Args:
            factory: Factory callable to inspect.

        """
        return_annotation, annotation_error = self._resolved_return_annotation(factory)
        if return_annotation is _MISSING_ANNOTATION:
            self._raise_inference_error(
                provider_kind="factory",
                provider=factory,
                expected_annotations="`T`",
                annotation_error=annotation_error,
            )
        return return_annotation

    def extract_from_generator(self, generator: Callable[..., Any]) -> Any:
        """Return ``T`` from ``Generator[T, None, None]`` or ``Iterator[T]``.

        Args:
            generator: Generator function to inspect.

        """
        return_annotation, annotation_error = self._resolved_return_annotation(generator)
        yielded_type = self._first_argument_for_origins(return_annotation, _GENERATOR_ORIGINS)
        if yielded_type is _MISSING_ANNOTATION:
            self._raise_inference_error(
                provider_kind="generator",
                provider=generator,
                expected_annotations="`Generator[T, None, None]` or `Iterator[T]`",
                annotation_error=annotation_error,
            )
        return yielded_type

    def extract_from_context_manager(self, context_manager: Callable[..., Any]) -> Any:
        """Return the managed type of a context manager provider.

        Args:
            context_manager: Callable returning a context manager, or a context
                manager class with an annotated ``__enter__``.

        """
        return_annotation, annotation_error = self._resolved_return_annotation(context_manager)
        managed_type = self._first_argument_for_origins(return_annotation, _CONTEXT_MANAGER_ORIGINS)
        if managed_type is not _MISSING_ANNOTATION:
            return managed_type

        if isinstance(context_manager, type) and callable(getattr(context_manager, "__enter__", None)):
            enter_annotation, _ = self._resolved_return_annotation(context_manager.__enter__)
            if enter_annotation is not _MISSING_ANNOTATION:
                return enter_annotation

        self._raise_inference_error(
            provider_kind="context manager",
            provider=context_manager,
            expected_annotations=(
                "`AbstractContextManager[T]`, `Generator[T, None, None]`, or an annotated `__enter__`"
            ),
            annotation_error=annotation_error,
        )
        return _MISSING_ANNOTATION  # pragma: no cover

    def _first_argument_for_origins(
        self,
        annotation: Any,
        expected_origins: tuple[type[Any], ...],
    ) -> Any:
        if get_origin(annotation) is Annotated:
            annotation = get_args(annotation)[0]
        if get_origin(annotation) not in expected_origins:
            return _MISSING_ANNOTATION
        annotation_args = get_args(annotation)
        if not annotation_args:
            return _MISSING_ANNOTATION
        return annotation_args[0]

    def _resolved_return_annotation(self, provider: Callable[..., Any]) -> tuple[Any, Exception | None]:
        try:
            return_type_hints = get_type_hints(provider, include_extras=True)
            annotation_error: Exception | None = None
        except (AttributeError, NameError, TypeError) as error:
            return_type_hints = {}
            annotation_error = error

        resolved = return_type_hints.get("return", _MISSING_ANNOTATION)
        if resolved is not _MISSING_ANNOTATION:
            return resolved, annotation_error

        try:
            raw_return_annotation = inspect.signature(provider).return_annotation
        except (TypeError, ValueError) as error:
            return _MISSING_ANNOTATION, annotation_error or error

        if raw_return_annotation is inspect.Signature.empty or isinstance(raw_return_annotation, str):
            return _MISSING_ANNOTATION, annotation_error
        return raw_return_annotation, annotation_error

    def _raise_inference_error(
        self,
        *,
        provider_kind: str,
        provider: Callable[..., Any],
        expected_annotations: str,
        annotation_error: Exception | None,
    ) -> None:
        msg = (
            f"Unable to infer the provided key for {provider_kind} provider "
            f"'{provider_name_of(provider)}'. Expected return annotation {expected_annotations}. "
            "Add a valid return annotation or pass provides= explicitly."
        )
        if annotation_error is None:
            raise WiresetDependencyInferenceError(msg)
        full_msg = f"{msg} Original annotation error: {annotation_error}"
        raise WiresetDependencyInferenceError(full_msg) from annotation_error


def provider_name_of(provider: Callable[..., Any]) -> str:
    return getattr(provider, "__qualname__", repr(provider))


def _mentions_setter(annotation: Any) -> bool:
    if isinstance(annotation, str):
        return "Setter" in annotation
    return is_setter_annotation(annotation)


def _evaluate_annotation(annotation: Any, globalns: dict[str, Any], localns: dict[str, Any]) -> Any:
    if isinstance(annotation, ForwardRef):
        annotation = annotation.__forward_arg__
    if isinstance(annotation, str):
        return eval(annotation, globalns, localns)  # noqa: S307
    return annotation
