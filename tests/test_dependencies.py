"""Tests for constructor, setter, and provided key inference."""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import AbstractContextManager, contextmanager
from typing import TYPE_CHECKING, Annotated, Any

import pytest
from wiring_services import Project, ServiceA, ServiceC, ServiceD

from wireset import (
    ConstructorDependency,
    DescriptorTable,
    Setter,
    SetterDependency,
    WiresetDependencyInferenceError,
    WiresetInvalidDescriptorError,
)
from wireset._internal.dependencies import DependenciesExtractor, ProvidedTypeExtractor

if TYPE_CHECKING:
    from decimal import Decimal


class WithDefaults:
    def __init__(self, a: ServiceA, retries: int = 3, *args: Any, **kwargs: Any) -> None:
        self.a = a


class WithPositionalOnly:
    def __init__(self, a: ServiceA, /, project: Project) -> None:
        self.a = a
        self.project = project


class Unannotated:
    def __init__(self, value) -> None:  # type: ignore[no-untyped-def]
        self.value = value


class UnresolvableAnnotation:
    def __init__(self, value: MissingType) -> None:  # type: ignore[name-defined]  # noqa: F821
        self.value = value


class Base:
    a: Setter[ServiceA]


class Derived(Base):
    project: Setter[Project]
    plain: int = 0


class UnresolvableSetter:
    other: Setter[MissingType]  # type: ignore[name-defined]  # noqa: F821


class PriceCache:
    _last: Decimal | None = None


class PricedResolver(PriceCache):
    project: Setter[Project]
    rounding: Decimal


class ManagedProject:
    def __enter__(self) -> Project:
        return Project()

    def __exit__(self, *exc_info: object) -> None:
        return None


@pytest.fixture()
def extractor() -> DependenciesExtractor:
    return DependenciesExtractor()


@pytest.fixture()
def provided() -> ProvidedTypeExtractor:
    return ProvidedTypeExtractor()


def test_required_parameters_become_keyword_dependencies(extractor: DependenciesExtractor) -> None:
    dependencies = extractor.extract_constructor_dependencies(WithDefaults)

    assert dependencies == (ConstructorDependency(provides=ServiceA, parameter_name="a"),)


def test_positional_only_parameters_are_passed_positionally(
    extractor: DependenciesExtractor,
) -> None:
    dependencies = extractor.extract_constructor_dependencies(WithPositionalOnly)

    assert dependencies == (
        ConstructorDependency(provides=ServiceA, parameter_name=None),
        ConstructorDependency(provides=Project, parameter_name="project"),
    )


def test_class_without_init_has_no_dependencies(extractor: DependenciesExtractor) -> None:
    assert extractor.extract_constructor_dependencies(ServiceD) == ()


def test_factory_parameters_are_inferred(extractor: DependenciesExtractor) -> None:
    def make(project: Project, a: ServiceA) -> ServiceC:
        raise NotImplementedError

    assert extractor.extract_constructor_dependencies(make) == (
        ConstructorDependency(provides=Project, parameter_name="project"),
        ConstructorDependency(provides=ServiceA, parameter_name="a"),
    )


def test_missing_annotation_raises_inference_error(extractor: DependenciesExtractor) -> None:
    with pytest.raises(WiresetDependencyInferenceError, match="required parameter 'value'"):
        extractor.extract_constructor_dependencies(Unannotated)


def test_unresolvable_annotation_chains_original_error(extractor: DependenciesExtractor) -> None:
    with pytest.raises(WiresetDependencyInferenceError, match="Original annotation error") as exc_info:
        extractor.extract_constructor_dependencies(UnresolvableAnnotation)

    assert isinstance(exc_info.value.__cause__, NameError)


def test_explicit_mapping_dependencies_are_validated_against_signature(
    extractor: DependenciesExtractor,
) -> None:
    dependencies = extractor.normalize_explicit_dependencies(
        WithPositionalOnly,
        {"project": Project},
    )
    assert dependencies == (ConstructorDependency(provides=Project, parameter_name="project"),)

    with pytest.raises(WiresetInvalidDescriptorError, match="unknown parameter 'missing'"):
        extractor.normalize_explicit_dependencies(WithPositionalOnly, {"missing": Project})
    with pytest.raises(WiresetInvalidDescriptorError, match="positional-only"):
        extractor.normalize_explicit_dependencies(WithPositionalOnly, {"a": ServiceA})


def test_explicit_mapping_accepts_any_name_for_var_keyword(
    extractor: DependenciesExtractor,
) -> None:
    dependencies = extractor.normalize_explicit_dependencies(WithDefaults, {"extra": Project})

    assert dependencies == (ConstructorDependency(provides=Project, parameter_name="extra"),)


def test_explicit_sequence_dependencies_are_positional(extractor: DependenciesExtractor) -> None:
    dependencies = extractor.normalize_explicit_dependencies(WithDefaults, [ServiceA, Project])

    assert dependencies == (
        ConstructorDependency(provides=ServiceA),
        ConstructorDependency(provides=Project),
    )


def test_explicit_string_dependencies_are_rejected(extractor: DependenciesExtractor) -> None:
    with pytest.raises(WiresetInvalidDescriptorError, match="not a string"):
        extractor.normalize_explicit_dependencies(WithDefaults, "ServiceA")


def test_setter_dependencies_include_base_class_annotations(
    extractor: DependenciesExtractor,
) -> None:
    setters = extractor.extract_setter_dependencies(Derived)

    assert set(setters) == {
        SetterDependency(provides=ServiceA, attribute="a"),
        SetterDependency(provides=Project, attribute="project"),
    }


def test_setter_dependencies_of_non_class_are_empty(extractor: DependenciesExtractor) -> None:
    assert extractor.extract_setter_dependencies("service_key") == ()


def test_unresolvable_setter_annotation_raises(extractor: DependenciesExtractor) -> None:
    with pytest.raises(WiresetDependencyInferenceError, match="UnresolvableSetter"):
        extractor.extract_setter_dependencies(UnresolvableSetter)


def test_explicit_setters_require_identifiers(extractor: DependenciesExtractor) -> None:
    assert extractor.normalize_explicit_setters({"project": Project}) == (
        SetterDependency(provides=Project, attribute="project"),
    )
    with pytest.raises(WiresetInvalidDescriptorError, match="not a valid identifier"):
        extractor.normalize_explicit_setters({"not valid": Project})


def test_setter_dependencies_keep_annotated_metadata(extractor: DependenciesExtractor) -> None:
    class Tagged:
        project: Setter[Annotated[Project, "primary"]]

    (setter,) = extractor.extract_setter_dependencies(Tagged)

    assert setter.attribute == "project"
    assert setter.provides == Annotated[Project, "primary"]


def test_factory_key_is_return_annotation(provided: ProvidedTypeExtractor) -> None:
    def make() -> Project:
        return Project()

    assert provided.extract_from_factory(make) is Project


def test_factory_without_return_annotation_raises(provided: ProvidedTypeExtractor) -> None:
    def make():  # type: ignore[no-untyped-def]
        return Project()

    with pytest.raises(WiresetDependencyInferenceError, match="pass provides= explicitly"):
        provided.extract_from_factory(make)


def test_generator_key_is_yielded_type(provided: ProvidedTypeExtractor) -> None:
    def iterate() -> Iterator[Project]:
        yield Project()

    def generate() -> Generator[ServiceA, None, None]:
        yield ServiceA()

    assert provided.extract_from_generator(iterate) is Project
    assert provided.extract_from_generator(generate) is ServiceA


def test_generator_with_plain_return_annotation_raises(provided: ProvidedTypeExtractor) -> None:
    def not_a_generator() -> Project:
        return Project()

    with pytest.raises(WiresetDependencyInferenceError, match="generator provider"):
        provided.extract_from_generator(not_a_generator)


def test_context_manager_key_inference(provided: ProvidedTypeExtractor) -> None:
    @contextmanager
    def decorated() -> Iterator[Project]:
        yield Project()

    def factory() -> AbstractContextManager[ServiceA]:
        raise NotImplementedError

    assert provided.extract_from_context_manager(decorated) is Project
    assert provided.extract_from_context_manager(factory) is ServiceA
    assert provided.extract_from_context_manager(ManagedProject) is Project


def test_annotations_only_known_to_type_checkers_do_not_block_setter_inference(
    extractor: DependenciesExtractor,
) -> None:
    assert extractor.extract_setter_dependencies(PriceCache) == ()
    assert extractor.extract_setter_dependencies(PricedResolver) == (
        SetterDependency(provides=Project, attribute="project"),
    )


def test_class_with_type_checking_only_annotation_registers(table: DescriptorTable) -> None:
    table.add_concrete(PriceCache)

    assert table.get_service(PriceCache).setters == ()
