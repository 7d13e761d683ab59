import pytest

from pico_conventions.filters import ExactType, NamespacePrefix, PredicateFilter, TypeFilterSet, as_filter
from sample_app.other_namespace import ServiceInOtherNamespace
from sample_app.services import BarService, FooService


def test_empty_set_accepts_everything():
    filters = TypeFilterSet()
    assert filters.is_eligible(FooService)
    assert filters(BarService)


def test_exclude_wins_over_include():
    filters = TypeFilterSet().include(ExactType(FooService)).exclude(ExactType(FooService))
    assert not filters.is_eligible(FooService)


def test_first_include_turns_the_set_into_a_whitelist():
    filters = TypeFilterSet().include(ExactType(FooService))
    assert filters.is_eligible(FooService)
    assert not filters.is_eligible(BarService)

    filters.include(lambda t: t is BarService)
    assert filters.is_eligible(BarService)


def test_namespace_prefix_matches_module_and_submodules_only():
    f = NamespacePrefix("sample_app.other_namespace")
    assert f.matches(ServiceInOtherNamespace)
    assert not f.matches(FooService)
    assert NamespacePrefix("sample_app").matches(FooService)
    assert not NamespacePrefix("sample_app.other").matches(ServiceInOtherNamespace)


def test_as_filter_wraps_callables():
    f = as_filter(lambda t: t.__name__.startswith("Foo"))
    assert isinstance(f, PredicateFilter)
    assert f(FooService)
    assert not f(BarService)
    with pytest.raises(TypeError):
        as_filter("FooService")


def test_filters_are_listed_in_registration_order():
    a, b = ExactType(FooService), ExactType(BarService)
    filters = TypeFilterSet().exclude(a).exclude(b)
    assert filters.excludes == (a, b)
    assert filters.includes == ()
