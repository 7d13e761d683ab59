from abc import ABC
from typing import Generic, TypeVar

import pytest

from pico_conventions.type_shapes import (
    ClosedGeneric,
    OpenGeneric,
    can_satisfy,
    declared_interfaces,
    display_name,
    implements,
    is_abstraction,
    is_concrete,
    matching_base,
    shape_of,
)
from sample_app.services import (
    AnotherMessage,
    AnotherMessageHandler,
    BarService,
    FooService,
    IBarService,
    IFooService,
    IHandler,
    IHaveManyImplementations,
    IMapper,
    Implementation1,
    IRepository,
    Message,
    MessageHandler,
    MessageToAnotherMessageMapper,
    Repository,
)

K = TypeVar("K")
V = TypeVar("V")


class IPair(ABC, Generic[K, V]):
    pass


class SameTypePair(IPair[K, K]):
    pass


def test_shape_of_plain_class_is_the_class():
    assert shape_of(FooService) is FooService


def test_shape_of_generic_forms():
    assert shape_of(IHandler) == OpenGeneric(IHandler, 1)
    assert shape_of(IHandler[K]) == OpenGeneric(IHandler, 1)
    assert shape_of(IHandler[Message]) == ClosedGeneric(IHandler, (Message,))
    assert shape_of(IPair[K, K]) == ClosedGeneric(IPair, (K, K))


def test_shape_of_rejects_non_types():
    with pytest.raises(TypeError):
        shape_of("IFooService")
    with pytest.raises(TypeError):
        shape_of(FooService())


def test_can_satisfy_exact_and_plain():
    assert can_satisfy(IFooService, IFooService)
    assert not can_satisfy(IFooService, FooService)
    assert not can_satisfy(IHandler[Message], IFooService)


def test_can_satisfy_closed_requests():
    assert can_satisfy(IHandler[Message], IHandler[Message])
    assert not can_satisfy(IHandler[Message], IHandler[AnotherMessage])
    assert can_satisfy(IRepository[Message], IRepository)
    assert can_satisfy(IRepository[Message], IRepository[K])


def test_can_satisfy_open_request_accepts_any_closed_registration():
    assert can_satisfy(IHandler, IHandler[Message])


def test_can_satisfy_binds_type_variables_consistently():
    assert can_satisfy(IPair[int, int], IPair[K, K])
    assert not can_satisfy(IPair[int, str], IPair[K, K])


def test_abstraction_detection():
    assert is_abstraction(IFooService)
    assert is_abstraction(IHaveManyImplementations)
    assert is_abstraction(IMapper)
    assert not is_abstraction(FooService)
    assert not is_abstraction(Implementation1)


def test_concrete_detection_excludes_builtins_and_abstractions():
    assert is_concrete(FooService)
    assert is_concrete(MessageToAnotherMessageMapper)
    assert not is_concrete(str)
    assert not is_concrete(IFooService)
    assert not is_concrete(42)


def test_declared_interfaces_keep_declaration_order():
    assert declared_interfaces(BarService) == (IBarService, IFooService)
    assert declared_interfaces(MessageHandler) == (ClosedGeneric(IHandler, (Message,)),)
    assert declared_interfaces(MessageToAnotherMessageMapper) == (ClosedGeneric(IMapper, (Message, AnotherMessage)),)
    assert declared_interfaces(Repository) == (OpenGeneric(IRepository, 1),)
    assert declared_interfaces(Message) == ()


def test_matching_base_finds_the_closed_form():
    assert matching_base(AnotherMessageHandler, IHandler) == ClosedGeneric(IHandler, (AnotherMessage,))
    assert matching_base(MessageHandler, IHandler[AnotherMessage]) is None
    assert matching_base(BarService, IFooService) is IFooService
    assert implements(SameTypePair, IPair)
    assert not implements(FooService, IBarService)


def test_display_name():
    assert display_name(FooService) == "FooService"
    assert display_name(shape_of(IHandler)) == "IHandler[T]"
    assert display_name(shape_of(IMapper[Message, AnotherMessage])) == "IMapper[Message, AnotherMessage]"
