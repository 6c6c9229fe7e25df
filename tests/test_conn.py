import pytest

from wgcore.conn import (
    Bind,
    BindAlreadyOpenError,
    Endpoint,
    WrongEndpointTypeError,
    pretty_name,
)


def test_pretty_name():
    recv_func = lambda bufs, sizes, eps: 0  # noqa: E731
    assert pretty_name(recv_func) == "test_pretty_name"


def _make_receive_ipv4():
    def inner(bufs, sizes, eps):
        return 0

    return inner


def _make_receive_ipv6():
    return lambda bufs, sizes, eps: 0


def test_closure_in_ipv4_maker_is_v4():
    assert pretty_name(_make_receive_ipv4()) == "v4"


def test_lambda_in_ipv6_maker_is_v6():
    assert pretty_name(_make_receive_ipv6()) == "v6"


class _Receiver:
    def receive_ipv6(self, bufs, sizes, eps):
        return 0

    def receiveIPv4(self, bufs, sizes, eps):
        return 0

    def beans(self, bufs, sizes, eps):
        return 0


def test_bound_methods():
    receiver = _Receiver()
    assert pretty_name(receiver.receive_ipv6) == "v6"
    assert pretty_name(receiver.receiveIPv4) == "v4"
    assert pretty_name(receiver.beans) == "beans"


def taco(bufs, sizes, eps):
    return 0


def test_plain_function_keeps_its_name():
    assert pretty_name(taco) == "taco"


def test_nested_lambdas_use_outermost_named_function():
    def outer():
        return lambda: (lambda bufs, sizes, eps: 0)

    assert pretty_name(outer()()) == "outer"


class _CallableObject:
    def __call__(self, bufs, sizes, eps):
        return 0


def test_unnamed_callable_is_shown_by_address():
    obj = _CallableObject()
    assert pretty_name(obj) == f"0x{id(obj):x}"


def test_interfaces_are_abstract():
    with pytest.raises(TypeError):
        Endpoint()
    with pytest.raises(TypeError):
        Bind()


def test_error_messages():
    assert str(BindAlreadyOpenError()) == "bind is already open"
    assert (
        str(WrongEndpointTypeError())
        == "endpoint type does not correspond with bind type"
    )
    assert issubclass(WrongEndpointTypeError, TypeError)