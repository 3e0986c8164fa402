import pytest

from nebulastore.result import Result, err, ok
from nebulastore.types import ErrorCode, InvalidArgumentError, NotFoundError


def test_ok_holds_value():
    result = ok(5)
    assert result.has_value()
    assert not result.has_error()
    assert result.unwrap() == 5
    assert result.error is None


def test_ok_without_argument():
    result = ok()
    assert result.has_value()
    assert result.unwrap() is None


def test_err_raises_on_unwrap():
    error = NotFoundError("missing")
    result = err(error)
    assert result.has_error()
    assert result.error is error
    with pytest.raises(NotFoundError) as info:
        result.unwrap()
    assert info.value.code == ErrorCode.NOT_FOUND


def test_err_rejects_non_status_error():
    with pytest.raises(TypeError):
        err(ValueError("nope"))


def test_map_transforms_value_and_passes_error():
    assert ok(5).map(lambda x: x * 2).unwrap() == 10
    error = NotFoundError("x")
    mapped = err(error).map(lambda x: x * 2)
    assert mapped.error is error


def test_and_then_chains():
    def halve(n):
        if n % 2:
            return err(InvalidArgumentError("odd"))
        return ok(n // 2)

    assert ok(8).and_then(halve).and_then(halve).unwrap() == 2
    failed = ok(6).and_then(halve).and_then(halve)
    assert failed.has_error()
    assert failed.error.code == ErrorCode.INVALID_ARGUMENT


def test_or_else_recovers_only_errors():
    recovered = err(NotFoundError("x")).or_else(lambda e: ok(e.message))
    assert recovered.unwrap() == "x"
    untouched = ok(3)
    assert untouched.or_else(lambda e: ok(0)) is untouched


def test_equality():
    assert ok("a") == ok("a")
    assert ok("a") != ok("b")
    error = NotFoundError()
    assert err(error) == err(error)
    assert isinstance(ok(1), Result)