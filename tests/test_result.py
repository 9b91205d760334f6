"""Result slot type and error taxonomy."""

import pytest

from cotask import BrokenPromise, BrokenResume, Err, Ok, TaskError, UnfinishedPromise
from cotask.result import capture


class TestResult:
    def test_ok_unwraps_value(self) -> None:
        result = Ok(3)

        assert result.is_ok()
        assert result.unwrap() == 3

    def test_err_unwrap_reraises_same_error(self) -> None:
        error = ValueError("bad")
        result = Err(error)

        assert not result.is_ok()
        with pytest.raises(ValueError) as excinfo:
            result.unwrap()
        assert excinfo.value is error

    def test_capture(self) -> None:
        assert capture(int, "12") == Ok(12)
        captured = capture(int, "twelve")
        assert isinstance(captured, Err)
        assert isinstance(captured.error, ValueError)


class TestErrors:
    @pytest.mark.parametrize(
        ("error_type", "message"),
        [
            (BrokenPromise, "broken promise"),
            (BrokenResume, "broken resume"),
            (UnfinishedPromise, "unfinished promise"),
        ],
    )
    def test_default_messages(self, error_type, message) -> None:
        error = error_type()

        assert str(error) == message
        assert isinstance(error, TaskError)
        assert isinstance(error, RuntimeError)

    def test_custom_message(self) -> None:
        assert str(BrokenResume("no key")) == "no key"
