from csemark.tele_errors import (
    ArgCountMismatchError,
    ArgValueMismatchError,
    UnauthorizedError,
)


def test_arg_count_mismatch_message():
    error = ArgCountMismatchError(2, 3)
    assert str(error) == "Arg count mismatch: needed 2, got 3"
    assert (error.needed, error.actual) == (2, 3)


def test_arg_value_mismatch_message():
    error = ArgValueMismatchError("course invalid")
    assert str(error) == "Arg value mismatch: course invalid"
    assert error.message == "course invalid"


def test_unauthorized_message():
    error = UnauthorizedError("cannot modify courseId")
    assert str(error) == "Unauthorized action: cannot modify courseId"
    assert error.message == "cannot modify courseId"