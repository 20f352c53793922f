from __future__ import annotations


class SampleAppError(Exception):
    """Base class for failures the sample app knows how to report."""


class DriverConnectionError(SampleAppError):
    pass


class AuthError(SampleAppError):
    pass


class ConfigError(SampleAppError):
    pass


class SchemaError(SampleAppError):
    pass


class DataError(SampleAppError):
    pass


class QueryError(SampleAppError):
    pass


class PreconditionError(SampleAppError):
    """Raised inside a transaction scope when exactly-one matching failed.

    Unwinding the `with` block closes the transaction without a commit.
    """

    def __init__(self, message: str, *, matched: int) -> None:
        super().__init__(message)
        self.matched = matched


class ProbeMismatch(SampleAppError):
    def __init__(self, actual: int | None, expected: int) -> None:
        super().__init__(f"Failed with the result: {actual}\nExpected result: {expected}.")
        self.actual = actual
        self.expected = expected
