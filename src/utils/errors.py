from __future__ import annotations


class CorrelationError(Exception):
    """Base class for every failure raised by the correlation job."""


class SchemaError(CorrelationError):
    """Feature schema descriptor or attribute declaration is unusable."""


class SchemaMismatchError(CorrelationError):
    """Two contingency matrices for the same attribute pair disagree on shape."""

    def __init__(self, expected: tuple[int, int], got: tuple[int, int], key: object = None) -> None:
        self.expected = expected
        self.got = got
        self.key = key
        where = f" for {key}" if key is not None else ""
        super().__init__(f"matrix shape mismatch{where}: expected {expected[0]}x{expected[1]}, got {got[0]}x{got[1]}")

    def __reduce__(self):
        # re-raised across process-pool workers
        return (type(self), (self.expected, self.got, self.key))


class UnrecognizedCategoryError(CorrelationError, KeyError):
    """A raw field value is not one of the field's declared categories."""

    def __init__(self, field_name: str, value: str) -> None:
        self.field_name = field_name
        self.value = value
        super().__init__(f"{value!r} is not a category of field {field_name!r}")

    def __reduce__(self):
        return (type(self), (self.field_name, self.value))

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])


class MalformedMatrixError(CorrelationError, ValueError):
    """Serialized contingency matrix is corrupt or truncated."""
