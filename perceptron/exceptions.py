"""
exceptions.py
~~~~~~~~~~~~~

Errors raised by the network engine and the snapshot codec.

All of them derive from ``ValueError`` so callers that only care about
"bad input" can catch a single built-in type.
"""


class NetworkError(ValueError):
    """Base class for every error raised by the perceptron package."""


class SizeMismatchError(NetworkError):
    """A vector's length does not match the size of the layer it targets."""

    def __init__(self, what: str, expected: int, actual: int):
        self.what = what
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Size of {what} (`{actual}`) and layer size (`{expected}`) "
            f"must match"
        )


class CountMismatchError(NetworkError):
    """Training inputs and desired outputs have a different number of patterns."""

    def __init__(self, inputs: int, desired_outputs: int):
        self.inputs = inputs
        self.desired_outputs = desired_outputs
        super().__init__(
            f"Number of input patterns (`{inputs}`) and output patterns "
            f"(`{desired_outputs}`) must match"
        )


class EmptyTrainingSetError(NetworkError):
    """Batch training was requested without any training pattern."""


class UnknownActivationError(NetworkError):
    """An activation function name is not part of the catalogue."""

    def __init__(self, name):
        self.name = name
        super().__init__(f"Undefined activation function `{name}`")


class SnapshotError(NetworkError):
    """A serialized network is structurally invalid."""
