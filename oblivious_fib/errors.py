"""
Error types for the oblivious Fibonacci engine.

InputParseError is the only recoverable one (the prompt asks again).
CapabilityError aborts the run: without valid ciphertexts there is no result.
"""


class ObliviousFibError(Exception):
    """Base class for every error raised by this package."""


class InputParseError(ObliviousFibError, ValueError):
    """The typed index could not be parsed as a non-negative integer."""


class CapabilityError(ObliviousFibError):
    """Key generation, encryption or a homomorphic operation failed."""


class DomainBoundExceeded(ObliviousFibError, ValueError):
    """The index lies outside [0, bound]."""

    def __init__(self, index, bound):
        self.index = index
        self.bound = bound
        super().__init__(f"Index {index} is outside the supported range 0-{bound}")


class ConfigError(ObliviousFibError, ValueError):
    """The configuration cannot be used (bad bound, unknown backend)."""
