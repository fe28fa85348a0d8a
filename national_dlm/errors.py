"""Exception types raised by the national polling DLM."""


class NationalDLMError(Exception):
    """Base class for errors raised by this package."""


class InputError(NationalDLMError, ValueError):
    """Raised when the poll panel or sampler configuration is invalid."""


class NumericalError(NationalDLMError, ArithmeticError):
    """Raised when a distribution draw receives an invalid variance."""
