"""
Exceptions raised by adslab.

The engine assumes validated input, so only configuration problems
(detected before any computation) and numerical failures can come out of it.
Validation failures belong to the driver (:func:`adslab.slab.validate`).
"""


class AdslabError(Exception):
    """Base class for all adslab errors."""


class ConfigurationError(AdslabError, ValueError):
    """Invalid engine configuration, e.g. a quadrature order that is not a
    positive multiple of 4 or an unknown initialization method."""


class NumericalError(AdslabError, ArithmeticError):
    """A numerical step could not complete for the current record
    (root finding, matrix inversion, fixed-point iteration)."""


class ValidationError(AdslabError, ValueError):
    """A slab parameter is out of range.

    Parameters
    ----------
    code : int
        Negative failure code, as reported by the ``ad`` driver.
    field : str
        Name of the offending parameter.
    value
        The offending value.
    """

    def __init__(self, code, field, value, message=None):
        self.code = code
        self.field = field
        self.value = value
        if message is None:
            message = f"Bad {field}={value!r}"
        super().__init__(message)


class TruncationWarning(UserWarning):
    """A large part of the phase function was moved into the unscattered beam
    by the delta-M moment cap (strongly forward or backward peaked scattering
    with few quadrature streams)."""
