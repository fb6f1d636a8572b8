"""
Slab parameter record, its defaults, and the range checks applied
before a record reaches the engine.
"""
import enum
import math
from collections import namedtuple

from .errors import ValidationError
from .utils import cos_from_angle

__all__ = ("PhaseFunction", "SlabParameters", "DEFAULTS", "validate", "failure_code")


class PhaseFunction(enum.Enum):
    """Single-scattering phase functions known to the engine."""

    HENYEY_GREENSTEIN = "hg"


SLAB_PARAMETER_KEYS = [
    "a",
    "b",
    "g",
    "n_slab",
    "n_top_slide",
    "n_bottom_slide",
    "b_top_slide",
    "b_bottom_slide",
    "cos_angle",
    "phase_function",
]

DEFAULT_NSTREAMS = 24

DEFAULTS = dict(
    a=0.5,
    b=math.inf,
    g=0.0,
    n_slab=1.0,
    n_top_slide=1.0,
    n_bottom_slide=1.0,
    b_top_slide=0.0,
    b_bottom_slide=0.0,
    cos_angle=1.0,
    phase_function=PhaseFunction.HENYEY_GREENSTEIN,
)
"""Driver defaults: a=0.5, semi-infinite, isotropic, index matched, normal incidence."""

_SlabParameters = namedtuple(
    "_SlabParameters",
    SLAB_PARAMETER_KEYS,
    defaults=[DEFAULTS[k] for k in SLAB_PARAMETER_KEYS],
)


class SlabParameters(_SlabParameters):
    """Optical description of a slab and its slides.

    Attributes
    ----------
    a : float
        Single-scattering albedo.
    b : float
        Optical thickness; ``math.inf`` for a semi-infinite slab.
    g : float
        Henyey-Greenstein anisotropy.
    n_slab, n_top_slide, n_bottom_slide : float
        Refractive indices (relative to the surrounding medium).
    b_top_slide, b_bottom_slide : float
        Optical thicknesses of the non-scattering slides.
    cos_angle : float
        Cosine of the incidence angle of the collimated beam, outside the sample.
    phase_function : PhaseFunction
    """

    __slots__ = ()

    @classmethod
    def from_angle(cls, theta_deg, **kwargs):
        """Construct with the collimated beam incident at `theta_deg` degrees."""
        return cls(cos_angle=cos_from_angle(theta_deg), **kwargs)

    @property
    def is_infinite(self):
        return math.isinf(self.b)

    @property
    def has_slides(self):
        return (
            self.n_top_slide != 1
            or self.n_bottom_slide != 1
            or self.b_top_slide != 0
            or self.b_bottom_slide != 0
        )

    def replace(self, **kwargs):
        """Return a new record with some fields replaced."""
        return self._replace(**kwargs)

    def as_dict(self):
        return dict(self._asdict())


def load_default_case():
    """Default slab and stream count, as used by the ``ad`` driver."""
    return SlabParameters(**DEFAULTS), DEFAULT_NSTREAMS


# field, lower, upper, lower inclusive, upper inclusive, code, message label
_CHECKS = [
    ("a", 0, 1, True, True, -1, "Albedo a"),
    ("b", 0, math.inf, True, True, -2, "Optical Thickness b"),
    ("g", -1, 1, False, False, -3, "Anisotropy g"),
    ("n_slab", 0, 10, True, True, -4, "Slab Index n"),
    ("n_top_slide", 1, 10, True, True, -5, "Top Slide Index n"),
    ("n_bottom_slide", 1, 10, True, True, -6, "Bottom Slide Index n"),
    ("b_top_slide", 0, 10, True, True, -7, "Top Slide Optical Thickness b"),
    ("b_bottom_slide", 0, 10, True, True, -8, "Bottom Slide Optical Thickness b"),
]


def _in_range(x, lo, hi, lo_incl, hi_incl):
    if math.isnan(x):
        return False
    above = x >= lo if lo_incl else x > lo
    below = x <= hi if hi_incl else x < hi
    return above and below


def validate(slab, nstreams):
    """Check every field of `slab` and the quadrature order.

    Raises
    ------
    ValidationError
        For the first failing check, carrying the driver's failure code:
        -1 albedo, -2 optical thickness, -3 anisotropy, -4 slab index,
        -5/-6 top/bottom slide index, -7/-8 top/bottom slide thickness,
        -9 number of quadrature points, -10 incidence cosine.
    """
    for field, lo, hi, lo_incl, hi_incl, code, label in _CHECKS:
        value = getattr(slab, field)
        if not _in_range(value, lo, hi, lo_incl, hi_incl):
            raise ValidationError(code, field, value, f"Bad {label}={value:f}")

    if nstreams < 4 or nstreams % 4 != 0:
        raise ValidationError(
            -9,
            "nstreams",
            nstreams,
            f"Bad Number of Quadrature Points npts={nstreams:d}\n"
            "Should be a multiple of four!",
        )

    if not _in_range(slab.cos_angle, 0, 1, False, True):
        raise ValidationError(
            -10,
            "cos_angle",
            slab.cos_angle,
            "Incident angle must be between 0 and 90 degrees",
        )

    if not isinstance(slab.phase_function, PhaseFunction):
        raise ValidationError(-11, "phase_function", slab.phase_function)


def failure_code(slab, nstreams):
    """Return 0 if `slab` is valid, else the (negative) failure code."""
    try:
        validate(slab, nstreams)
    except ValidationError as e:
        return e.code
    return 0
