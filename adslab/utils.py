"""
Some utility functions, mostly for internal use.
"""
import math


def cf_units_to_tex(s: str):
    """Convert CF-style units string to TeX-like.
    (In order to get exponents in plot labels, etc.)
    """
    import re

    if s == "1":  # CF unitless
        return s

    def expify(match):
        m = match.group(0)
        return f"$^{{{m}}}$"

    # integers with optional negative sign (hyphen)
    s_new = re.sub(r"-?\d", expify, s)

    return s_new


def cos_from_angle(theta_deg):
    """Cosine of an angle given in degrees, snapped to exactly 1 at normal incidence."""
    if theta_deg == 0:
        return 1.0
    return math.cos(math.radians(theta_deg))


def format_float(x):
    """``%9.5f`` formatting used by the ``ad`` text output."""
    return f"{x:9.5f}"
