r"""
Henyey-Greenstein phase function in the discrete (quadrature) representation.

The azimuthally averaged redistribution function is expanded in Legendre
polynomials,

.. math::
   h(\mu, \mu') = \sum_{k=0}^{M-1} (2k + 1) \chi_k^* P_k(\mu) P_k(\mu'),

with the Henyey-Greenstein moments :math:`\chi_k = g^k`. The expansion is capped
at :math:`M` terms (one per quadrature direction in a hemisphere), since higher
orders cannot be resolved by the quadrature. The part of the phase function
beyond the cap, the fraction :math:`f = g^M`, is folded into the unscattered
beam (delta-M method, Wiscombe 1977):

.. math::
   \chi_k^* = \frac{\chi_k - f}{1 - f}, \quad
   a^* = \frac{a (1 - f)}{1 - a f}, \quad
   b^* = b (1 - a f).

This is the accuracy/cost trade-off for strongly peaked scattering: the angular
detail of the forward peak is lost, but energy is conserved exactly and the
total (angle-integrated) quantities stay accurate. Because :math:`M` is even
(the number of streams is a multiple of 4), :math:`f \geq 0` also for :math:`g < 0`.

The normalization is :math:`\int_{-1}^{1} h(\mu, \mu') \, d\mu' = 2`
(:math:`h = 1` for isotropic scattering).
"""
import warnings

import numpy as np
from numpy.polynomial import legendre

from .errors import ConfigurationError
from .errors import TruncationWarning
from .slab import PhaseFunction

__all__ = ("hg_moments", "delta_m", "scaled_properties", "redistribution")

G_ISOTROPIC = 1e-9
"""Below this |g| the scattering is treated as exactly isotropic."""

F_WARN = 0.5
"""Warn when more than this fraction of the phase function is truncated."""


def hg_moments(g, n_moments):
    """Legendre moments of the Henyey-Greenstein phase function, :math:`g^k`."""
    return g ** np.arange(n_moments, dtype=float)


def delta_m(g, n_moments):
    """Truncated, renormalized moments and the truncation fraction.

    Returns
    -------
    chi : ndarray
        Moments :math:`\\chi_k^*`, ``k < n_moments``; ``chi[0] == 1``.
    f : float
        Fraction of the phase function moved into the forward direction.
    """
    if abs(g) < G_ISOTROPIC:
        chi = np.zeros(n_moments)
        chi[0] = 1
        return chi, 0.0

    f = g**n_moments
    chi = (hg_moments(g, n_moments) - f) / (1 - f)
    return chi, f


def scaled_properties(a, b, g, n_moments):
    """Delta-M scaled albedo and optical thickness.

    ``b`` may be ``math.inf``.
    """
    _, f = delta_m(g, n_moments)
    if f > F_WARN:
        warnings.warn(
            f"{f:.3g} of the phase function (g={g}) is beyond the {n_moments} moments "
            "the quadrature resolves and is treated as unscattered; "
            "use more streams for angular detail",
            TruncationWarning,
        )
    af = a * f
    a_s = a * (1 - f) / (1 - af)
    b_s = b * (1 - af)
    return a_s, b_s


def redistribution(g, quad, *, n_moments=None, phase_function=PhaseFunction.HENYEY_GREENSTEIN):
    """Redistribution matrices between pairs of quadrature directions.

    Parameters
    ----------
    g : float
        Anisotropy.
    quad : QuadratureSet
    n_moments : int, optional
        Moment cap; defaults to the number of directions in a hemisphere.

    Returns
    -------
    hp, hm : ndarray
        ``hp[i, j]`` = :math:`h(\\mu_i, \\mu_j)` (same hemisphere, transmission)
        and ``hm[i, j]`` = :math:`h(\\mu_i, -\\mu_j)` (reflection). Both symmetric,
        with :math:`\\sum_j w_j (h^+_{ij} + h^-_{ij}) = 2` to round-off.
    """
    if phase_function is not PhaseFunction.HENYEY_GREENSTEIN:
        raise ConfigurationError(f"unsupported phase function {phase_function!r}")

    n = quad.n
    if n_moments is None:
        n_moments = n

    if abs(g) < G_ISOTROPIC:
        ones = np.ones((n, n))
        return ones, ones.copy()

    chi, _ = delta_m(g, n_moments)
    k = np.arange(n_moments)
    P = legendre.legvander(quad.mu, n_moments - 1)  # (n, M): P_k(mu_i)
    c = (2 * k + 1) * chi
    hp = (P * c) @ P.T
    hm = (P * (c * (-1.0) ** k)) @ P.T

    # split grids do not integrate every moment exactly;
    # the normalization residual goes into the forward direction
    resid = 2 - (hp + hm) @ quad.w
    hp[np.diag_indices(n)] += resid / quad.w

    return hp, hm
