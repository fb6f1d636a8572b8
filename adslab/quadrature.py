r"""
Angular quadrature over the hemisphere of direction cosines :math:`\mu \in (0, 1]`.

Nodes are found by Newton iteration on Legendre polynomials,
starting from the usual analytic (Chebyshev-like) estimates.
Two rules are provided:

* Gauss-Legendre on :math:`(l, h)` -- exact for polynomials of degree :math:`2n - 1`
* Gauss-Radau on :math:`(l, h]` with :math:`h` as a node -- exact to degree :math:`2n - 2`

The Radau rule puts a node exactly on the direction of the collimated beam,
so no interpolation in angle is ever needed.
"""
import math
import warnings

import numpy as np
from numpy.polynomial import legendre

from .errors import ConfigurationError
from .errors import NumericalError

__all__ = ("QuadratureSet", "gauss", "radau", "choose_quadrature")

NEWTON_TOL = 1e-14
NEWTON_MAX_ITER = 100

MIN_INTERVAL = 1e-6
"""Narrowest sub-interval allowed between the critical and the incident cosine."""


def _newton(x, c):
    """Polish the roots of the Legendre series with coefficients `c`,
    starting from the estimates `x`."""
    dc = legendre.legder(c)
    for _ in range(NEWTON_MAX_ITER):
        dx = legendre.legval(x, c) / legendre.legval(x, dc)
        x = x - dx
        if np.max(np.abs(dx)) <= NEWTON_TOL:
            return x
    raise NumericalError(
        f"Legendre root finding did not converge in {NEWTON_MAX_ITER} iterations "
        f"(degree {c.size - 1})"
    )


def _map(x, w, lo, hi):
    """Map nodes and weights on [-1, 1] to [lo, hi], in increasing order."""
    i = np.argsort(x)
    half = 0.5 * (hi - lo)
    return lo + half * (x[i] + 1), half * w[i]


def gauss(n, lo=0.0, hi=1.0):
    """Gauss-Legendre nodes and weights on the open interval (`lo`, `hi`).

    Returns
    -------
    x, w : ndarray
        Increasing nodes and the corresponding (positive) weights.
    """
    if n < 1:
        raise ConfigurationError(f"need at least one quadrature node, got n={n}")
    k = np.arange(1, n + 1)
    x0 = np.cos(np.pi * (k - 0.25) / (n + 0.5))

    c = np.zeros(n + 1)
    c[n] = 1  # P_n
    x = _newton(x0, c)

    dp = legendre.legval(x, legendre.legder(c))
    w = 2 / ((1 - x**2) * dp**2)

    return _map(x, w, lo, hi)


def radau(n, lo=0.0, hi=1.0):
    """Gauss-Radau nodes and weights on (`lo`, `hi`] with `hi` included as a node.

    The interior nodes are the zeros of :math:`(P_{n-1} + P_n) / (1 + x)`
    (Abramowitz & Stegun 25.4.31), reflected so that the fixed node is
    the right end point.
    """
    if n < 1:
        raise ConfigurationError(f"need at least one quadrature node, got n={n}")
    if n == 1:
        return np.array([hi], dtype=float), np.array([hi - lo], dtype=float)

    k = np.arange(1, n)
    x0 = -np.cos(2 * np.pi * k / (2 * n - 1))

    c = np.zeros(n + 1)
    c[n - 1] = c[n] = 1  # P_{n-1} + P_n
    x = _newton(x0, c)

    c_nm1 = np.zeros(n)
    c_nm1[n - 1] = 1
    p_nm1 = legendre.legval(x, c_nm1)
    w = (1 - x) / (n**2 * p_nm1**2)

    # fixed node at -1, then reflect so it sits at +1
    x = -np.r_[-1.0, x]
    w = np.r_[2.0 / n**2, w]

    return _map(x, w, lo, hi)


class QuadratureSet:
    r"""Quadrature directions and weights for one hemisphere.

    Attributes
    ----------
    mu : ndarray
        Direction cosines, strictly increasing in (0, 1].
    w : ndarray
        Weights, :math:`\sum w = 1`.
    twoaw : ndarray
        Cosine-weighted weights :math:`2 \mu_i w_i`. These are the flux weights:
        :math:`\sum_i 2 \mu_i w_i = \int_0^1 2 \mu \, d\mu = 1`.
    incident : int
        Index of the node along which a collimated beam travels in the slab.
    """

    def __init__(self, mu, w, incident=None):
        mu = np.asarray(mu, dtype=float)
        w = np.asarray(w, dtype=float)
        assert mu.shape == w.shape and mu.ndim == 1
        assert np.all(np.diff(mu) > 0), "nodes must be strictly increasing"
        assert mu[0] > 0 and mu[-1] <= 1
        assert np.all(w > 0)
        self.mu = mu
        self.w = w
        self.twoaw = 2 * mu * w
        self.incident = mu.size - 1 if incident is None else incident
        self.mu.setflags(write=False)
        self.w.setflags(write=False)
        self.twoaw.setflags(write=False)

    @classmethod
    def concatenate(cls, *parts, incident=None):
        """Join (x, w) pairs from adjacent sub-intervals."""
        mu = np.concatenate([p[0] for p in parts])
        w = np.concatenate([p[1] for p in parts])
        return cls(mu, w, incident)

    @property
    def n(self):
        """Number of directions in the hemisphere (half the number of streams)."""
        return self.mu.size

    def __len__(self):
        return self.mu.size

    def index(self, mu0, *, rtol=1e-9):
        """Index of the node equal to `mu0`."""
        i = int(np.argmin(np.abs(self.mu - mu0)))
        if not math.isclose(self.mu[i], mu0, rel_tol=rtol):
            raise ValueError(f"{mu0} is not a quadrature node")
        return i

    def integrate(self, f):
        r"""Approximate :math:`\int_0^1 f(\mu) \, d\mu` for values `f` at the nodes."""
        return np.dot(self.w, f)

    def __repr__(self):
        return f"{__class__.__name__}(n={self.n}, mu=[{self.mu[0]:.4g}, ..., {self.mu[-1]:.4g}])"


def check_nstreams(nstreams):
    if nstreams < 4 or nstreams % 4 != 0:
        raise ConfigurationError(
            f"number of quadrature streams must be a positive multiple of 4, got {nstreams}"
        )


def choose_quadrature(nstreams, mu_c=0.0, nu0=1.0):
    """Quadrature for a slab with internal critical cosine `mu_c`,
    illuminated along the internal cosine `nu0`.

    The ``nstreams // 2`` nodes of the hemisphere are split into sub-intervals
    so that the kink of the Fresnel transmission at `mu_c` falls on an
    interval edge and `nu0` is a node:

    * normal incidence: Radau on (0, 1], or Gauss on (0, mu_c) + Radau on (mu_c, 1]
    * oblique incidence: additionally Radau on (., nu0] + Radau on (nu0, 1]

    Parameters
    ----------
    nstreams : int
        Number of streams (both hemispheres), a positive multiple of 4.
    mu_c : float
        Cosine of the critical angle inside the slab (0 if there is none).
    nu0 : float
        Cosine of the refracted collimated beam inside the slab.
    """
    check_nstreams(nstreams)
    n = nstreams // 2

    if nu0 >= 1 - 1e-12:
        if mu_c <= 0:
            return QuadratureSet(*radau(n, 0, 1))
        n1 = n // 2
        return QuadratureSet.concatenate(gauss(n1, 0, mu_c), radau(n - n1, mu_c, 1))

    if mu_c > 0 and n < 3:
        warnings.warn(
            f"{nstreams} streams are too few to resolve both the critical angle and the "
            "angle of incidence; ignoring the critical angle in the quadrature"
        )
        mu_c = 0.0

    nu0 = min(max(nu0, mu_c + MIN_INTERVAL), 1 - MIN_INTERVAL)

    if mu_c <= 0:
        n1 = n // 2
        return QuadratureSet.concatenate(
            radau(n1, 0, nu0), radau(n - n1, nu0, 1), incident=n1 - 1
        )

    n1 = n2 = n // 3
    return QuadratureSet.concatenate(
        gauss(n1, 0, mu_c),
        radau(n2, mu_c, nu0),
        radau(n - n1 - n2, nu0, 1),
        incident=n1 + n2 - 1,
    )
