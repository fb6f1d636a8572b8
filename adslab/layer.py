r"""
Layer operators and the adding-doubling method.

A :class:`LayerOperator` holds the reflection and transmission matrices of a
layer for radiances at the quadrature directions. Entry ``[i, j]`` maps incident
radiance along :math:`\mu_j` to outgoing radiance along :math:`\mu_i`, so
composing layers is ordinary matrix multiplication and the (discrete) identity
layer is the identity matrix.

Face 0 is the top of the layer, face 1 the bottom: ``R01`` reflects light
incident from above, ``T01`` transmits it downward; ``R10``/``T10`` are the
same for light incident from below.

Reciprocity in this representation reads
:math:`2\mu_i w_i R_{ij} = 2\mu_j w_j R_{ji}`
(flux weights on both sides), and :math:`2\mu_i w_i T^{01}_{ij} = 2\mu_j w_j T^{10}_{ji}`.

The multiple reflections trapped between two layers,
:math:`\sum_k (R_{10} R_{12})^k`, are summed in closed form by solving with
:math:`I - R_{10} R_{12}` (LU with partial pivoting). An exactly or numerically
singular system is an error, never approximated.

References
----------
* van de Hulst, *Multiple Light Scattering* (1980)
* Wiscombe, "On initialization, error and flux conservation in the
  doubling method", JQSRT 16 (1976)
* Prahl, "The adding-doubling method", in *Optical-Thermal Response of
  Laser-Irradiated Tissue* (1995)
"""
import math

import numpy as np
import scipy.linalg

from .errors import ConfigurationError
from .errors import NumericalError
from .phase import redistribution
from .phase import scaled_properties

__all__ = (
    "LayerOperator",
    "add",
    "add_diagonal",
    "double",
    "double_until_infinite",
    "start_thickness",
    "thin_layer",
    "homogeneous_layer",
    "INIT_METHODS",
)

INIT_METHODS = ("diamond", "igi")

INF_TOL = 1e-6
"""Change in URU and UTU below which a semi-infinite layer is considered converged."""

MAX_DOUBLINGS = 64

RCOND_MIN = np.finfo(float).eps
"""Smallest reciprocal condition number accepted in a linear solve (the
threshold at which :func:`scipy.linalg.solve` reports an ill-conditioned matrix)."""


class LayerOperator:
    """Reflection and transmission matrices of a layer, for both faces."""

    def __init__(self, R01, R10, T01, T10):
        self.R01 = np.asarray(R01, dtype=float)
        self.R10 = np.asarray(R10, dtype=float)
        self.T01 = np.asarray(T01, dtype=float)
        self.T10 = np.asarray(T10, dtype=float)
        n = self.R01.shape[0]
        assert all(M.shape == (n, n) for M in (self.R01, self.R10, self.T01, self.T10))

    @classmethod
    def symmetric(cls, R, T):
        """Layer that looks the same from both faces (e.g. homogeneous)."""
        return cls(R, R, T, T)

    @classmethod
    def identity(cls, n):
        """A layer of nothing: no reflection, full transmission."""
        return cls.symmetric(np.zeros((n, n)), np.eye(n))

    @classmethod
    def diagonal(cls, r, t, r_back=None, t_back=None):
        """Layer that does not redistribute between directions
        (interfaces, non-scattering absorbers)."""
        r_back = r if r_back is None else r_back
        t_back = t if t_back is None else t_back
        return cls(np.diag(r), np.diag(r_back), np.diag(t), np.diag(t_back))

    @property
    def n(self):
        return self.R01.shape[0]

    @property
    def R(self):
        """Reflection for light incident on the top face."""
        return self.R01

    @property
    def T(self):
        """Transmission for light incident on the top face."""
        return self.T01

    def flip(self):
        """The same layer turned upside down."""
        return LayerOperator(self.R10, self.R01, self.T10, self.T01)

    def is_symmetric(self, *, atol=1e-12):
        return np.allclose(self.R01, self.R10, rtol=0, atol=atol) and np.allclose(
            self.T01, self.T10, rtol=0, atol=atol
        )

    def __repr__(self):
        return f"{__class__.__name__}(n={self.n})"


def _solve(A, B, what="adding"):
    """Solve ``A X = B``, raising :class:`NumericalError` if `A` is singular
    to working precision (reciprocal condition number below :const:`RCOND_MIN`)."""
    A = np.asarray(A, dtype=float)
    if not np.all(np.isfinite(A)):
        raise NumericalError(f"non-finite matrix in {what} step")

    getrf, gecon = scipy.linalg.get_lapack_funcs(("getrf", "gecon"), (A,))
    lu, piv, info = getrf(A)
    if info != 0:
        raise NumericalError(f"singular matrix in {what} step (getrf info={info})")
    rcond, info = gecon(lu, np.linalg.norm(A, 1), norm="1")
    if info != 0 or rcond < RCOND_MIN:
        raise NumericalError(f"singular matrix in {what} step (rcond={rcond:.3g})")

    X = scipy.linalg.lu_solve((lu, piv), B)
    if not np.all(np.isfinite(X)):
        raise NumericalError(f"non-finite values in {what} step")
    return X


def add(top, bottom):
    """Combine two stacked layers, `top` above `bottom`.

    With layer `top` between interfaces 0 and 1, and `bottom` between 1 and 2:

    .. math::
       R_{02} &= R_{01} + T_{10} R_{12} (I - R_{10} R_{12})^{-1} T_{01} \\
       T_{02} &= T_{12} (I - R_{10} R_{12})^{-1} T_{01} \\
       R_{20} &= R_{21} + T_{12} R_{10} (I - R_{12} R_{10})^{-1} T_{21} \\
       T_{20} &= T_{10} (I - R_{12} R_{10})^{-1} T_{21}

    Returns
    -------
    LayerOperator
    """
    eye = np.eye(top.n)

    X = _solve(eye - top.R10 @ bottom.R01, top.T01)
    Y = _solve(eye - bottom.R01 @ top.R10, bottom.T10)

    R02 = top.R01 + top.T10 @ bottom.R01 @ X
    T02 = bottom.T01 @ X
    R20 = bottom.R10 + bottom.T01 @ top.R10 @ Y
    T20 = top.T10 @ Y

    return LayerOperator(R02, R20, T02, T20)


def add_diagonal(top, bottom):
    """:func:`add` for two layers that do not redistribute between directions,
    one direction at a time.

    A direction totally reflected by both layers (light trapped between them)
    cannot be fed by any source. It keeps the reflection of the outer face and
    transmits nothing.
    """
    r01, r10, t01, t10 = (np.diag(M) for M in (top.R01, top.R10, top.T01, top.T10))
    s01, s10, u01, u10 = (np.diag(M) for M in (bottom.R01, bottom.R10, bottom.T01, bottom.T10))

    denom = 1 - r10 * s01
    k = np.divide(1.0, denom, out=np.zeros_like(denom), where=denom > 0)

    return LayerOperator.diagonal(
        r01 + t10 * s01 * t01 * k,
        u01 * t01 * k,
        s10 + u01 * r10 * u10 * k,
        t10 * u10 * k,
    )


def _double_once(layer):
    R, T = layer.R01, layer.T01
    X = _solve(np.eye(layer.n) - R @ R, T, "doubling")
    return LayerOperator.symmetric(R + T @ R @ X, T @ X)


def double(layer, n):
    """Double the thickness of a homogeneous (symmetric) layer `n` times.

    .. math::
       R' = R + T R (I - R R)^{-1} T, \\quad T' = T (I - R R)^{-1} T
    """
    for _ in range(n):
        layer = _double_once(layer)
    return layer


def _diffuse_totals(layer, twoaw):
    """URU and UTU of a bare layer (no boundaries)."""
    return twoaw @ layer.R01.sum(axis=1), twoaw @ layer.T01.sum(axis=1)


def double_until_infinite(layer, twoaw, *, tol=INF_TOL, max_doublings=MAX_DOUBLINGS):
    """Double until the diffuse reflection and transmission stop changing.

    Raises
    ------
    NumericalError
        If the layer has not converged after `max_doublings` doublings.
    """
    uru, utu = _diffuse_totals(layer, twoaw)
    change = math.inf
    for _ in range(max_doublings):
        layer = _double_once(layer)
        uru_new, utu_new = _diffuse_totals(layer, twoaw)
        change = max(abs(uru_new - uru), abs(utu_new - utu))
        if change < tol:
            return layer
        uru, utu = uru_new, utu_new

    raise NumericalError(
        f"semi-infinite layer did not converge within {max_doublings} doublings "
        f"(last change {change:.3g})"
    )


def start_thickness(b, mu_min, factor=1.0):
    """Thickness of the thin layer the doubling starts from.

    `b` is halved until it is no thicker than ``factor * mu_min``,
    the slant path along the most grazing direction is then at most
    ``1/factor`` mean free paths.
    Smaller `factor` means a more accurate start and more doublings.

    Returns
    -------
    d : float
        Starting thickness.
    n : int or None
        Number of doublings to reach `b`; ``None`` for ``b = inf``,
        which starts from ``factor * mu_min / 2`` and doubles to convergence.
    """
    if b == 0:
        return 0.0, 0

    target = factor * mu_min
    if math.isinf(b):
        return target / 2, None

    d = b
    n = 0
    while d > target:
        d /= 2
        n += 1

    return d, n


def thin_layer(a, d, mu, w, hp, hm, method="diamond"):
    r"""Reflection and transmission of a thin homogeneous layer.

    Parameters
    ----------
    a : float
        Albedo.
    d : float
        Optical thickness (small compared to `mu`).
    mu, w : array_like
        Quadrature directions and weights.
    hp, hm : ndarray
        Redistribution matrices, see :func:`~adslab.phase.redistribution`.
    method : {'diamond', 'igi'}
        ``'diamond'`` (default) integrates the discrete-ordinate equations across
        the layer with the trapezoidal rule (second order in `d`; exactly
        flux conserving for ``a = 1``). ``'igi'`` is the infinitesimal generator,
        single scattering to first order in `d`.

    Returns
    -------
    LayerOperator
    """
    mu = np.asarray(mu, dtype=float)
    w = np.asarray(w, dtype=float)
    n = mu.size
    eye = np.eye(n)

    if method == "igi":
        R = a * d * hm * w / (2 * mu[:, np.newaxis])
        T = a * d * hp * w / (2 * mu[:, np.newaxis]) + np.diag(1 - d / mu)
        return LayerOperator.symmetric(R, T)

    if method != "diamond":
        raise ConfigurationError(
            f"invalid initialization method {method!r}. "
            f"Valid options are: {', '.join(INIT_METHODS)}."
        )

    # mu dI+/dtau = -alpha I+ + beta I-  (and mirrored for I-)
    alpha = (eye - 0.5 * a * hp * w) / mu[:, np.newaxis]
    beta = 0.5 * a * hm * w / mu[:, np.newaxis]
    A = 0.5 * d * alpha
    B = 0.5 * d * beta

    X = eye + A
    XB = _solve(X, B, "initialization")
    G_inv = _solve(X - B @ XB, eye, "initialization")

    T = 2 * G_inv - eye
    R = 2 * XB @ G_inv

    return LayerOperator.symmetric(R, T)


def homogeneous_layer(
    a,
    b,
    g,
    quad,
    *,
    init="diamond",
    start_depth_factor=1.0,
    inf_tol=INF_TOL,
    max_doublings=MAX_DOUBLINGS,
):
    """Reflection and transmission of a homogeneous scattering layer
    with albedo `a`, optical thickness `b` (may be ``inf``) and anisotropy `g`.

    The delta-M scaled properties are used, see :mod:`adslab.phase`.
    """
    a_s, b_s = scaled_properties(a, b, g, quad.n)
    hp, hm = redistribution(g, quad)

    d, n_doublings = start_thickness(b_s, quad.mu[0], start_depth_factor)
    layer = thin_layer(a_s, d, quad.mu, quad.w, hp, hm, init)

    if n_doublings is None:
        return double_until_infinite(layer, quad.twoaw, tol=inf_tol, max_doublings=max_doublings)

    return double(layer, n_doublings)
