r"""
The adding-doubling engine: slab parameters in, UR1, UT1, URU, UTU out.

Pipeline, for one record::

    quadrature -> redistribution -> thin layer -> doubling -> slides -> reduction

Everything is computed in directions inside the slab. A direction bin carries the
same flux in every medium it refracts into, so with the cosine-weighted
quadrature weights :math:`2\mu_i w_i` the reductions are

.. math::
   \mathrm{UR1} = \frac{\sum_i 2\mu_i w_i R_{i0}}{2\mu_0 w_0}, \quad
   \mathrm{URU} = n^2 \sum_{i} 2\mu_i w_i \sum_{j \in \mathrm{out}} R_{ij}

where :math:`0` is the node of the refracted collimated beam, :math:`n` the slab
index and "out" the slab directions that connect to directions outside the
sample (the :math:`n^2` converts uniform outside radiance to slab radiance).
UT1 and UTU follow with the transmission operator.

The engine trusts its input (see :func:`adslab.slab.validate`). It is a pure
function of its arguments, so records can be processed in parallel.
"""
import math
from collections import namedtuple

import numpy as np

from .errors import NumericalError
from .fresnel import critical_cosine
from .fresnel import refracted_cosine
from .layer import INF_TOL
from .layer import MAX_DOUBLINGS
from .layer import homogeneous_layer
from .quadrature import choose_quadrature
from .quadrature import gauss
from .slab import failure_code
from .slides import N_OUTSIDE
from .slides import add_slides
from .slides import boundary_stack

__all__ = (
    "TransportResult",
    "rt",
    "rt_matrices",
    "rt_or_failure",
    "slab_quadrature",
    "collimated",
    "diffuse",
)

RESULT_KEYS = ["UR1", "UT1", "URU", "UTU"]


class TransportResult(namedtuple("TransportResult", RESULT_KEYS)):
    """Total reflection and transmission for collimated (UR1, UT1)
    and diffuse (URU, UTU) illumination."""

    __slots__ = ()

    @property
    def A1(self):
        """Absorbed fraction of the collimated beam."""
        return 1 - self.UR1 - self.UT1

    @property
    def AU(self):
        """Absorbed fraction of the diffuse illumination."""
        return 1 - self.URU - self.UTU


def _beam_enters(slab):
    """Whether the collimated beam can refract into the slab at all
    (only an issue for a slab less dense than the surroundings)."""
    if slab.n_slab >= N_OUTSIDE:
        return True
    s2 = N_OUTSIDE**2 * (1 - slab.cos_angle**2)
    return s2 < slab.n_slab**2


def slab_quadrature(slab, nstreams):
    """Quadrature in slab directions with the critical angle of the
    slab/outside boundary and the refracted beam resolved."""
    mu_c = critical_cosine(slab.n_slab, N_OUTSIDE)
    if _beam_enters(slab):
        nu0 = float(refracted_cosine(slab.cos_angle, N_OUTSIDE, slab.n_slab))
    else:
        nu0 = 1.0
    return choose_quadrature(nstreams, mu_c, nu0)


def rt_matrices(
    slab,
    nstreams=24,
    *,
    init="diamond",
    start_depth_factor=1.0,
    inf_tol=INF_TOL,
    max_doublings=MAX_DOUBLINGS,
):
    """Quadrature and the combined operator of slab and slides.

    Returns
    -------
    quad : QuadratureSet
    layer : LayerOperator
        Face 0 above the sample, face 1 below it, in slab directions.
    """
    quad = slab_quadrature(slab, nstreams)
    bare = homogeneous_layer(
        slab.a,
        slab.b,
        slab.g,
        quad,
        init=init,
        start_depth_factor=start_depth_factor,
        inf_tol=inf_tol,
        max_doublings=max_doublings,
    )
    layer = add_slides(bare, slab, quad, init=init, start_depth_factor=start_depth_factor)
    return quad, layer


def collimated(layer, quad):
    """UR1 and UT1 for unit flux incident along the node ``quad.incident``."""
    k = quad.incident
    twoaw = quad.twoaw
    ur1 = twoaw @ layer.R01[:, k] / twoaw[k]
    ut1 = twoaw @ layer.T01[:, k] / twoaw[k]
    return ur1, ut1


def diffuse(layer, quad, n_slab):
    """URU and UTU for unit flux of uniform diffuse light from outside,
    counting only the part that reaches the slab's directions."""
    outside = refracted_cosine(quad.mu, n_slab, N_OUTSIDE) > 0
    x = n_slab**2 * outside
    uru = quad.twoaw @ (layer.R01 @ x)
    utu = quad.twoaw @ (layer.T01 @ x)
    return uru, utu


def _stack_reflection(slab, mu_outside, **kwargs):
    """Reflection of the top boundary stack along outside directions `mu_outside`
    that are totally reflected before reaching the slab."""
    mu_slide = refracted_cosine(mu_outside, N_OUTSIDE, slab.n_top_slide)
    stack = boundary_stack(
        N_OUTSIDE,
        slab.n_top_slide,
        slab.n_slab,
        slab.b_top_slide,
        mu_slide,
        np.ones_like(mu_slide),
        **kwargs,
    )
    return np.diag(stack.R01)


def _grazing_reflection(slab, n, **kwargs):
    """Diffuse flux reflected by the boundary stack without reaching a slab that is
    less dense than the surroundings: outside directions with
    :math:`\\mu < \\sqrt{1 - n_{slab}^2}` are totally reflected inside the stack."""
    if slab.n_slab >= N_OUTSIDE:
        return 0.0
    mu_max = math.sqrt(1 - (slab.n_slab / N_OUTSIDE) ** 2)
    x, w = gauss(n, 0, mu_max)
    r = _stack_reflection(slab, x, **kwargs)
    return np.sum(2 * x * w * r)


def rt(slab, nstreams=24, **options):
    """Total reflection and transmission of a slab.

    Parameters
    ----------
    slab : SlabParameters
        Validated parameters.
    nstreams : int
        Number of quadrature streams, a positive multiple of 4.
    **options
        Engine tunables passed on to :func:`rt_matrices`:
        ``init`` (``'diamond'`` or ``'igi'``), ``start_depth_factor``,
        ``inf_tol``, ``max_doublings``.

    Returns
    -------
    TransportResult

    Raises
    ------
    ConfigurationError
        Bad `nstreams` or engine option.
    NumericalError
        A numerical step failed for this record.
    """
    quad, layer = rt_matrices(slab, nstreams, **options)
    stack_options = {k: v for k, v in options.items() if k in ("init", "start_depth_factor")}

    if _beam_enters(slab):
        ur1, ut1 = collimated(layer, quad)
    else:
        ur1 = _stack_reflection(slab, np.array([slab.cos_angle]), **stack_options)[0]
        ut1 = 0.0

    uru, utu = diffuse(layer, quad, slab.n_slab)
    uru += _grazing_reflection(slab, quad.n, **stack_options)

    res = TransportResult(float(ur1), float(ut1), float(uru), float(utu))
    if not all(math.isfinite(x) for x in res):
        raise NumericalError(f"non-finite result {res}")

    return res


def rt_or_failure(slab, nstreams=24, **options):
    """Driver-level call: validate first, and on failure return the (negative)
    failure code in all four slots, as the ``ad`` program reports it.

    Numerical errors are not caught.
    """
    code = failure_code(slab, nstreams)
    if code:
        return TransportResult(*[float(code)] * 4)
    return rt(slab, nstreams, **options)
