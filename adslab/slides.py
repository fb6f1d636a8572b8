"""
Glass slides above and below the slab.

Each slide is a non-scattering, possibly absorbing layer between two
interfaces: the surrounding medium on the outside and the slab on the inside.
A slide is built the same way as the slab, by the thin-layer initialization
(with the albedo forced to 0) and doubling, then combined with its interfaces
by the adding formula. Without a slide (index 1, thickness 0) the stack
reduces to the bare Fresnel interface of the slab.
"""
import numpy as np

from .fresnel import fresnel_reflection
from .fresnel import interface
from .fresnel import refracted_cosine
from .layer import LayerOperator
from .layer import add
from .layer import add_diagonal
from .layer import double
from .layer import start_thickness
from .layer import thin_layer

__all__ = (
    "N_OUTSIDE",
    "slide_layer",
    "boundary_stack",
    "top_stack",
    "bottom_stack",
    "add_slides",
)

N_OUTSIDE = 1.0
"""Refractive index of the medium surrounding the sample (indices are relative to it)."""


def slide_layer(b_slide, mu_slide, w, *, init="diamond", start_depth_factor=1.0):
    """Purely absorbing layer of optical thickness `b_slide`.

    Parameters
    ----------
    b_slide : float
        Optical thickness of the slide.
    mu_slide : ndarray
        Direction cosines inside the slide; 0 marks directions that cannot
        enter the slide.
    w : ndarray
        Quadrature weights, passed to the thin-layer initialization. With no
        scattering they only fix the number of directions.
    """
    n = mu_slide.size
    if b_slide == 0:
        return LayerOperator.identity(n)

    # directions trapped on the slab side never reach the slide
    mu = np.where(mu_slide > 0, mu_slide, 1.0)
    d, n_doublings = start_thickness(b_slide, mu.min(), start_depth_factor)
    none = np.zeros((n, n))
    layer = thin_layer(0.0, d, mu, w, none, none, init)

    return double(layer, n_doublings)


def boundary_stack(n_outside, n_slide, n_slab, b_slide, mu_slide, w, **kwargs):
    """Outside/slide interface, the slide, and the slide/slab interface.

    Face 0 of the returned operator looks at the outside medium, face 1 at the slab.

    Parameters
    ----------
    mu_slide : ndarray
        Direction cosines inside the slide, 0 where the direction does not exist.
    **kwargs
        Passed on to :func:`slide_layer`.
    """
    # directions that do not exist in the slide are reflected by the inner
    # interface and never reach the outer one
    r = np.where(mu_slide > 0, fresnel_reflection(n_slide, n_outside, mu_slide), 0.0)
    outer = LayerOperator.diagonal(r, 1 - r)
    inner = interface(n_slide, n_slab, mu_slide)
    glass = slide_layer(b_slide, mu_slide, w, **kwargs)

    return add(add(outer, glass), inner)


def top_stack(slab, mu, w, **kwargs):
    """Boundary stack above the slab, for slab direction cosines `mu`."""
    mu_slide = refracted_cosine(mu, slab.n_slab, slab.n_top_slide)
    return boundary_stack(
        N_OUTSIDE, slab.n_top_slide, slab.n_slab, slab.b_top_slide, mu_slide, w, **kwargs
    )


def bottom_stack(slab, mu, w, **kwargs):
    """Boundary stack below the slab (face 0 looking at the slab)."""
    mu_slide = refracted_cosine(mu, slab.n_slab, slab.n_bottom_slide)
    stack = boundary_stack(
        N_OUTSIDE, slab.n_bottom_slide, slab.n_slab, slab.b_bottom_slide, mu_slide, w, **kwargs
    )
    return stack.flip()


def add_slides(slab_layer, slab, quad, **kwargs):
    """Put the top and bottom boundary stacks on the bare slab operator.

    Parameters
    ----------
    slab_layer : LayerOperator
        The bare slab, from :func:`~adslab.layer.homogeneous_layer`.
    slab : SlabParameters
    quad : QuadratureSet
        Quadrature in slab directions.

    Returns
    -------
    LayerOperator
        Face 0 is the outside above the sample, face 1 the outside below it.
    """
    top = top_stack(slab, quad.mu, quad.w, **kwargs)
    bottom = bottom_stack(slab, quad.mu, quad.w, **kwargs)

    # nothing between the stacks; slab directions beyond the critical angle are
    # totally reflected on both sides, which makes the matrix adding singular
    if slab.b == 0:
        return add_diagonal(top, bottom)

    return add(add(top, slab_layer), bottom)
