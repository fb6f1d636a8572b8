r"""
Reflection and transmission at a sharp change in refractive index.

Angles on either side of an interface are related by Snell's law,
:math:`n_i \sin\theta_i = n_t \sin\theta_t`. All directions in the stack are
labelled by their cosine inside the slab; an interface then acts diagonally
(each slab direction couples to exactly one direction in every other medium),
and flux per direction bin is conserved across it.
"""
import numpy as np

from .layer import LayerOperator

__all__ = ("fresnel_reflection", "refracted_cosine", "critical_cosine", "interface")


def refracted_cosine(mu_i, n_i, n_t):
    r"""Cosine of the direction in medium `n_t` that connects by Snell's law
    to the direction with cosine `mu_i` in medium `n_i`.

    Returns 0 where there is no such direction (total internal reflection).
    """
    mu_i = np.asarray(mu_i, dtype=float)
    if n_i == n_t:
        return mu_i.copy()
    s2 = (n_i / n_t) ** 2 * (1 - mu_i**2)  # sin^2 in the other medium
    return np.sqrt(np.clip(1 - s2, 0, None))


def critical_cosine(n_i, n_t):
    """Cosine of the critical angle for light going from `n_i` to `n_t`
    (0 if there is no total internal reflection)."""
    if n_i <= n_t:
        return 0.0
    return float(np.sqrt(1 - (n_t / n_i) ** 2))


def fresnel_reflection(n_i, n_t, mu_i):
    r"""Fresnel reflectance for unpolarized light.

    Parameters
    ----------
    n_i, n_t : float
        Refractive index of the incidence and transmission media.
    mu_i : float or array_like
        Cosine of the angle of incidence.

    Returns
    -------
    ndarray
        :math:`(r_s^2 + r_p^2) / 2`; 1 beyond the critical angle and at grazing
        incidence, 0 everywhere if ``n_i == n_t``.

    Notes
    -----
    Written in terms of :math:`c_t = n_t \cos\theta_t = \sqrt{n_t^2 - n_i^2 \sin^2\theta_i}`,
    which avoids dividing by `n_t` (``n_t = 0`` reflects everything).
    """
    mu_i = np.asarray(mu_i, dtype=float)
    if n_i == n_t:
        return np.zeros_like(mu_i)

    s2 = n_i**2 * (1 - mu_i**2)
    tir = s2 >= n_t**2
    c_t = np.sqrt(np.clip(n_t**2 - s2, 0, None))
    c_i = n_i * mu_i

    with np.errstate(divide="ignore", invalid="ignore"):
        rs = (c_i - c_t) / (c_i + c_t)
        rp = (n_t**2 * mu_i - n_i * c_t) / (n_t**2 * mu_i + n_i * c_t)
        r = 0.5 * (rs**2 + rp**2)

    return np.where(tir, 1.0, r)


def interface(n_i, n_t, mu_i):
    """Boundary operator of a single interface.

    `mu_i` are the direction cosines in the medium with index `n_i`.
    Fresnel reflectance is the same from either side for directions connected
    by Snell's law, so the operator is diagonal, the same from both faces,
    and does not depend on which medium is on top. It is the identity when
    the indices match.

    Returns
    -------
    LayerOperator
    """
    r = fresnel_reflection(n_i, n_t, mu_i)
    return LayerOperator.diagonal(r, 1 - r)
