import math

import numpy as np
import pytest

from adslab.fresnel import critical_cosine
from adslab.fresnel import fresnel_reflection
from adslab.fresnel import interface
from adslab.fresnel import refracted_cosine


@pytest.mark.parametrize("n", [1.33, 1.5, 2.0])
def test_normal_incidence(n):
    r0 = ((n - 1) / (n + 1)) ** 2
    assert math.isclose(fresnel_reflection(1, n, 1.0), r0)
    assert math.isclose(fresnel_reflection(n, 1, 1.0), r0)


def test_matched_indices():
    mu = np.linspace(0, 1, 11)
    np.testing.assert_array_equal(fresnel_reflection(1.4, 1.4, mu), 0)
    np.testing.assert_array_equal(refracted_cosine(mu, 1.4, 1.4), mu)


def test_total_internal_reflection():
    mu_c = critical_cosine(1.5, 1.0)
    assert math.isclose(mu_c, math.sqrt(1 - 1 / 1.5**2))
    mu = np.array([0.0, 0.5 * mu_c, 0.999 * mu_c])
    np.testing.assert_array_equal(fresnel_reflection(1.5, 1.0, mu), 1)
    np.testing.assert_array_equal(refracted_cosine(mu, 1.5, 1.0), 0)
    assert fresnel_reflection(1.5, 1.0, 1.001 * mu_c) < 1


def test_no_critical_angle_into_denser_medium():
    assert critical_cosine(1.0, 1.5) == 0


def test_grazing_incidence():
    assert fresnel_reflection(1.0, 1.5, 0.0) == 1


def test_zero_index_reflects_everything():
    np.testing.assert_array_equal(fresnel_reflection(1.0, 0.0, [0.2, 0.7, 1.0]), 1)


@pytest.mark.parametrize("n_i, n_t", [(1.0, 1.5), (1.5, 1.0), (1.33, 1.7)])
def test_same_from_both_sides(n_i, n_t):
    mu_i = np.linspace(0.05, 1, 20)
    mu_t = refracted_cosine(mu_i, n_i, n_t)
    ok = mu_t > 0
    np.testing.assert_allclose(
        fresnel_reflection(n_i, n_t, mu_i[ok]), fresnel_reflection(n_t, n_i, mu_t[ok]), atol=1e-13
    )


def test_monotone_in_angle():
    mu = np.linspace(0.01, 1, 50)
    r = fresnel_reflection(1.0, 1.5, mu)
    # Brewster's angle makes r_p vanish but the unpolarized sum stays monotone
    assert np.all(np.diff(r) <= 1e-12)


def test_interface_operator():
    mu = np.array([0.3, 0.6, 1.0])
    op = interface(1.0, 1.5, mu)
    np.testing.assert_allclose(np.diag(op.R01) + np.diag(op.T01), 1)
    assert op.is_symmetric()
    assert np.count_nonzero(op.R01 - np.diag(np.diag(op.R01))) == 0
