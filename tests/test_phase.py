import math

import numpy as np
import pytest

from adslab.errors import ConfigurationError
from adslab.errors import TruncationWarning
from adslab.phase import delta_m
from adslab.phase import redistribution
from adslab.phase import scaled_properties
from adslab.quadrature import choose_quadrature


def test_delta_m_isotropic():
    chi, f = delta_m(0.0, 6)
    assert f == 0
    np.testing.assert_array_equal(chi, [1, 0, 0, 0, 0, 0])


@pytest.mark.parametrize("g", [-0.9, -0.3, 0.5, 0.99])
def test_delta_m(g):
    chi, f = delta_m(g, 8)
    assert math.isclose(f, g**8)
    assert f >= 0
    assert chi[0] == 1
    np.testing.assert_allclose(chi * (1 - f) + f, g ** np.arange(8))


def test_scaled_properties_unchanged_for_isotropic():
    assert scaled_properties(0.7, 2.0, 0.0, 12) == (0.7, 2.0)


def test_scaled_properties_conserve_lossless():
    a_s, b_s = scaled_properties(1.0, 3.0, 0.8, 4)
    assert a_s == 1
    assert math.isclose(b_s, 3 * (1 - 0.8**4))


def test_truncation_warning():
    with pytest.warns(TruncationWarning):
        scaled_properties(0.9, 1.0, 0.99, 4)


@pytest.mark.parametrize(
    "g, mu_c, nu0",
    [
        (0.0, 0, 1),
        (0.5, 0, 1),
        (-0.6, 0, 1),
        (0.9, 0.6, 1),
        (0.8, 0, 0.5),
    ],
)
def test_redistribution_normalized(g, mu_c, nu0):
    quad = choose_quadrature(24, mu_c, nu0)
    hp, hm = redistribution(g, quad)

    np.testing.assert_allclose(hp, hp.T, atol=1e-12)
    np.testing.assert_allclose(hm, hm.T, atol=1e-12)

    # int_{-1}^{1} h(mu, mu') dmu' = 2
    np.testing.assert_allclose((hp + hm) @ quad.w, 2, rtol=1e-10)


def test_redistribution_forward_peaked():
    quad = choose_quadrature(24)
    hp, hm = redistribution(0.7, quad)
    # more light scattered forward than back
    assert np.all(np.diag(hp) > np.diag(hm))


def test_redistribution_unknown_phase_function():
    quad = choose_quadrature(8)
    with pytest.raises(ConfigurationError):
        redistribution(0.5, quad, phase_function="rayleigh")
