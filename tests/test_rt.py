import math
import warnings

import numpy as np
import pytest
from scipy.special import expn

from adslab import rt
from adslab import rt_or_failure
from adslab import SlabParameters
from adslab.errors import ConfigurationError
from adslab.errors import TruncationWarning
from adslab.solve import rt_matrices

SLIDES = dict(n_top_slide=1.5, n_bottom_slide=1.5)

CASES = [
    pytest.param(dict(a=0.3, b=0.4), id="concrete"),
    pytest.param(dict(a=0.9, b=1.0, g=0.8), id="forward"),
    pytest.param(dict(a=0.99, b=np.inf, g=0.5), id="semi-infinite"),
    pytest.param(dict(a=0.5, b=2.0, g=-0.4, n_slab=1.4), id="mismatched"),
    pytest.param(dict(a=0.8, b=0.5, n_slab=1.4, **SLIDES), id="slides"),
    pytest.param(dict(a=0.8, b=0.0, n_slab=1.4, **SLIDES), id="zero-thickness"),
    pytest.param(dict(a=0.8, b=0.5, g=0.5, n_slab=1.6, **SLIDES), id="denser-than-slides"),
    pytest.param(
        dict(a=0.8, b=3.0, g=0.6, n_slab=1.33, b_top_slide=0.1, b_bottom_slide=0.2, **SLIDES),
        id="absorbing-slides",
    ),
    pytest.param(dict(a=0.9, b=1.0, g=0.7, n_slab=1.4, cos_angle=0.6), id="oblique"),
    pytest.param(dict(a=0.9, b=1.0, g=0.3, n_slab=0.8), id="less-dense"),
    pytest.param(dict(a=0.9, b=1.0, n_slab=0.8, cos_angle=0.5), id="beyond-acceptance"),
]


@pytest.mark.parametrize("kwargs", CASES)
def test_energy(kwargs):
    res = rt(SlabParameters(**kwargs))
    assert all(-1e-12 <= x <= 1 + 1e-9 for x in res)
    assert res.UR1 + res.UT1 <= 1 + 1e-9
    assert res.URU + res.UTU <= 1 + 1e-9


@pytest.mark.parametrize("kwargs", CASES)
def test_lossless_conserves_energy(kwargs):
    kwargs = {**kwargs, "a": 1.0, "b_top_slide": 0, "b_bottom_slide": 0}
    if math.isinf(kwargs["b"]):
        kwargs["b"] = 8.0
    res = rt(SlabParameters(**kwargs))
    assert math.isclose(res.UR1 + res.UT1, 1, abs_tol=1e-9)
    assert math.isclose(res.URU + res.UTU, 1, abs_tol=1e-9)


@pytest.mark.parametrize("kwargs", CASES)
def test_reciprocity(kwargs):
    quad, layer = rt_matrices(SlabParameters(**kwargs), 24)
    D = np.diag(quad.twoaw)
    np.testing.assert_allclose(D @ layer.R01, (D @ layer.R01).T, atol=1e-10)
    np.testing.assert_allclose(D @ layer.T01, (D @ layer.T10).T, atol=1e-10)


def test_concrete_scenario():
    slab = SlabParameters(a=0.3, b=0.4, g=0.0, n_slab=1.0, cos_angle=1.0)
    res = rt(slab, 24)
    assert res == rt(slab, 24)
    np.testing.assert_allclose(res, [0.03495, 0.70340, 0.05327, 0.56164], atol=1e-4)
    assert res.UR1 + res.UT1 < 1
    assert res.UT1 > math.exp(-0.4)


def test_zero_thickness_matched():
    res = rt(SlabParameters(a=0.7, b=0.0, g=0.5))
    np.testing.assert_allclose(res, [0, 1, 0, 1], atol=1e-12)


def test_thin_limit():
    thin = rt(SlabParameters(a=0.7, b=1e-9, g=0.5, n_slab=1.4, **SLIDES))
    none = rt(SlabParameters(a=0.7, b=0.0, g=0.5, n_slab=1.4, **SLIDES))
    np.testing.assert_allclose(thin, none, atol=1e-7)


@pytest.mark.parametrize(
    "slides",
    [pytest.param({}, id="bare"), pytest.param(SLIDES, id="slides")],
)
def test_zero_thickness_mismatched(slides):
    # slides of the slab's own index change nothing
    n = 1.5
    r = ((n - 1) / (n + 1)) ** 2
    res = rt(SlabParameters(a=0.7, b=0.0, g=0.5, n_slab=n, **slides))
    assert math.isclose(res.UR1, 2 * r / (1 + r), rel_tol=1e-10)
    assert math.isclose(res.UT1, (1 - r) / (1 + r), rel_tol=1e-10)
    assert math.isclose(res.URU + res.UTU, 1, abs_tol=1e-9)


def test_zero_thickness_between_absorbing_slides():
    slab = SlabParameters(a=0.7, b=0.0, n_slab=1.4, b_top_slide=0.2, b_bottom_slide=0.1, **SLIDES)
    res = rt(slab)
    assert all(0 <= x <= 1 for x in res)
    assert res.UR1 + res.UT1 < 1
    assert res.URU + res.UTU < 1


@pytest.mark.parametrize("n", [1.33, 1.5, 2.0])
def test_bare_mismatched_plate(n):
    # two Fresnel interfaces with nothing between: R = 2r / (1 + r)
    r = ((n - 1) / (n + 1)) ** 2
    res = rt(SlabParameters(a=0.0, b=0.0, n_slab=n))
    assert math.isclose(res.UR1, 2 * r / (1 + r), rel_tol=1e-10)
    assert math.isclose(res.UT1, (1 - r) / (1 + r), rel_tol=1e-10)


@pytest.mark.parametrize("b", [0.1, 0.5, 1.0])
def test_absorbing_plate(b):
    # non-scattering slab with Fresnel boundaries at normal incidence
    n = 1.5
    r = ((n - 1) / (n + 1)) ** 2
    t = math.exp(-b)
    res = rt(SlabParameters(a=0.0, b=b, n_slab=n))
    ut1 = (1 - r) ** 2 * t / (1 - r**2 * t**2)
    ur1 = r + (1 - r) ** 2 * r * t**2 / (1 - r**2 * t**2)
    assert math.isclose(res.UT1, ut1, rel_tol=1e-4)
    assert math.isclose(res.UR1, ur1, rel_tol=1e-4)


@pytest.mark.parametrize("b", [0.5, 1.0, 2.0])
def test_pure_absorber(b):
    res = rt(SlabParameters(a=0.0, b=b))
    assert res.UR1 == 0 and res.URU == 0
    assert math.isclose(res.UT1, math.exp(-b), rel_tol=1e-4)
    assert math.isclose(res.UTU, 2 * expn(3, b), abs_tol=1e-3)


def test_oblique_pure_absorber():
    res = rt(SlabParameters(a=0.0, b=1.0, cos_angle=0.5))
    assert math.isclose(res.UT1, math.exp(-2), rel_tol=1e-3)


def _chandrasekhar_h(a, mu, n=200, n_iter=500):
    """H function for isotropic scattering, by iterating
    1/H(mu) = sqrt(1 - a) + a/2 int_0^1 mu' H(mu') / (mu + mu') dmu'."""
    x, w = np.polynomial.legendre.leggauss(n)
    x = (x + 1) / 2
    w = w / 2
    H = np.ones_like(x)
    for _ in range(n_iter):
        H = 1 / (math.sqrt(1 - a) + a / 2 * ((x * H * w) / (x[:, np.newaxis] + x)).sum(axis=1))
    return 1 / (math.sqrt(1 - a) + a / 2 * np.sum(x * H * w / (mu + x)))


@pytest.mark.parametrize("a", [0.5, 0.9])
def test_semi_infinite_isotropic(a):
    res = rt(SlabParameters(a=a, b=np.inf))
    ur1 = 1 - _chandrasekhar_h(a, 1.0) * math.sqrt(1 - a)
    assert math.isclose(res.UR1, ur1, abs_tol=2e-3)
    assert res.UT1 == pytest.approx(0, abs=1e-5)


def test_absorption_properties():
    res = rt(SlabParameters(a=0.5, b=1.0))
    assert math.isclose(res.A1, 1 - res.UR1 - res.UT1)
    assert math.isclose(res.AU, 1 - res.URU - res.UTU)


def test_monotone_in_thickness():
    # index matched, no slides. With a mismatched boundary the light returned by
    # total internal reflection at the bottom makes UR1 and URU fall again at large b.
    bs = [0.1, 0.5, 1.0, 2.0, 4.0, 8.0]
    res = [rt(SlabParameters(a=0.9, b=b, g=0.5)) for b in bs]
    assert np.all(np.diff([r.UR1 for r in res]) >= -1e-9)
    assert np.all(np.diff([r.UT1 for r in res]) <= 1e-9)
    assert np.all(np.diff([r.URU for r in res]) >= -1e-9)
    assert np.all(np.diff([r.UTU for r in res]) <= 1e-9)


def test_mismatched_reflection_peaks_at_finite_thickness():
    thick = rt(SlabParameters(a=0.9, b=4.0, g=0.5, n_slab=1.4))
    deeper = rt(SlabParameters(a=0.9, b=8.0, g=0.5, n_slab=1.4))
    assert deeper.UT1 < thick.UT1
    assert deeper.UR1 < thick.UR1


def test_no_scattering_no_diffuse_reflection():
    res = rt(SlabParameters(a=0.0, b=1.0, g=0.9))
    assert res.UR1 == 0 and res.URU == 0


def test_index_matched_slide_is_invisible():
    base = dict(a=0.8, b=1.0, g=0.5, n_slab=1.5)
    bare = rt(SlabParameters(**base))
    slid = rt(SlabParameters(**base, n_top_slide=1.5, n_bottom_slide=1.5))
    np.testing.assert_allclose(slid, bare, atol=1e-12)


def test_slide_absorption_reduces_transmission():
    base = dict(a=0.8, b=1.0, n_slab=1.4, **SLIDES)
    clear = rt(SlabParameters(**base))
    dark = rt(SlabParameters(**base, b_top_slide=0.5))
    assert dark.UT1 < clear.UT1
    assert dark.UTU < clear.UTU


def test_strongly_forward_scattering():
    slab = SlabParameters(a=1.0, b=1.0, g=0.999)
    with pytest.warns(TruncationWarning):
        res = rt(slab)
    assert math.isclose(res.UR1 + res.UT1, 1, abs_tol=1e-9)
    assert math.isclose(res.URU + res.UTU, 1, abs_tol=1e-9)


@pytest.mark.parametrize("n_slab", [1.0, 1.4])
def test_grazing_incidence(n_slab):
    # a slab at least as dense as the outside accepts the beam at any angle
    grazing = rt(SlabParameters(a=0.3, b=0.4, n_slab=n_slab, cos_angle=math.cos(math.pi / 2)))
    near = rt(SlabParameters(a=0.3, b=0.4, n_slab=n_slab, cos_angle=1e-6))
    np.testing.assert_allclose(grazing, near, atol=1e-6)
    assert grazing.UR1 + grazing.UT1 > 0.2


def test_beam_beyond_acceptance():
    res = rt(SlabParameters(a=0.9, b=1.0, n_slab=0.5, cos_angle=0.5))
    assert res.UR1 == 1 and res.UT1 == 0


def test_zero_index_reflects_everything():
    res = rt(SlabParameters(a=0.5, b=1.0, n_slab=0.0))
    np.testing.assert_allclose(res, [1, 0, 1, 0], atol=1e-12)


@pytest.mark.parametrize("init", ["diamond", "igi"])
def test_init_methods_agree(init):
    slab = SlabParameters(a=0.9, b=1.0, g=0.5, n_slab=1.4)
    ref = rt(slab)
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        res = rt(slab, init=init, start_depth_factor=0.01)
    np.testing.assert_allclose(res, ref, atol=5e-3)


@pytest.mark.parametrize("nstreams", [16, 32])
def test_converges_with_streams(nstreams):
    slab = SlabParameters(a=0.9, b=1.0, g=0.5, n_slab=1.4)
    np.testing.assert_allclose(rt(slab, nstreams), rt(slab, 48), atol=5e-3)


def test_bad_nstreams():
    with pytest.raises(ConfigurationError):
        rt(SlabParameters(), 10)


def test_rt_or_failure():
    res = rt_or_failure(SlabParameters(a=1.5))
    assert tuple(res) == (-1.0, -1.0, -1.0, -1.0)
    assert rt_or_failure(SlabParameters(a=0.5, b=1.0)) == rt(SlabParameters(a=0.5, b=1.0))
