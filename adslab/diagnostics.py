"""
Checks and plots using sweep datasets created by :func:`adslab.batch.sweep`.
"""
import matplotlib.pyplot as plt
import numpy as np
import xarray as xr

from .solve import RESULT_KEYS
from .variables import VMD


def energy_balance(ds):
    """Add the absorbed fractions ``A1 = 1 - UR1 - UT1`` and ``AU = 1 - URU - UTU``.

    Parameters
    ----------
    ds : xr.Dataset

    Returns
    -------
    xr.Dataset
        A new dataset. Absorption is NaN where a record failed.
    """
    ok = ds["status"] == 0 if "status" in ds else True
    A1 = (1 - ds["UR1"] - ds["UT1"]).where(ok)
    AU = (1 - ds["URU"] - ds["UTU"]).where(ok)

    return ds.assign(
        A1=A1.assign_attrs(VMD["A1"].da_attrs()),
        AU=AU.assign_attrs(VMD["AU"].da_attrs()),
    )


def check_energy(ds, *, atol=1e-6):
    """Whether every successful record in `ds` absorbs a non-negative fraction."""
    ds = energy_balance(ds)
    a = xr.concat([ds["A1"], ds["AU"]], dim="illum")
    return bool((a.fillna(0) >= -atol).all())


def plot_sweep(ds, dim, *, variables=None, ax=None, **kwargs):
    """Line plot of the transport results against `dim`.

    Any other dimensions of `ds` must have size 1 (select first).

    Parameters
    ----------
    ds : xr.Dataset
    dim : str
        Swept parameter to use as the x axis.
    variables : list of str, optional
        Default: ``UR1 UT1 URU UTU``.
    ax : matplotlib.axes.Axes, optional
    **kwargs
        Passed to :meth:`matplotlib.axes.Axes.plot`.

    Returns
    -------
    matplotlib.axes.Axes
    """
    if variables is None:
        variables = RESULT_KEYS
    if "A1" in variables or "AU" in variables:
        ds = energy_balance(ds)

    other = [d for d in ds.dims if d != dim]
    sizes = {d: ds.sizes[d] for d in other}
    if any(size != 1 for size in sizes.values()):
        raise ValueError(f"dims other than {dim!r} must have size 1, got {sizes}")
    ds = ds.squeeze(other, drop=True)

    if ax is None:
        _, ax = plt.subplots()

    x = ds[dim]
    for vn in variables:
        y = ds[vn].where(ds["status"] == 0) if "status" in ds else ds[vn]
        ax.plot(x, y, label=vn, **kwargs)

    ax.set_xlabel(VMD[dim].label() if dim in VMD else dim)
    ax.set_ylabel("Fraction of incident flux")
    ax.set_ylim(ymin=0)
    if np.all(np.isfinite(x)):
        ax.set_xlim(float(x.min()), float(x.max()))
    ax.grid(True)
    ax.legend()

    return ax
