"""
Batch processing of slab records: read the ``ad`` input format, run many
records concurrently, and sweep parameters into a labelled dataset.
"""
import concurrent.futures
import itertools
import math
import warnings

import numpy as np
import pandas as pd
import xarray as xr

from .errors import NumericalError
from .errors import ValidationError
from .slab import DEFAULT_NSTREAMS
from .slab import SlabParameters
from .slab import validate
from .solve import RESULT_KEYS
from .solve import rt
from .variables import _tup

__all__ = ("RECORD_COLUMNS", "read_records", "run_batch", "sweep")

RECORD_COLUMNS = [
    "a",
    "b",
    "g",
    "n_slab",
    "n_top_slide",
    "n_bottom_slide",
    "b_top_slide",
    "b_bottom_slide",
    "nstreams",
]
"""Fields of one input record, in file order."""

STATUS_OK = 0
STATUS_NUMERICAL = "numerical"


def read_records(path_or_buffer):
    """Read whitespace-separated slab records, one per line.

    Each line holds ``a b g n_slab n_top_slide n_bottom_slide b_top_slide
    b_bottom_slide nstreams``. Blank lines and ``#`` comments are skipped.
    ``inf`` is accepted for the optical thickness.

    Returns
    -------
    pd.DataFrame
    """
    df = pd.read_csv(
        path_or_buffer,
        sep=r"\s+",
        header=None,
        names=RECORD_COLUMNS,
        comment="#",
        skip_blank_lines=True,
    )
    incomplete = df[RECORD_COLUMNS].isna().any(axis=1)
    if incomplete.any():
        bad = df.index[incomplete].tolist()
        raise ValueError(
            f"incomplete record(s) at row(s) {bad}; "
            f"each record needs {len(RECORD_COLUMNS)} fields"
        )

    df = df.astype(float)
    if not (df["nstreams"] == df["nstreams"].round()).all():
        raise ValueError("number of quadrature streams must be an integer")
    df["nstreams"] = df["nstreams"].astype(int)

    return df


def _slab_from_row(row, cos_angle):
    kwargs = {k: float(row[k]) for k in RECORD_COLUMNS if k != "nstreams"}
    return SlabParameters(cos_angle=cos_angle, **kwargs), int(row["nstreams"])


def _run_one(slab, nstreams, options):
    """Results and status for one record; never raises for a bad record."""
    try:
        validate(slab, nstreams)
    except ValidationError as e:
        return [float(e.code)] * 4, e.code

    try:
        res = rt(slab, nstreams, **options)
    except NumericalError as e:
        warnings.warn(f"record {slab} failed: {e}")
        return [math.nan] * 4, STATUS_NUMERICAL

    return list(res), STATUS_OK


def run_batch(records, *, cos_angle=1.0, n_jobs=None, **options):
    """Run the engine for every record.

    Parameters
    ----------
    records : pd.DataFrame
        With the columns of :const:`RECORD_COLUMNS`, e.g. from :func:`read_records`.
    cos_angle : float
        Cosine of the incidence angle, shared by all records.
    n_jobs : int, optional
        Number of worker threads. ``1`` runs serially in the calling thread.
    **options
        Engine tunables, passed to :func:`adslab.solve.rt`.

    Returns
    -------
    pd.DataFrame
        ``UR1 UT1 URU UTU status``, in the order of `records`.
        A record failing validation gets its (negative) failure code in the four
        result columns and as ``status``; a record failing numerically gets NaN
        and ``status='numerical'``. Other records are unaffected.
    """
    missing = [k for k in RECORD_COLUMNS if k not in records]
    if missing:
        raise ValueError(f"records are missing column(s) {missing}")

    jobs = [_slab_from_row(row, cos_angle) for _, row in records.iterrows()]

    def work(job):
        return _run_one(*job, options)

    if n_jobs == 1:
        out = [work(job) for job in jobs]
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=n_jobs) as executor:
            out = list(executor.map(work, jobs))  # map keeps input order

    df = pd.DataFrame([vals for vals, _ in out], columns=RESULT_KEYS, index=records.index)
    df["status"] = pd.Series([status for _, status in out], index=records.index, dtype=object)

    return df


def sweep(base=None, nstreams=DEFAULT_NSTREAMS, *, n_jobs=None, **grids):
    """Compute the results over the Cartesian product of parameter grids.

    Parameters
    ----------
    base : SlabParameters, optional
        Parameters not swept. Default: the driver defaults.
    nstreams : int
    **grids
        ``field=values`` for fields of :class:`~adslab.slab.SlabParameters`.

    Returns
    -------
    xr.Dataset
        One dimension per swept field (in keyword order), with variables
        ``UR1 UT1 URU UTU`` and ``status``.

    Examples
    --------
    >>> ds = sweep(a=[0.1, 0.5, 0.9], b=[0.5, 1, 2], g=0.8)  # doctest: +SKIP
    """
    if base is None:
        base = SlabParameters()

    for name in grids:
        if name not in base._fields or name == "phase_function":
            raise ValueError(f"cannot sweep over {name!r}")

    grids = {name: np.atleast_1d(np.asarray(values, dtype=float)) for name, values in grids.items()}
    dims = tuple(grids)
    shape = tuple(v.size for v in grids.values())

    combos = list(itertools.product(*grids.values()))
    records = pd.DataFrame(
        [base.replace(**dict(zip(dims, combo))).as_dict() for combo in combos]
    ).drop(columns=["phase_function", "cos_angle"])
    records["nstreams"] = nstreams

    # cos_angle may be swept, so run per unique value
    cos = np.array([dict(zip(dims, c)).get("cos_angle", base.cos_angle) for c in combos])
    parts = [
        run_batch(records[cos == c], cos_angle=float(c), n_jobs=n_jobs) for c in np.unique(cos)
    ]
    res = pd.concat(parts).loc[records.index]

    data_vars = {k: _tup(k, res[k].to_numpy(dtype=float).reshape(shape), dims) for k in RESULT_KEYS}
    status = res["status"].map(lambda s: -1000 if s == STATUS_NUMERICAL else s)
    data_vars["status"] = (
        dims,
        status.to_numpy(dtype=int).reshape(shape),
        {
            "long_name": "Status",
            "description": "0 ok, negative failure code, -1000 numerical failure",
        },
    )

    ds = xr.Dataset(
        coords={name: _tup(name, values, (name,)) for name, values in grids.items()},
        data_vars=data_vars,
        attrs={
            "nstreams": nstreams,
            **{k: v for k, v in base.as_dict().items() if k not in grids and k != "phase_function"},
            "phase_function": base.phase_function.value,
        },
    )

    return ds
