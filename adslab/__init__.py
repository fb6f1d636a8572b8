"""
Adding-doubling radiative transfer for a scattering slab between glass slides
"""
from pathlib import Path as _Path

# directories
BASE_DIR = _Path(__file__).parent

# include the main entry points in pkg-level namespace
from .slab import SlabParameters  # noqa: F401 unused import
from .solve import TransportResult  # noqa: F401 unused import
from .solve import rt  # noqa: F401 unused import
from .solve import rt_or_failure  # noqa: F401 unused import

# include diagnostics module (not used by any of the others)
from . import diagnostics  # noqa: F401 unused import

# set version
from importlib.metadata import PackageNotFoundError as _PackageNotFoundError
from importlib.metadata import version as _version

try:
    __version__ = _version("adslab")
except _PackageNotFoundError:
    # the package is probably not installed
    __version__ = "unknown"


def print_config():
    """Print info about the engine defaults and options."""
    from .layer import INF_TOL, INIT_METHODS, MAX_DOUBLINGS
    from .slab import DEFAULT_NSTREAMS, DEFAULTS

    s_defaults = "\n".join(
        f"    {k} = {v.value if k == 'phase_function' else v}" for k, v in DEFAULTS.items()
    )
    sconfig = f"""
adslab {__version__}
slab defaults
{s_defaults}
quadrature streams: {DEFAULT_NSTREAMS}
thin-layer initializations available: {', '.join(INIT_METHODS)}
semi-infinite convergence: change < {INF_TOL:g} within {MAX_DOUBLINGS} doublings
adslab base dir
    {BASE_DIR.as_posix():s}
    """.strip()
    print(sconfig)
