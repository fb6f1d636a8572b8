"""
The ``ad`` command: reflection and transmission of a slab from the command line
or from a file of records.
"""
import argparse
import functools
import sys
import warnings

from .batch import STATUS_NUMERICAL
from .batch import _slab_from_row
from .batch import read_records
from .batch import run_batch
from .errors import NumericalError
from .errors import ValidationError
from .slab import DEFAULTS
from .slab import DEFAULT_NSTREAMS
from .slab import SlabParameters
from .slab import failure_code
from .slab import validate
from .solve import rt_or_failure
from .utils import cos_from_angle
from .utils import format_float

LEGEND = """\
UR1 = Total Reflection   for Normal  Illumination
UT1 = Total Transmission for Normal  Illumination
URU = Total Reflection   for Diffuse Illumination
UTU = Total Transmission for Diffuse Illumination
"""

HEADER = "   UR1    \t   UT1    \t   URU    \t   UTU"

EPILOG = """\
examples:
  ad data                        UR1, UT1, URU, UTU in data.rt
  ad -m data                     data.rt in machine readable format
  ad data -o out.txt             out.txt is the output
  ad -a 0.3                      a=0.3, b=inf, g=0.0, n=1.0
  ad -a 0.3 -b 0.4               a=0.3, b=0.4, g=0.0, n=1.0
  ad -a 0.3 -b 0.4 -g 0.5        a=0.3, b=0.4, g=0.5, n=1.0
  ad -a 0.3 -b 0.4 -n 1.5        a=0.3, b=0.4, g=0.0, n=1.5

input file has lines of the form
  a b g nslab ntopslide nbottomslide btopslide bbottomslide q
"""


def format_line(values):
    """One machine readable line: four ``%9.5f`` fields separated by `` \\t``."""
    return " \t".join(format_float(x) for x in values)


def format_record(slab, nstreams, values, status, *, machine=False):
    """Text written for one record, as the ``ad`` program writes it.

    Machine readable output is always the single line of values (the failure
    code repeated on validation failure). Human readable output is the legend
    and table, or the validation message.
    """
    if machine:
        return format_line(values) + "\n"

    if status == STATUS_NUMERICAL:
        return f"Numerical failure for {slab}\n"

    if status != 0:
        try:
            validate(slab, nstreams)
        except ValidationError as e:
            return f"{e}\n"

    return f"{LEGEND}\n{HEADER}\n{format_line(values)}\n"


def _angle(s):
    x = float(s)
    if not 0 <= x <= 90:
        raise argparse.ArgumentTypeError("Incident angle must be between 0 and 90 degrees")
    return x


def build_parser():
    from . import __version__

    parser = argparse.ArgumentParser(
        prog="ad",
        description="Total reflection and transmission of a scattering slab "
        "by the adding-doubling method",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("input", nargs="?", help="file of records ('-' for stdin)")
    parser.add_argument("-m", dest="machine", action="store_true", help="machine readable output")
    parser.add_argument("-o", dest="output", help="explicitly specify filename for output")
    parser.add_argument("-a", type=float, default=DEFAULTS["a"], help="albedo (0-1)")
    parser.add_argument("-b", type=float, default=DEFAULTS["b"], help="optical thickness (>=0)")
    parser.add_argument("-g", type=float, default=DEFAULTS["g"], help="anisotropy (-1 to 1)")
    parser.add_argument(
        "-i", dest="angle", type=_angle, default=0.0, help="oblique incidence at angle theta"
    )
    parser.add_argument(
        "-n", dest="n_slab", type=float, default=DEFAULTS["n_slab"], help="index of slab"
    )
    parser.add_argument(
        "-s", dest="n_slide", type=float, help="index of both slides (default 1, no slides)"
    )
    parser.add_argument("-t", dest="n_bottom_slide", type=float, help="index of bottom slide")
    parser.add_argument(
        "-q",
        dest="nstreams",
        type=int,
        default=DEFAULT_NSTREAMS,
        help="quadrature points, a multiple of 4",
    )
    parser.add_argument(
        "-v", "-V", "--version", action="version", version=f"ad (adslab) {__version__}"
    )

    return parser


def _slab_from_args(args):
    n_top = DEFAULTS["n_top_slide"] if args.n_slide is None else args.n_slide
    if args.n_bottom_slide is not None:
        n_bottom = args.n_bottom_slide
    else:
        n_bottom = n_top
    return SlabParameters(
        a=args.a,
        b=args.b,
        g=args.g,
        n_slab=args.n_slab,
        n_top_slide=n_top,
        n_bottom_slide=n_bottom,
        cos_angle=cos_from_angle(args.angle),
    )


def _run_records(args, *, instream, out):
    records = read_records(instream)
    cos_angle = cos_from_angle(args.angle)
    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        results = run_batch(records, cos_angle=cos_angle)

    for w in caught:
        print(f"ad: {w.message}", file=sys.stderr)

    failed = False
    for i, row in records.iterrows():
        slab, nstreams = _slab_from_row(row, cos_angle)
        res = results.loc[i]
        status = res["status"]
        failed |= status == STATUS_NUMERICAL
        values = [res[k] for k in ("UR1", "UT1", "URU", "UTU")]
        out.write(format_record(slab, nstreams, values, status, machine=args.machine))

    return 1 if failed else 0


def _run_single(args, out):
    slab = _slab_from_args(args)
    status = failure_code(slab, args.nstreams)
    try:
        res = rt_or_failure(slab, args.nstreams)
    except NumericalError as e:
        print(f"ad: {e}", file=sys.stderr)
        return 1
    out.write(format_record(slab, args.nstreams, res, status, machine=args.machine))
    return 0


def _run(args, instream, out_name):
    run = _run_single if instream is None else functools.partial(_run_records, instream=instream)
    if out_name is None:
        return run(args, out=sys.stdout)
    with open(out_name, "w") as out:
        return run(args, out=out)


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    if not argv:
        parser.print_help(sys.stderr)
        return 0
    args = parser.parse_args(argv)

    if args.input is None:
        return _run(args, None, args.output)

    if args.input == "-":
        return _run(args, sys.stdin, args.output)

    try:
        instream = open(args.input, "r")
    except OSError:
        print(f"Could not open file '{args.input}'", file=sys.stderr)
        return 1

    with instream:
        return _run(args, instream, args.output or f"{args.input}.rt")


if __name__ == "__main__":
    raise SystemExit(main())
