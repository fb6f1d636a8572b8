"""
Variable metadata from the ``variables.yml`` file.
"""
from .utils import cf_units_to_tex


class VmdEntry:
    """Variable metadata for one variable."""

    def __init__(self, name, params, param_defaults):
        r"""
        Parameters
        ----------
        name : str
            Code variable name associated with the variable.
            Used as the ``name`` for :class:`xarray.DataArray`\s.
        params : dict
            Parameters for this variable.
        param_defaults : dict
            Default parameters (to use if `params` is missing any of the needed).
        """
        self.name = name

        # required (we want it to fail if not provided)
        self.desc = params["desc"].strip()

        # ones that have defaults
        self.s_type = params.get("type", param_defaults["type"])
        self.long_name = params.get("ln", param_defaults["ln"])
        self.intent = params.get("intent", param_defaults["intent"])
        self.s_units = str(params.get("units", param_defaults["units"]))
        self.range = params.get("range", param_defaults["range"])

    def da_attrs(self):
        """Return dict of attributes to use when creating an :class:`xarray.DataArray`
        for this variable.
        """
        return {
            "long_name": self.long_name,
            "units": self.s_units,
            "description": self.desc,
        }

    def dv_tuple(self, data, dims=()):
        """Construct an :class:`xarray.Dataset` ``data_vars`` tuple."""
        return (dims, data, self.da_attrs())

    def label(self):
        """Axis label for plots."""
        units = cf_units_to_tex(self.s_units)
        if units == "1":
            return self.long_name
        return f"{self.long_name} ({units})"

    def param_entry(self, optional=False) -> str:
        """Construct an un-indented NumPy docstring Parameters entry."""
        s_optional = ", optional" if optional else ""
        return f"""
{self.name}: {self.s_type}{s_optional}
    {self.long_name}.
        """.strip()

    def __repr__(self):
        return f"{__class__.__name__}(name={self.name}, ...)"

    def __str__(self):
        # fuller representation
        attrs = ["s_type", "long_name", "s_units", "intent", "range"]
        s0 = f"{self.name}\n"
        s = "\n".join(f"  {attr}: {getattr(self, attr)!r}" for attr in attrs)
        s += "\n  desc: ..."
        return s0 + s


class Vmd:
    """Container for variable metadata of multiple variables."""

    def __init__(self, vmdes):
        """
        Parameters
        ----------
        vmdes : list of VmdEntry
        """
        self.variables = {vmde.name: vmde for vmde in vmdes}

    def intent(self, intent="in"):
        """Return filtered set of variables that have the specified `intent`.

        Parameters
        ----------
        intent : str, {'in', 'out', 'all'}

        Returns
        -------
        dict
            ``name: VmdEntry``
        """
        if intent is None or intent == "all":
            return self.variables.copy()
        else:
            return {name: vmde for name, vmde in self.variables.items() if vmde.intent == intent}

    def __getitem__(self, name):
        return self.variables[name]

    def __contains__(self, name):
        return name in self.variables

    def __repr__(self):
        s_vmdes = ", ".join(self.variables.keys())
        return f"{__class__.__name__}({s_vmdes})"


def _vmd_from_yaml():
    """Load the variable info from the yml file."""
    from pathlib import Path

    import yaml

    p = Path(__file__).parent / "variables.yml"
    with open(p, "r") as f:
        data = yaml.load(f, Loader=yaml.FullLoader)

    params_allowed = data["variable_params"]
    param_defaults = data["defaults"]
    variables = data["variables"]

    if any(k not in params_allowed for k in param_defaults):
        raise Exception("a param is listed as a default but not allowed")

    vmdes = []
    for name, params in variables.items():
        if any(k not in params_allowed for k in params):
            raise Exception(
                f"param(s) in `{name}` not allowed: "
                f"{', '.join(f'`{k}`' for k in set(params)-set(params_allowed))}"
            )

        vmdes.append(VmdEntry(name, params, param_defaults))

    return Vmd(vmdes)


# Create the Vmd instance
VMD = _vmd_from_yaml()
"""
:class:`Vmd` instance with all the variables from ``variables.yml``.
"""


def _tup(name, data, dims=()):
    """Shortcut function for creating an :class:`xarray.Dataset` ``data_vars`` tuple
    for variable `name` using the values of `data`
    and the standard variable metadata :const:`VMD`.
    """
    return VMD[name].dv_tuple(data, dims)
