"""Data handler for column simulation output in NetCDF and CSV."""

import numpy as np
import pandas as pd
from netCDF4 import Dataset
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, Optional, List, Mapping

from .. import __version__


# long_name and units of the known variables
VARIABLE_ATTRS = {
    'rhocT': ("volumetric_heat_content", "J m-3"),
    'T': ("temperature", "K"),
    'z': ("height_above_column_bottom", "m"),
    'alpha_grad_rhocT': ("diffusive_heat_flux", "J m-2 s-1"),
}


class NetCDFWriter:
    """
    Per-step NetCDF4 writer.

    Each call to write() adds a group `step_XXXX` holding every variable on
    the shared `z` dimension of the root group and the simulation time.

    Example:
        >>> writer = NetCDFWriter("outputs/heat.nc", mesh.column())
        >>> writer.write(0, dg.get_all_vars(Q, 0.0), 0.0)
    """

    def __init__(
        self,
        filepath: str,
        z: np.ndarray,
        metadata: Optional[Mapping[str, Any]] = None
    ):
        """
        Create the file with the column coordinate.

        Args:
            filepath: Output file path (overwritten)
            z: Node coordinates bottom to top
            metadata: Extra global attributes
        """
        self.filepath = Path(filepath)
        self.filepath.parent.mkdir(parents=True, exist_ok=True)
        self.n_points = len(z)
        self.steps: List[int] = []

        with Dataset(self.filepath, 'w', format='NETCDF4') as nc:
            nc.createDimension('z', self.n_points)

            nc_z = nc.createVariable('z', 'f8', ('z',), zlib=True)
            nc_z[:] = np.asarray(z, dtype=np.float64)
            nc_z.units = "m"
            nc_z.long_name = "height_above_column_bottom"
            nc_z.axis = "Z"
            nc_z.positive = "up"

            nc.title = "DG Column Simulation - stratadg"
            nc.institution = f"stratadg v{__version__}"
            nc.source = "JAX-accelerated nodal discontinuous Galerkin solver"
            nc.history = f"Created {datetime.now().isoformat()}"
            nc.Conventions = "CF-1.8"

            for key, value in (metadata or {}).items():
                if isinstance(value, bool):
                    nc.setncattr(key, int(value))
                elif isinstance(value, (int, float, str)):
                    nc.setncattr(key, value)

    def write(self, step: int, variables: Mapping[str, np.ndarray], time: float):
        """
        Append one output step.

        Args:
            step: Output step counter
            variables: name -> node values [n_points]
            time: Simulation time
        """
        name = f"step_{step:04d}"

        with Dataset(self.filepath, 'a') as nc:
            if name in nc.groups:
                raise ValueError(f"Output step {step} already written to {self.filepath}")

            grp = nc.createGroup(name)
            grp.time = float(time)

            nc_t = grp.createVariable('time', 'f8', ())
            nc_t.assignValue(float(time))
            nc_t.long_name = "simulation_time"
            nc_t.units = "s"

            for var, values in variables.items():
                values = np.asarray(values, dtype=np.float64).reshape(-1)
                if values.shape[0] != self.n_points:
                    raise ValueError(
                        f"Variable '{var}' has {values.shape[0]} values, "
                        f"column has {self.n_points} nodes"
                    )
                nc_var = grp.createVariable(var, 'f8', ('z',), zlib=True)
                nc_var[:] = values
                long_name, units = VARIABLE_ATTRS.get(var, (var, "1"))
                nc_var.long_name = long_name
                nc_var.units = units

        self.steps.append(step)

    def __repr__(self) -> str:
        return f"NetCDFWriter('{self.filepath}', n_steps={len(self.steps)})"


class DataHandler:
    """Handle loading and saving column simulation data."""

    @staticmethod
    def collect_data(filepath: str) -> Dict[int, Dict[str, Any]]:
        """
        Read every output step of a NetCDFWriter file.

        Args:
            filepath: Path to NetCDF file

        Returns:
            {step: {"time": t, name: values}} ordered by step
        """
        data = {}

        with Dataset(filepath, 'r') as nc:
            names = sorted(g for g in nc.groups if g.startswith('step_'))
            for name in names:
                grp = nc.groups[name]
                step_data: Dict[str, Any] = {'time': float(grp.variables['time'].getValue())}
                for var, nc_var in grp.variables.items():
                    if var != 'time':
                        step_data[var] = np.array(nc_var[:], dtype=np.float64)
                data[int(name[len('step_'):])] = step_data

        return data

    @staticmethod
    def load_coordinates(filepath: str) -> np.ndarray:
        """Column coordinate of a NetCDFWriter file."""
        with Dataset(filepath, 'r') as nc:
            return np.array(nc.variables['z'][:], dtype=np.float64)

    @staticmethod
    def to_dataframe(data: Mapping[int, Mapping[str, Any]], z: np.ndarray) -> pd.DataFrame:
        """
        Flatten collected steps into a long table.

        Returns:
            DataFrame with columns step, time, z and one column per variable
        """
        frames = []
        for step, step_data in data.items():
            columns = {'step': step, 'time': step_data['time'], 'z': np.asarray(z)}
            for name, values in step_data.items():
                if name not in ('time', 'z'):
                    columns[name] = values
            frames.append(pd.DataFrame(columns))

        if not frames:
            return pd.DataFrame(columns=['step', 'time', 'z'])
        return pd.concat(frames, ignore_index=True)

    @staticmethod
    def save_profiles_csv(filepath: str, data: Mapping[int, Mapping[str, Any]], z: np.ndarray):
        """Save collected profiles as a long-format CSV."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        df = DataHandler.to_dataframe(data, z)
        df.to_csv(filepath, index=False, float_format='%.8e')

    @staticmethod
    def save_metrics_csv(filepath: str, metrics_history: List[Dict[str, Any]], times: np.ndarray):
        """
        Save time series of metrics to CSV.

        Args:
            filepath: Output file path
            metrics_history: List of metrics dictionaries at each time
            times: Time array
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for t, metrics in zip(times, metrics_history):
            row = {'time': t}
            for key, value in metrics.items():
                if isinstance(value, (int, float, bool)):
                    row[key] = value
            rows.append(row)

        df = pd.DataFrame(rows)
        df.to_csv(filepath, index=False, float_format='%.8e')

    @staticmethod
    def save_final_metrics_csv(filepath: str, metrics: Dict[str, Any]):
        """
        Save final state metrics to CSV.

        Args:
            filepath: Output file path
            metrics: Metrics dictionary
        """
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        rows = []
        for key, value in sorted(metrics.items()):
            if isinstance(value, (int, float, bool, str)):
                rows.append({
                    'Metric': key,
                    'Value': value,
                    'Type': type(value).__name__
                })

        df = pd.DataFrame(rows)
        df.to_csv(filepath, index=False)
