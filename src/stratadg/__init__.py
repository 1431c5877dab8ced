"""
stratadg: JAX-Accelerated Discontinuous Galerkin Column Solver

A Python library for solving balance laws on a one-dimensional column
(soil, ocean or atmosphere) with a nodal discontinuous Galerkin method
and low-storage Runge-Kutta time stepping.

Balance laws in conservative form:
    ∂q/∂t + ∂/∂z (F₁(q) + F₂(q, ∂g/∂z)) = S

Reference model, the heat equation:
    ∂(ρcT)/∂t - ∂/∂z (α ∂(ρcT)/∂z) = 0

Features:
    - Legendre-Gauss-Lobatto nodal DG of arbitrary order
    - Dirichlet and Neumann boundary conditions
    - Central numerical fluxes for first- and second-order terms
    - Carpenter-Kennedy LSRK(5,4) explicit integration
    - JAX compilation of the right-hand side
    - Per-step NetCDF output, CSV metrics, PNG and GIF plots

License: MIT
"""

import jax

# DG operators are validated in double precision
jax.config.update("jax_enable_x64", True)

__version__ = "0.0.1"
__license__ = "MIT"

from .core.errors import StratadgError, ConfigurationError, NumericalInstabilityError, StateError
from .core.mesh import ColumnMesh
from .core.boundary import BoundaryTag, Dirichlet, Neumann
from .core.balance_law import BalanceLaw
from .core.heat_model import HeatModel, HeatParams
from .core.dg_operator import DGOperator
from .core.integrator import LSRK54CarpenterKennedy, EveryXSimulationTime
from .core.metrics import (
    fourier_time_step,
    compute_conservation_metrics,
    compute_stability_metrics,
    compute_boundary_metrics,
    compute_l2_error,
    compute_all_metrics,
)
from .io.config_manager import ConfigManager
from .io.data_handler import DataHandler, NetCDFWriter

__all__ = [
    # Core classes
    "ColumnMesh",
    "BoundaryTag",
    "Dirichlet",
    "Neumann",
    "BalanceLaw",
    "HeatModel",
    "HeatParams",
    "DGOperator",
    "LSRK54CarpenterKennedy",
    "EveryXSimulationTime",
    # Errors
    "StratadgError",
    "ConfigurationError",
    "NumericalInstabilityError",
    "StateError",
    # Config and data
    "ConfigManager",
    "DataHandler",
    "NetCDFWriter",
    # Metrics functions
    "fourier_time_step",
    "compute_conservation_metrics",
    "compute_stability_metrics",
    "compute_boundary_metrics",
    "compute_l2_error",
    "compute_all_metrics",
]
