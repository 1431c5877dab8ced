"""
Stratadg Core Module.

Nodal DG balance-law solver on a 1D column with JAX acceleration.

Components:
    - ColumnMesh: Elements, LGL nodes and differentiation matrix
    - BalanceLaw, HeatModel: Model interface and the heat equation
    - DGOperator: Semi-discrete right-hand side
    - LSRK54CarpenterKennedy: Low-storage Runge-Kutta time stepping
    - metrics: Diagnostic metrics

Example:
    >>> from stratadg.core import ColumnMesh, HeatModel, DGOperator, LSRK54CarpenterKennedy
    >>> mesh = ColumnMesh.uniform(0.0, 1.0, n_elements=10, polynomial_order=5)
    >>> dg = DGOperator(HeatModel(), mesh)
    >>> lsrk = LSRK54CarpenterKennedy(dg, dg.init_ode_state(0.0), dt=1e-3, timeend=1.0)
    >>> Q = lsrk.solve()
"""

from .errors import StratadgError, ConfigurationError, NumericalInstabilityError, StateError
from .mesh import ColumnMesh, Element, Face
from .boundary import BoundaryTag, BoundaryCondition, Dirichlet, Neumann
from .numerical_flux import (
    NumericalFlux,
    CentralNumericalFlux,
    CentralNumericalFluxFirstOrder,
    CentralNumericalFluxGradient,
    CentralNumericalFluxSecondOrder,
)
from .balance_law import BalanceLaw
from .heat_model import HeatModel, HeatParams
from .gradient import GradientResolver
from .dg_operator import DGOperator
from .integrator import LSRK54CarpenterKennedy, EveryXSimulationTime, IntegratorStatus
from . import metrics

__all__ = [
    'StratadgError',
    'ConfigurationError',
    'NumericalInstabilityError',
    'StateError',
    'ColumnMesh',
    'Element',
    'Face',
    'BoundaryTag',
    'BoundaryCondition',
    'Dirichlet',
    'Neumann',
    'NumericalFlux',
    'CentralNumericalFlux',
    'CentralNumericalFluxFirstOrder',
    'CentralNumericalFluxGradient',
    'CentralNumericalFluxSecondOrder',
    'BalanceLaw',
    'HeatModel',
    'HeatParams',
    'GradientResolver',
    'DGOperator',
    'LSRK54CarpenterKennedy',
    'EveryXSimulationTime',
    'IntegratorStatus',
    'metrics',
]
