"""
Heat equation on a soil/air column as a balance law.

Governing equation (conservative form):
    ∂(ρcT)/∂t - ∂/∂z (α ∂(ρcT)/∂z) = 0

State layout:
    conservative    rhocT               (ρcT, heat content per volume)
    auxiliary       z, T                (coordinate, temperature T = ρcT/ρc)
    gradient        rhocT               (differentiated variable)
    gradient flux   alpha_grad_rhocT    (α ∂(ρcT)/∂z)

Fluxes:
    F₁ = 0,  F₂ = -α ∂(ρcT)/∂z,  S = 0

Boundaries (default):
    bottom  Dirichlet  ρcT = ρc T_bottom
    top     Neumann    F·n = flux_top   (outward heat flux)

With T(z_min) = T_b and zero top flux, the column has the decaying modes

    T(z, t) = T_b + A exp(-α k² t) sin(k (z - z_min)),   k = π / (2 L)

used for the relaxation scenario and convergence checks.
"""

import numpy as np
import jax.numpy as jnp
from typing import Callable, Dict, Mapping, Optional
from dataclasses import dataclass, asdict

from .balance_law import BalanceLaw, Vars
from .boundary import BoundaryCondition, BoundaryTag, Dirichlet, Neumann
from .errors import ConfigurationError


@dataclass(frozen=True)
class HeatParams:
    """
    Immutable heat model parameters.

    Attributes:
        rho_c: Volumetric heat capacity ρc (default: 1)
        alpha: Thermal diffusivity α (default: 0.01)
        initial_T: Uniform initial temperature [K] (default: 295.15)
        T_bottom: Bottom Dirichlet temperature [K] (default: 300.0)
        flux_top: Outward top flux of ρcT, Neumann (default: 0.0)
    """
    rho_c: float = 1.0
    alpha: float = 0.01
    initial_T: float = 295.15
    T_bottom: float = 300.0
    flux_top: float = 0.0

    def __post_init__(self):
        if self.rho_c <= 0:
            raise ConfigurationError(f"rho_c must be > 0, got {self.rho_c}")
        if self.alpha <= 0:
            raise ConfigurationError(f"alpha must be > 0, got {self.alpha}")

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return asdict(self)


class HeatModel(BalanceLaw):
    """
    Single-field linear heat diffusion.

    Attributes:
        params: HeatParams
        initial_profile: Optional T(z) replacing the uniform initial_T

    Example:
        >>> model = HeatModel(alpha=0.01, T_bottom=300.0)
        >>> model.boundary_conditions()[BoundaryTag.BOTTOM]
        Dirichlet({'rhocT': 300.0})
    """

    def __init__(
        self,
        rho_c: float = 1.0,
        alpha: float = 0.01,
        initial_T: float = 295.15,
        T_bottom: float = 300.0,
        flux_top: float = 0.0,
        boundary_conditions: Optional[Mapping[BoundaryTag, BoundaryCondition]] = None,
        initial_profile: Optional[Callable[[jnp.ndarray], jnp.ndarray]] = None,
    ):
        """
        Initialize heat model.

        Args:
            rho_c: Volumetric heat capacity
            alpha: Thermal diffusivity
            initial_T: Uniform initial temperature
            T_bottom: Bottom Dirichlet temperature
            flux_top: Outward Neumann flux at the top
            boundary_conditions: Replaces the default bottom/top conditions
            initial_profile: Initial temperature as a function of z
        """
        self.params = HeatParams(
            rho_c=rho_c, alpha=alpha, initial_T=initial_T,
            T_bottom=T_bottom, flux_top=flux_top
        )
        self.initial_profile = initial_profile

        if boundary_conditions is None:
            boundary_conditions = {
                BoundaryTag.BOTTOM: Dirichlet({'rhocT': rho_c * T_bottom}),
                BoundaryTag.TOP: Neumann({'alpha_grad_rhocT': flux_top}),
            }
        self._boundary_conditions = dict(boundary_conditions)

    @classmethod
    def from_params(cls, params: HeatParams, **kwargs) -> "HeatModel":
        return cls(**params.to_dict(), **kwargs)

    # Layouts

    def vars_state_conservative(self):
        return ('rhocT',)

    def vars_state_auxiliary(self):
        return ('z', 'T')

    def vars_state_gradient(self):
        return ('rhocT',)

    def vars_state_gradient_flux(self):
        return ('alpha_grad_rhocT',)

    # Initialization

    def init_state_auxiliary(self, z: jnp.ndarray) -> Vars:
        if self.initial_profile is None:
            T = jnp.full_like(z, self.params.initial_T)
        else:
            T = jnp.asarray(self.initial_profile(z), dtype=z.dtype)
        return {'z': z, 'T': T}

    def init_state_conservative(self, aux: Vars, z: jnp.ndarray, t: float) -> Vars:
        return {'rhocT': self.params.rho_c * aux['T']}

    # Callbacks

    def update_auxiliary_state(self, state: Vars, aux: Vars, t: float) -> Vars:
        return {'z': aux['z'], 'T': state['rhocT'] / self.params.rho_c}

    def compute_gradient_argument(self, state: Vars, aux: Vars, t: float) -> Vars:
        return {'rhocT': state['rhocT']}

    def compute_gradient_flux(self, grad: Vars, state: Vars, aux: Vars, t: float) -> Vars:
        return {'alpha_grad_rhocT': self.params.alpha * grad['rhocT']}

    def flux_second_order(self, state: Vars, diffusive: Vars, aux: Vars, t: float) -> Vars:
        return {'rhocT': -diffusive['alpha_grad_rhocT']}

    def boundary_conditions(self) -> Mapping[BoundaryTag, BoundaryCondition]:
        return self._boundary_conditions

    # Analytic reference

    def relaxation_solution(
        self,
        z: np.ndarray,
        t: float,
        amplitude: float,
        z_min: float,
        z_max: float
    ) -> np.ndarray:
        """
        Slowest decaying mode for Dirichlet bottom and zero-flux top.

        Args:
            z: Coordinates
            t: Time since the mode was set up
            amplitude: Initial amplitude A
            z_min, z_max: Column extent

        Returns:
            Temperature T(z, t)
        """
        k = np.pi / (2.0 * (z_max - z_min))
        decay = np.exp(-self.params.alpha * k**2 * t)
        return self.params.T_bottom + amplitude * decay * np.sin(k * (np.asarray(z) - z_min))

    def describe(self) -> str:
        """Return detailed description of the model."""
        p = self.params
        bcs = "\n".join(
            f"  {BoundaryTag(tag).name.lower():6s} = {bc!r}"
            for tag, bc in sorted(self._boundary_conditions.items(), key=lambda item: int(item[0]))
        )
        initial = "profile" if self.initial_profile is not None else f"{p.initial_T:.2f} K"
        return f"""
Heat Equation Balance Law
=========================
  ρc (heat capacity)      = {p.rho_c:.4g}
  α (thermal diffusivity) = {p.alpha:.4g}
  initial T               = {initial}

Boundary Conditions:
{bcs}

Governing Equation:
  ∂(ρcT)/∂t - ∂/∂z (α ∂(ρcT)/∂z) = 0
"""

    def __repr__(self) -> str:
        p = self.params
        return (
            f"HeatModel(rho_c={p.rho_c}, alpha={p.alpha}, "
            f"T_bottom={p.T_bottom}, flux_top={p.flux_top})"
        )

    def __str__(self) -> str:
        return self.__repr__()
