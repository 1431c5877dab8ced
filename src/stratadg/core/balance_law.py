"""
Balance-law model interface.

A model describes

    ∂q/∂t + ∂(F₁(q) + F₂(q, ∇g))/∂z = S(q, ∇g)

through four variable layouts and a set of pure, node-local callbacks. The
DG operator evaluates every callback on all nodes at once: each argument is
a mapping from variable name to an array of node values, and each callback
returns a new mapping for its destination layout. Callbacks must be
elementwise in the node index and traceable by JAX (use jax.numpy).

Required callbacks: layouts, init_state_auxiliary, init_state_conservative,
update_auxiliary_state, compute_gradient_argument, compute_gradient_flux,
flux_second_order, boundary_conditions.

Optional callbacks with zero defaults: flux_first_order, source.
"""

from abc import ABC, abstractmethod
from typing import Dict, Tuple, Mapping

import jax.numpy as jnp

from .boundary import BoundaryCondition, BoundaryTag


Vars = Dict[str, jnp.ndarray]


class BalanceLaw(ABC):
    """Abstract balance law on a 1D column."""

    # ---------------------------------------------------------------------
    # Variable layouts
    # ---------------------------------------------------------------------

    @abstractmethod
    def vars_state_conservative(self) -> Tuple[str, ...]:
        """Names of the variables advanced in time."""

    @abstractmethod
    def vars_state_auxiliary(self) -> Tuple[str, ...]:
        """Names of derived, non-advanced variables."""

    @abstractmethod
    def vars_state_gradient(self) -> Tuple[str, ...]:
        """Names of the gradient-driving variables."""

    @abstractmethod
    def vars_state_gradient_flux(self) -> Tuple[str, ...]:
        """Names of the diffusive flux variables (z-components)."""

    # ---------------------------------------------------------------------
    # Initialization
    # ---------------------------------------------------------------------

    @abstractmethod
    def init_state_auxiliary(self, z: jnp.ndarray) -> Vars:
        """Initial auxiliary state from node coordinates."""

    @abstractmethod
    def init_state_conservative(self, aux: Vars, z: jnp.ndarray, t: float) -> Vars:
        """Initial conservative state."""

    # ---------------------------------------------------------------------
    # Per-evaluation callbacks
    # ---------------------------------------------------------------------

    @abstractmethod
    def update_auxiliary_state(self, state: Vars, aux: Vars, t: float) -> Vars:
        """Auxiliary state consistent with the conservative state."""

    @abstractmethod
    def compute_gradient_argument(self, state: Vars, aux: Vars, t: float) -> Vars:
        """Variables whose z-derivative drives the diffusive flux."""

    @abstractmethod
    def compute_gradient_flux(self, grad: Vars, state: Vars, aux: Vars, t: float) -> Vars:
        """Diffusive flux from the resolved gradient."""

    def flux_first_order(self, state: Vars, aux: Vars, t: float) -> Vars:
        """First-order flux F₁; zero by default."""
        return {name: jnp.zeros_like(state[name]) for name in self.vars_state_conservative()}

    @abstractmethod
    def flux_second_order(self, state: Vars, diffusive: Vars, aux: Vars, t: float) -> Vars:
        """Second-order flux F₂."""

    def source(self, state: Vars, diffusive: Vars, aux: Vars, t: float) -> Vars:
        """Source term S; zero by default."""
        return {name: jnp.zeros_like(state[name]) for name in self.vars_state_conservative()}

    # ---------------------------------------------------------------------
    # Boundaries
    # ---------------------------------------------------------------------

    @abstractmethod
    def boundary_conditions(self) -> Mapping[BoundaryTag, BoundaryCondition]:
        """Boundary condition for every boundary tag of the mesh."""

    def boundary_state(self, tag: BoundaryTag, state: Vars, normal: float, t: float) -> Vars:
        """Exterior conservative state at a boundary face."""
        return self.boundary_conditions()[tag].primal_state(state, normal, t)

    def boundary_gradient_flux(
        self,
        tag: BoundaryTag,
        diffusive: Vars,
        normal: float,
        t: float
    ) -> Vars:
        """Exterior diffusive flux at a boundary face."""
        return self.boundary_conditions()[tag].gradient_flux(diffusive, normal, t)
