"""
Boundary conditions for the column faces.

Every boundary face of the mesh carries a BoundaryTag. The model maps each
tag to one BoundaryCondition variant, which resolves the two kinds of
exterior ("ghost") data the DG operator needs:

    primal_state   exterior conservative state, used for the gradient
                   trace and the first-order flux
    gradient_flux  exterior diffusive flux, used for the second-order flux

Variants:
    Dirichlet(values)  exterior state fixed to the prescribed values
    Neumann(fluxes)    exterior diffusive flux set to -n * flux, so the
                       second-order boundary flux F·n = -diffusive·n equals
                       the prescribed flux exactly
"""

from abc import ABC, abstractmethod
from enum import IntEnum
from typing import Dict, Mapping, Iterable

import jax.numpy as jnp

from .errors import ConfigurationError


class BoundaryTag(IntEnum):
    """Boundary kind of a face."""
    BOTTOM = 1
    TOP = 2


class BoundaryCondition(ABC):
    """Resolves exterior data at one boundary face."""

    @abstractmethod
    def primal_state(self, state: Dict, normal: float, t: float) -> Dict:
        """
        Exterior conservative state.

        Args:
            state: Interior conservative values at the face node
            normal: Outward normal of the face (-1 bottom, +1 top)
            t: Simulation time

        Returns:
            Exterior conservative values (same keys)
        """

    @abstractmethod
    def gradient_flux(self, diffusive: Dict, normal: float, t: float) -> Dict:
        """
        Exterior diffusive flux.

        Args:
            diffusive: Interior diffusive flux values at the face node
            normal: Outward normal of the face
            t: Simulation time

        Returns:
            Exterior diffusive values (same keys)
        """

    @abstractmethod
    def validate(self, conservative: Iterable[str], gradient_flux: Iterable[str]):
        """Raise ConfigurationError if the condition names undeclared variables."""


class Dirichlet(BoundaryCondition):
    """
    Prescribed conservative values.

    The exterior diffusive flux is left equal to the interior one; the
    boundary value enters through the gradient trace.

    Example:
        >>> Dirichlet({'rhocT': 300.0})
    """

    def __init__(self, values: Mapping[str, float]):
        if not values:
            raise ConfigurationError("Dirichlet condition needs at least one value")
        self.values = dict(values)

    def primal_state(self, state: Dict, normal: float, t: float) -> Dict:
        exterior = dict(state)
        for name, value in self.values.items():
            exterior[name] = jnp.full_like(state[name], value)
        return exterior

    def gradient_flux(self, diffusive: Dict, normal: float, t: float) -> Dict:
        return dict(diffusive)

    def validate(self, conservative: Iterable[str], gradient_flux: Iterable[str]):
        unknown = set(self.values) - set(conservative)
        if unknown:
            raise ConfigurationError(
                f"Dirichlet values for undeclared conservative variables: {sorted(unknown)}"
            )

    def __repr__(self) -> str:
        return f"Dirichlet({self.values})"


class Neumann(BoundaryCondition):
    """
    Prescribed diffusive flux along the outward normal.

    The exterior state equals the interior state, so the central gradient
    trace carries no jump.

    Example:
        >>> Neumann({'alpha_grad_rhocT': 0.0})
    """

    def __init__(self, fluxes: Mapping[str, float]):
        if not fluxes:
            raise ConfigurationError("Neumann condition needs at least one flux")
        self.fluxes = dict(fluxes)

    def primal_state(self, state: Dict, normal: float, t: float) -> Dict:
        return dict(state)

    def gradient_flux(self, diffusive: Dict, normal: float, t: float) -> Dict:
        exterior = dict(diffusive)
        for name, flux in self.fluxes.items():
            exterior[name] = jnp.full_like(diffusive[name], -normal * flux)
        return exterior

    def validate(self, conservative: Iterable[str], gradient_flux: Iterable[str]):
        unknown = set(self.fluxes) - set(gradient_flux)
        if unknown:
            raise ConfigurationError(
                f"Neumann fluxes for undeclared gradient-flux variables: {sorted(unknown)}"
            )

    def __repr__(self) -> str:
        return f"Neumann({self.fluxes})"
