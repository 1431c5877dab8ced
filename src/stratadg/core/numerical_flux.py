"""
Numerical fluxes: the single value shared by the two sides of a face.

All schemes act on z-component traces (any array shape, vectorized over
faces); the DG operator applies the outward normal afterwards.

Central schemes:
    interior faces   f* = (f⁻ + f⁺) / 2
    boundary faces   first order: same average against the ghost value
                     gradient, second order: f* = f⁺ (the ghost value fixed
                     by the boundary condition is the trace)

The central average is consistent (f* = f when both sides agree) and
conservative (both elements see the same f*), but not upwinded; this is
adequate for diffusion, which is dissipative on its own.
"""

from abc import ABC, abstractmethod

import jax.numpy as jnp


class NumericalFlux(ABC):
    """Stateless two-sided flux rule."""

    @abstractmethod
    def interface(self, inside, outside):
        """Shared value at an interior face."""

    @abstractmethod
    def boundary(self, inside, outside):
        """Shared value at a boundary face; outside is the ghost value."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class CentralNumericalFlux(NumericalFlux):
    """Arithmetic average on every face."""

    def interface(self, inside, outside):
        return 0.5 * (inside + outside)

    def boundary(self, inside, outside):
        return 0.5 * (inside + outside)


class CentralNumericalFluxFirstOrder(CentralNumericalFlux):
    """Central flux for the first-order (advective) flux."""


class CentralNumericalFluxGradient(CentralNumericalFlux):
    """
    Central trace of the gradient argument.

    Interior faces average the two sides. Boundary faces take the exterior
    (boundary-resolved) value rather than the average, so a Dirichlet value
    is the exact trace on the boundary face.
    """

    def boundary(self, inside, outside):
        return outside


class CentralNumericalFluxSecondOrder(CentralNumericalFlux):
    """Central flux for the second-order (diffusive) flux."""

    def boundary(self, inside, outside):
        return outside


def resolve_face_values(numerical_flux, bottom_trace, top_trace, ghost_bottom, ghost_top):
    """
    Shared face values for every element of the column.

    Args:
        numerical_flux: NumericalFlux rule
        bottom_trace: Values at the bottom node of each element [K]
        top_trace: Values at the top node of each element [K]
        ghost_bottom: Exterior value at the bottom boundary face
        ghost_top: Exterior value at the top boundary face

    Returns:
        Tuple (star_bottom, star_top), each [K]: value on the bottom and
        top face of every element. Interior faces appear twice with the
        same value.
    """
    interior = numerical_flux.interface(top_trace[:-1], bottom_trace[1:])
    bottom = numerical_flux.boundary(bottom_trace[0], ghost_bottom)
    top = numerical_flux.boundary(top_trace[-1], ghost_top)

    star_bottom = jnp.concatenate([jnp.reshape(bottom, (1,)), interior])
    star_top = jnp.concatenate([interior, jnp.reshape(top, (1,))])

    return star_bottom, star_top
