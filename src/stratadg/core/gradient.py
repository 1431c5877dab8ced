"""
Gradient resolution for second-order (diffusive) terms.

For the gradient argument g the resolver forms the DG gradient

    ∂g/∂z|_i = (1/J) Σ_n D_in g_n                      (strong form)
             + δ_{i,face} n (g* - g⁻) / (w_i J)        (lifting)

where g* is the face trace chosen by the gradient numerical flux: the
average of both neighbors on interior faces and the boundary rule against
the ghost value from the primal boundary condition on boundary faces. The
corrected gradient is turned into the diffusive flux by the model's
compute_gradient_flux.
"""

import jax.numpy as jnp
from typing import Dict, NamedTuple, Tuple

from .balance_law import BalanceLaw, Vars
from .boundary import BoundaryTag
from .errors import ConfigurationError
from .mesh import ColumnMesh
from .numerical_flux import NumericalFlux, CentralNumericalFluxGradient, resolve_face_values


class GradientResult(NamedTuple):
    """Output of one gradient resolution."""
    gradient: Vars
    diffusive: Vars
    traces: Dict[str, Tuple[jnp.ndarray, jnp.ndarray]]


def node_values(values: Vars, element: int, node: int) -> Vars:
    """Values of every variable at a single node."""
    return {name: v[element, node] for name, v in values.items()}


class GradientResolver:
    """
    Elementwise gradient with face corrections.

    Attributes:
        model: BalanceLaw providing the gradient argument and flux
        mesh: ColumnMesh
        numerical_flux: Rule for the gradient face trace
    """

    def __init__(
        self,
        model: BalanceLaw,
        mesh: ColumnMesh,
        numerical_flux: NumericalFlux = None
    ):
        self.model = model
        self.mesh = mesh
        self.numerical_flux = numerical_flux or CentralNumericalFluxGradient()
        self.gradient_vars = tuple(model.vars_state_gradient())

        self._DT = jnp.asarray(mesh.D.T)
        self._J = jnp.asarray(mesh.jacobian)[:, None]
        self._lift_bottom = 1.0 / (mesh.weights[0] * jnp.asarray(mesh.jacobian))
        self._lift_top = 1.0 / (mesh.weights[-1] * jnp.asarray(mesh.jacobian))

    def ghost_arguments(self, state: Vars, aux: Vars, t: float) -> Tuple[Vars, Vars]:
        """Gradient arguments of the bottom and top ghost states."""
        model = self.model
        last = self.mesh.n_nodes - 1

        state_b = node_values(state, 0, 0)
        aux_b = node_values(aux, 0, 0)
        ghost_b = model.boundary_state(BoundaryTag.BOTTOM, state_b, -1.0, t)

        state_t = node_values(state, -1, last)
        aux_t = node_values(aux, -1, last)
        ghost_t = model.boundary_state(BoundaryTag.TOP, state_t, 1.0, t)

        return (
            model.compute_gradient_argument(ghost_b, aux_b, t),
            model.compute_gradient_argument(ghost_t, aux_t, t),
        )

    def resolve(self, state: Vars, aux: Vars, t: float) -> GradientResult:
        """
        Resolve gradients and diffusive fluxes on all nodes.

        Args:
            state: Conservative variables, each [K, N+1]
            aux: Auxiliary variables, each [K, N+1]
            t: Simulation time

        Returns:
            GradientResult with corrected gradient, diffusive flux and the
            (bottom, top) face traces of every gradient variable

        Raises:
            ConfigurationError: If compute_gradient_argument returns names
                other than the declared gradient layout
        """
        argument = self.model.compute_gradient_argument(state, aux, t)
        if set(argument) != set(self.gradient_vars):
            raise ConfigurationError(
                f"compute_gradient_argument returned variables {sorted(argument)}, "
                f"declared layout is {list(self.gradient_vars)}"
            )
        ghost_bottom, ghost_top = self.ghost_arguments(state, aux, t)

        gradient = {}
        traces = {}
        for name in self.gradient_vars:
            g = argument[name]
            raw = (g @ self._DT) / self._J

            star_bottom, star_top = resolve_face_values(
                self.numerical_flux, g[:, 0], g[:, -1],
                ghost_bottom[name], ghost_top[name]
            )

            # Normals: -1 on the bottom face, +1 on the top face
            raw = raw.at[:, 0].add(-(star_bottom - g[:, 0]) * self._lift_bottom)
            raw = raw.at[:, -1].add((star_top - g[:, -1]) * self._lift_top)

            gradient[name] = raw
            traces[name] = (star_bottom, star_top)

        diffusive = self.model.compute_gradient_flux(gradient, state, aux, t)

        return GradientResult(gradient, diffusive, traces)
