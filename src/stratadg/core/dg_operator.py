"""
Discontinuous Galerkin spatial operator for balance laws on a column.

For every node i of element k the semi-discrete weak form reads

    dq_i/dt = [ Σ_n w_n D_ni F_n  -  δ_{i,face} n F*  ] / (w_i J_k)  +  S_i

with F = F₁ + F₂ the total physical flux and F* the numerical flux on the
element faces. One evaluation runs, strictly in this order:

    1. auxiliary update from the conservative state
    2. gradient resolution (skipped if the model has no gradient flux)
    3. nodal fluxes F₁, F₂ and source S
    4. volume integral against basis derivatives
    5. face numerical fluxes (interior averages, boundary ghosts)
    6. scaling by the inverse mass weights

The kernel is compiled once with jax.jit. A single reduction after each
evaluation checks the tendency for non-finite values.

References:
    Hesthaven, J. S., & Warburton, T. (2008). Nodal Discontinuous
        Galerkin Methods. Springer.
    Bassi, F., & Rebay, S. (1997). A high-order accurate discontinuous
        finite element method for the numerical solution of the
        compressible Navier-Stokes equations. J. Comput. Phys., 131.
"""

import logging
from collections import OrderedDict
from typing import Dict, Any, Sequence, Tuple, Mapping

import jax
import jax.numpy as jnp
import numpy as np

from .balance_law import BalanceLaw, Vars
from .boundary import BoundaryTag
from .errors import ConfigurationError, NumericalInstabilityError
from .gradient import GradientResolver, node_values
from .mesh import ColumnMesh
from .numerical_flux import (
    NumericalFlux,
    CentralNumericalFluxFirstOrder,
    CentralNumericalFluxSecondOrder,
    CentralNumericalFluxGradient,
    resolve_face_values,
)


logger = logging.getLogger(__name__)


# ============================================================================
# State packing
# ============================================================================

def unpack(names: Sequence[str], array: jnp.ndarray) -> Vars:
    """Split a stacked state [n_vars, K, N+1] into a name mapping."""
    return {name: array[i] for i, name in enumerate(names)}


def pack(names: Sequence[str], values: Mapping[str, Any], shape: Tuple[int, ...], what: str) -> jnp.ndarray:
    """
    Stack a name mapping into [n_vars, *shape] in layout order.

    Raises:
        ConfigurationError: If the keys differ from the declared layout
    """
    if set(values) != set(names):
        raise ConfigurationError(
            f"{what} returned variables {sorted(values)}, "
            f"declared layout is {list(names)}"
        )
    if not names:
        return jnp.zeros((0,) + tuple(shape))
    return jnp.stack([jnp.broadcast_to(jnp.asarray(values[name], dtype=jnp.float64), shape)
                      for name in names])


def _check_layout(names: Sequence[str], what: str, allow_empty: bool = True):
    names = tuple(names)
    if not allow_empty and not names:
        raise ConfigurationError(f"{what} layout must declare at least one variable")
    if len(set(names)) != len(names):
        raise ConfigurationError(f"{what} layout has duplicate names: {list(names)}")
    return names


# ============================================================================
# Operator
# ============================================================================

class DGOperator:
    """
    Right-hand side of the semi-discrete balance law.

    Binding a model to a mesh validates boundary tags and variable layouts,
    and initializes the auxiliary state.

    Example:
        >>> mesh = ColumnMesh(np.linspace(0.0, 1.0, 11), polynomial_order=5)
        >>> dg = DGOperator(HeatModel(), mesh)
        >>> Q = dg.init_ode_state(0.0)
        >>> dQ = dg.evaluate_rhs(Q, 0.0)

    Attributes:
        model: BalanceLaw
        mesh: ColumnMesh
        gradient_resolver: GradientResolver, or None without gradient flux
        state_auxiliary: Auxiliary state [n_aux, K, N+1] derived from the
            conservative state of the last evaluation
    """

    def __init__(
        self,
        model: BalanceLaw,
        mesh: ColumnMesh,
        numerical_flux_first_order: NumericalFlux = None,
        numerical_flux_second_order: NumericalFlux = None,
        numerical_flux_gradient: NumericalFlux = None,
    ):
        self.model = model
        self.mesh = mesh
        self.numerical_flux_first_order = numerical_flux_first_order or CentralNumericalFluxFirstOrder()
        self.numerical_flux_second_order = numerical_flux_second_order or CentralNumericalFluxSecondOrder()
        self.numerical_flux_gradient = numerical_flux_gradient or CentralNumericalFluxGradient()

        self.conservative_vars = _check_layout(model.vars_state_conservative(), "conservative", allow_empty=False)
        self.auxiliary_vars = _check_layout(model.vars_state_auxiliary(), "auxiliary")
        self.gradient_vars = _check_layout(model.vars_state_gradient(), "gradient")
        self.gradient_flux_vars = _check_layout(model.vars_state_gradient_flux(), "gradient flux")

        self._bind_boundaries()

        self._shape = (mesh.n_elements, mesh.n_nodes)
        self._z = jnp.asarray(mesh.z)
        self._D = jnp.asarray(mesh.D)
        self._weights = jnp.asarray(mesh.weights)
        self._mass = jnp.asarray(mesh.mass)

        if self.gradient_flux_vars:
            self.gradient_resolver = GradientResolver(model, mesh, self.numerical_flux_gradient)
        else:
            self.gradient_resolver = None

        aux = model.init_state_auxiliary(self._z)
        self._aux_init = pack(self.auxiliary_vars, aux, self._shape, "init_state_auxiliary")
        self.state_auxiliary = self._aux_init

        # Trace every callback once so layout mismatches fail here
        Q0 = self.init_ode_state(0.0)
        jax.eval_shape(self._assemble, Q0, 0.0)

        self._tendency = jax.jit(self._tendency_kernel)
        self._update_aux = jax.jit(self._auxiliary_kernel)

        logger.debug(
            "Bound %s to %r (gradient resolver: %s)",
            type(model).__name__, mesh, self.gradient_resolver is not None
        )

    def _bind_boundaries(self):
        bcs = self.model.boundary_conditions()
        known = set(BoundaryTag)

        for tag in bcs:
            if tag not in known:
                raise ConfigurationError(f"Unrecognized boundary tag: {tag!r}")

        for tag in self.mesh.boundary_tags:
            if tag not in bcs:
                raise ConfigurationError(
                    f"Model {type(self.model).__name__} has no boundary condition "
                    f"for tag {BoundaryTag(tag).name}"
                )
            bcs[tag].validate(self.conservative_vars, self.gradient_flux_vars)

    # ------------------------------------------------------------------
    # Kernels
    # ------------------------------------------------------------------

    def _auxiliary_kernel(self, Q: jnp.ndarray, t) -> jnp.ndarray:
        state = unpack(self.conservative_vars, Q)
        aux0 = unpack(self.auxiliary_vars, self._aux_init)
        aux = self.model.update_auxiliary_state(state, aux0, t)
        return pack(self.auxiliary_vars, aux, self._shape, "update_auxiliary_state")

    def _total_flux(self, state: Vars, diffusive: Vars, aux: Vars, t) -> Tuple[Vars, Vars]:
        model = self.model
        first = model.flux_first_order(state, aux, t)
        second = model.flux_second_order(state, diffusive, aux, t)
        for what, flux in (("flux_first_order", first), ("flux_second_order", second)):
            if set(flux) != set(self.conservative_vars):
                raise ConfigurationError(
                    f"{what} returned variables {sorted(flux)}, "
                    f"declared layout is {list(self.conservative_vars)}"
                )
        return first, second

    def _boundary_fluxes(self, state: Vars, diffusive: Vars, aux: Vars, t):
        """First- and second-order fluxes of the bottom and top ghost states."""
        model = self.model
        last = self.mesh.n_nodes - 1
        ghosts = {}

        for tag, element, node, normal in (
            (BoundaryTag.BOTTOM, 0, 0, -1.0),
            (BoundaryTag.TOP, -1, last, 1.0),
        ):
            state_in = node_values(state, element, node)
            aux_in = node_values(aux, element, node)
            diff_in = node_values(diffusive, element, node)

            state_out = model.boundary_state(tag, state_in, normal, t)
            if self.gradient_resolver is not None:
                diff_out = model.boundary_gradient_flux(tag, diff_in, normal, t)
            else:
                diff_out = diff_in

            ghosts[tag] = (
                model.flux_first_order(state_out, aux_in, t),
                model.flux_second_order(state_out, diff_out, aux_in, t),
            )

        return ghosts

    def _assemble(self, Q: jnp.ndarray, t) -> Dict[str, Any]:
        model = self.model

        # 1. Auxiliary state
        aux_array = self._auxiliary_kernel(Q, t)
        state = unpack(self.conservative_vars, Q)
        aux = unpack(self.auxiliary_vars, aux_array)

        # 2. Gradient resolution
        if self.gradient_resolver is not None:
            resolved = self.gradient_resolver.resolve(state, aux, t)
            pack(self.gradient_flux_vars, resolved.diffusive, self._shape, "compute_gradient_flux")
            diffusive = resolved.diffusive
            traces = resolved.traces
        else:
            diffusive = {}
            traces = {}

        # 3. Nodal fluxes and source
        first, second = self._total_flux(state, diffusive, aux, t)
        source = pack(self.conservative_vars, model.source(state, diffusive, aux, t), self._shape, "source")
        ghosts = self._boundary_fluxes(state, diffusive, aux, t)

        tendency = []
        face_flux = {}
        for i, name in enumerate(self.conservative_vars):
            F1 = jnp.broadcast_to(first[name], self._shape)
            F2 = jnp.broadcast_to(second[name], self._shape)
            F = F1 + F2

            # 4. Volume: Σ_n w_n D_ni F_n
            volume = (F * self._weights) @ self._D

            # 5. Faces
            star1_bottom, star1_top = resolve_face_values(
                self.numerical_flux_first_order, F1[:, 0], F1[:, -1],
                ghosts[BoundaryTag.BOTTOM][0][name], ghosts[BoundaryTag.TOP][0][name]
            )
            star2_bottom, star2_top = resolve_face_values(
                self.numerical_flux_second_order, F2[:, 0], F2[:, -1],
                ghosts[BoundaryTag.BOTTOM][1][name], ghosts[BoundaryTag.TOP][1][name]
            )
            star_bottom = star1_bottom + star2_bottom
            star_top = star1_top + star2_top

            # n F*: -1 on bottom faces, +1 on top faces
            face = jnp.zeros(self._shape)
            face = face.at[:, 0].add(-star_bottom)
            face = face.at[:, -1].add(star_top)

            # 6. Scale by inverse mass
            tendency.append((volume - face) / self._mass + source[i])
            face_flux[name] = (star_bottom, star_top)

        return {
            'tendency': jnp.stack(tendency),
            'aux': aux_array,
            'diffusive': diffusive,
            'gradient_traces': traces,
            'face_flux': face_flux,
        }

    def _tendency_kernel(self, Q: jnp.ndarray, t):
        out = self._assemble(Q, t)
        return out['tendency'], out['aux']

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def init_ode_state(self, t0: float = 0.0) -> jnp.ndarray:
        """
        Initial conservative state [n_vars, K, N+1].

        Also refreshes state_auxiliary so it matches the returned state.
        """
        aux = unpack(self.auxiliary_vars, self._aux_init)
        state = self.model.init_state_conservative(aux, self._z, t0)
        Q = pack(self.conservative_vars, state, self._shape, "init_state_conservative")
        self.state_auxiliary = self._auxiliary_kernel(Q, t0)
        return Q

    def evaluate_rhs(self, Q: jnp.ndarray, t: float) -> jnp.ndarray:
        """
        Time derivative of the conservative state.

        Args:
            Q: Conservative state [n_vars, K, N+1]
            t: Simulation time

        Returns:
            dQ/dt with the same shape

        Raises:
            NumericalInstabilityError: If any tendency value is non-finite
        """
        dQ, aux = self._tendency(Q, t)

        if not bool(jnp.all(jnp.isfinite(dQ))):
            bad = np.argwhere(~np.isfinite(np.asarray(dQ)))
            elements = (int(bad[:, 1].min()), int(bad[:, 1].max()))
            nodes = (int(bad[:, 2].min()), int(bad[:, 2].max()))
            logger.error("Non-finite tendency at t=%.6e, elements %s", float(t), elements)
            raise NumericalInstabilityError(float(t), elements, nodes)

        self.state_auxiliary = aux
        return dQ

    def __call__(self, Q: jnp.ndarray, t: float) -> jnp.ndarray:
        return self.evaluate_rhs(Q, t)

    def update_auxiliary_state(self, Q: jnp.ndarray, t: float) -> jnp.ndarray:
        """Recompute state_auxiliary from Q (before exposing output)."""
        self.state_auxiliary = self._update_aux(Q, t)
        return self.state_auxiliary

    def diagnostics(self, Q: jnp.ndarray, t: float) -> Dict[str, Any]:
        """
        Intermediate products of one evaluation (not compiled).

        Returns:
            Dictionary with 'tendency', 'aux', 'diffusive' (name -> [K, N+1]),
            'gradient_traces' and 'face_flux' (name -> (bottom [K], top [K]))
        """
        return self._assemble(jnp.asarray(Q), t)

    def boundary_normal_fluxes(self, Q: jnp.ndarray, t: float) -> Dict[BoundaryTag, Dict[str, float]]:
        """Outward numerical flux F*·n on the two boundary faces."""
        face_flux = self.diagnostics(Q, t)['face_flux']
        return {
            BoundaryTag.BOTTOM: {name: -float(f[0][0]) for name, f in face_flux.items()},
            BoundaryTag.TOP: {name: float(f[1][-1]) for name, f in face_flux.items()},
        }

    def get_vars(self, Q: jnp.ndarray, exclude: Sequence[str] = ()) -> "OrderedDict[str, np.ndarray]":
        """Conservative variables as name -> node values, bottom to top."""
        Q = np.asarray(Q)
        return OrderedDict(
            (name, Q[i].reshape(-1).copy())
            for i, name in enumerate(self.conservative_vars) if name not in exclude
        )

    def get_auxiliary_vars(self, exclude: Sequence[str] = ()) -> "OrderedDict[str, np.ndarray]":
        """Auxiliary variables as name -> node values, bottom to top."""
        aux = np.asarray(self.state_auxiliary)
        return OrderedDict(
            (name, aux[i].reshape(-1).copy())
            for i, name in enumerate(self.auxiliary_vars) if name not in exclude
        )

    def get_all_vars(self, Q: jnp.ndarray, t: float, exclude: Sequence[str] = ()) -> "OrderedDict[str, np.ndarray]":
        """Conservative and refreshed auxiliary variables together."""
        self.update_auxiliary_state(Q, t)
        all_vars = self.get_vars(Q, exclude)
        all_vars.update(self.get_auxiliary_vars(exclude))
        return all_vars

    def __repr__(self) -> str:
        return (
            f"DGOperator(model={type(self.model).__name__}, "
            f"n_elements={self.mesh.n_elements}, N={self.mesh.polynomial_order})"
        )
