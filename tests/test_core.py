"""
Tests for the stratadg DG column solver core.

Run with: pytest tests/ -v
"""

import logging

import numpy as np
import jax.numpy as jnp
import pytest

from stratadg import (
    ColumnMesh,
    BoundaryTag,
    Dirichlet,
    Neumann,
    BalanceLaw,
    HeatModel,
    HeatParams,
    DGOperator,
    LSRK54CarpenterKennedy,
    EveryXSimulationTime,
    ConfigurationError,
    NumericalInstabilityError,
    StateError,
    StratadgError,
    fourier_time_step,
)
from stratadg.core.integrator import IntegratorStatus, RKA, RKB, RKC
from stratadg.core.mesh import lgl_nodes_weights, lgl_differentiation_matrix
from stratadg.core.numerical_flux import (
    CentralNumericalFluxFirstOrder,
    CentralNumericalFluxGradient,
    CentralNumericalFluxSecondOrder,
    resolve_face_values,
)


def neumann_zero_model(**kwargs):
    """Heat model insulated at both ends."""
    return HeatModel(
        boundary_conditions={
            BoundaryTag.BOTTOM: Neumann({'alpha_grad_rhocT': 0.0}),
            BoundaryTag.TOP: Neumann({'alpha_grad_rhocT': 0.0}),
        },
        **kwargs
    )


def run_relaxation(n_elements, order, alpha=1.0, t_end=0.1, amplitude=5.0):
    """Integrate the sine mode and return (mesh, model, Q)."""
    mesh = ColumnMesh.uniform(0.0, 1.0, n_elements, order)
    k = np.pi / 2.0
    model = HeatModel(
        alpha=alpha, T_bottom=300.0, flux_top=0.0,
        initial_profile=lambda z: 300.0 + amplitude * jnp.sin(k * z),
    )
    dg = DGOperator(model, mesh)
    dt = fourier_time_step(mesh, alpha, 0.08)
    lsrk = LSRK54CarpenterKennedy(dg, dg.init_ode_state(0.0), dt=dt, timeend=t_end)
    return mesh, model, lsrk.solve()


class ReactionModel(BalanceLaw):
    """dq/dt = -k q with no fluxes and no gradients."""

    def __init__(self, k=2.0):
        self.k = k

    def vars_state_conservative(self):
        return ('q',)

    def vars_state_auxiliary(self):
        return ()

    def vars_state_gradient(self):
        return ()

    def vars_state_gradient_flux(self):
        return ()

    def init_state_auxiliary(self, z):
        return {}

    def init_state_conservative(self, aux, z, t):
        return {'q': 1.0 + z}

    def update_auxiliary_state(self, state, aux, t):
        return {}

    def compute_gradient_argument(self, state, aux, t):
        return {}

    def compute_gradient_flux(self, grad, state, aux, t):
        return {}

    def flux_second_order(self, state, diffusive, aux, t):
        return {'q': jnp.zeros_like(state['q'])}

    def source(self, state, diffusive, aux, t):
        return {'q': -self.k * state['q']}

    def boundary_conditions(self):
        return {
            BoundaryTag.BOTTOM: Dirichlet({'q': 0.0}),
            BoundaryTag.TOP: Dirichlet({'q': 0.0}),
        }


class TestLGL:
    """Test Legendre-Gauss-Lobatto nodes, weights and derivatives."""

    def test_linear_nodes(self):
        """Test order 1 is the trapezoidal rule."""
        xi, w = lgl_nodes_weights(1)
        np.testing.assert_allclose(xi, [-1.0, 1.0])
        np.testing.assert_allclose(w, [1.0, 1.0])

    def test_quadratic_nodes(self):
        """Test order 2 is Simpson's rule."""
        xi, w = lgl_nodes_weights(2)
        np.testing.assert_allclose(xi, [-1.0, 0.0, 1.0], atol=1e-14)
        np.testing.assert_allclose(w, [1 / 3, 4 / 3, 1 / 3])

    @pytest.mark.parametrize("order", [1, 2, 3, 5, 8])
    def test_weights_sum(self, order):
        """Test weights integrate constants exactly."""
        xi, w = lgl_nodes_weights(order)
        assert np.sum(w) == pytest.approx(2.0)
        assert np.all(np.diff(xi) > 0)

    def test_quadrature_exactness(self):
        """Test exact integration up to degree 2N - 1."""
        order = 4
        xi, w = lgl_nodes_weights(order)
        for p in range(2 * order):
            exact = (1.0 - (-1.0)**(p + 1)) / (p + 1)
            assert np.sum(w * xi**p) == pytest.approx(exact, abs=1e-13)

    @pytest.mark.parametrize("order", [1, 3, 5])
    def test_differentiation_exact_for_polynomials(self, order):
        """Test D differentiates monomials of degree <= N exactly."""
        xi, _ = lgl_nodes_weights(order)
        D = lgl_differentiation_matrix(xi)
        for p in range(order + 1):
            expected = p * xi**(p - 1) if p > 0 else np.zeros_like(xi)
            np.testing.assert_allclose(D @ xi**p, expected, atol=1e-11)

    def test_differentiation_corners(self):
        """Test the corner entries of D."""
        order = 5
        xi, _ = lgl_nodes_weights(order)
        D = lgl_differentiation_matrix(xi)
        assert D[0, 0] == pytest.approx(-order * (order + 1) / 4)
        assert D[-1, -1] == pytest.approx(order * (order + 1) / 4)


class TestColumnMesh:
    """Test column mesh construction."""

    def test_shapes(self, default_mesh):
        """Test array shapes."""
        assert default_mesh.n_elements == 10
        assert default_mesh.n_nodes == 6
        assert default_mesh.z.shape == (10, 6)
        assert default_mesh.mass.shape == (10, 6)
        assert default_mesh.n_points == 60

    def test_node_coordinates(self, default_mesh):
        """Test nodes span the column and elements share faces."""
        z = default_mesh.z
        assert z[0, 0] == pytest.approx(0.0)
        assert z[-1, -1] == pytest.approx(1.0)
        np.testing.assert_allclose(z[:-1, -1], z[1:, 0])
        assert np.all(np.diff(default_mesh.column()) >= 0)

    def test_jacobian(self, default_mesh):
        """Test J = h / 2."""
        np.testing.assert_allclose(default_mesh.jacobian, 0.05)

    def test_faces(self, small_mesh):
        """Test face normals, neighbors and tags."""
        first, second, last = small_mesh.elements[0], small_mesh.elements[1], small_mesh.elements[-1]

        assert first.bottom.is_boundary
        assert first.bottom.tag == BoundaryTag.BOTTOM
        assert first.bottom.normal == -1.0
        assert first.top.neighbor == 1
        assert second.bottom.neighbor == 0
        assert last.top.tag == BoundaryTag.TOP
        assert last.top.normal == 1.0
        assert small_mesh.boundary_tags == (BoundaryTag.BOTTOM, BoundaryTag.TOP)

    def test_elements_immutable(self, small_mesh):
        """Test element records cannot be changed."""
        element = small_mesh.elements[0]
        with pytest.raises(Exception):
            element.index = 5
        with pytest.raises(ValueError):
            element.z[0] = 1.0

    def test_integrate(self, small_mesh):
        """Test quadrature over the column."""
        assert small_mesh.integrate(np.ones_like(small_mesh.z)) == pytest.approx(1.0)
        assert small_mesh.integrate(small_mesh.z) == pytest.approx(0.5)

    def test_min_node_distance(self):
        """Test minimum node distance for linear elements."""
        mesh = ColumnMesh.uniform(0.0, 1.0, 4, 1)
        assert mesh.min_node_distance() == pytest.approx(0.25)

    def test_nonuniform(self):
        """Test stretched element boundaries."""
        mesh = ColumnMesh([0.0, 0.1, 0.3, 1.0], 2)
        np.testing.assert_allclose(mesh.jacobian, [0.05, 0.1, 0.35])

    def test_invalid_order(self):
        """Test non-positive order is rejected."""
        with pytest.raises(ConfigurationError, match="polynomial_order"):
            ColumnMesh([0.0, 1.0], 0)

    def test_invalid_velems(self):
        """Test degenerate or unordered coordinates are rejected."""
        with pytest.raises(ConfigurationError):
            ColumnMesh([0.0], 3)
        with pytest.raises(ConfigurationError, match="increasing"):
            ColumnMesh([0.0, 0.5, 0.5, 1.0], 3)
        with pytest.raises(ConfigurationError):
            ColumnMesh.uniform(0.0, 1.0, 0, 3)

    def test_errors_are_value_errors(self):
        """Test configuration errors subclass ValueError."""
        with pytest.raises(ValueError):
            ColumnMesh([1.0, 0.0], 2)

    def test_repr(self, small_mesh):
        """Test string representation."""
        assert "n_elements=4" in repr(small_mesh)


class TestBoundaryConditions:
    """Test Dirichlet and Neumann variants."""

    def test_dirichlet_primal_state(self):
        """Test exterior state takes the prescribed value."""
        bc = Dirichlet({'rhocT': 300.0})
        ghost = bc.primal_state({'rhocT': jnp.asarray(295.0)}, -1.0, 0.0)
        assert float(ghost['rhocT']) == 300.0

    def test_dirichlet_gradient_flux_passthrough(self):
        """Test Dirichlet leaves the diffusive flux unchanged."""
        bc = Dirichlet({'rhocT': 300.0})
        ghost = bc.gradient_flux({'alpha_grad_rhocT': jnp.asarray(0.7)}, -1.0, 0.0)
        assert float(ghost['alpha_grad_rhocT']) == pytest.approx(0.7)

    def test_neumann_gradient_flux(self):
        """Test exterior diffusive flux is -n * flux."""
        bc = Neumann({'alpha_grad_rhocT': 0.3})
        top = bc.gradient_flux({'alpha_grad_rhocT': jnp.asarray(1.0)}, 1.0, 0.0)
        bottom = bc.gradient_flux({'alpha_grad_rhocT': jnp.asarray(1.0)}, -1.0, 0.0)
        assert float(top['alpha_grad_rhocT']) == pytest.approx(-0.3)
        assert float(bottom['alpha_grad_rhocT']) == pytest.approx(0.3)

    def test_neumann_primal_state_passthrough(self):
        """Test Neumann keeps the interior state."""
        bc = Neumann({'alpha_grad_rhocT': 0.3})
        ghost = bc.primal_state({'rhocT': jnp.asarray(295.0)}, 1.0, 0.0)
        assert float(ghost['rhocT']) == pytest.approx(295.0)

    def test_empty_rejected(self):
        """Test conditions need at least one entry."""
        with pytest.raises(ConfigurationError):
            Dirichlet({})
        with pytest.raises(ConfigurationError):
            Neumann({})

    def test_validate(self):
        """Test conditions naming undeclared variables are rejected."""
        with pytest.raises(ConfigurationError, match="undeclared"):
            Dirichlet({'T': 300.0}).validate(('rhocT',), ('alpha_grad_rhocT',))
        with pytest.raises(ConfigurationError, match="undeclared"):
            Neumann({'rhocT': 0.0}).validate(('rhocT',), ('alpha_grad_rhocT',))

    def test_repr(self):
        """Test string representation."""
        assert repr(Dirichlet({'rhocT': 300.0})) == "Dirichlet({'rhocT': 300.0})"


class TestNumericalFlux:
    """Test central numerical fluxes."""

    def test_interface_average(self):
        """Test interior faces use the average."""
        for flux in (CentralNumericalFluxFirstOrder(), CentralNumericalFluxGradient(),
                     CentralNumericalFluxSecondOrder()):
            assert float(flux.interface(jnp.asarray(1.0), jnp.asarray(3.0))) == 2.0

    def test_boundary_rules(self):
        """Test boundary faces: average for first order, ghost otherwise."""
        inside, outside = jnp.asarray(1.0), jnp.asarray(3.0)
        assert float(CentralNumericalFluxFirstOrder().boundary(inside, outside)) == 2.0
        assert float(CentralNumericalFluxGradient().boundary(inside, outside)) == 3.0
        assert float(CentralNumericalFluxSecondOrder().boundary(inside, outside)) == 3.0

    def test_resolve_face_values(self):
        """Test shared face values across the column."""
        bottom = jnp.asarray([0.0, 1.0, 2.0])
        top = jnp.asarray([1.0, 3.0, 5.0])
        star_bottom, star_top = resolve_face_values(
            CentralNumericalFluxGradient(), bottom, top, 10.0, 20.0
        )
        np.testing.assert_allclose(star_bottom, [10.0, 1.0, 2.5])
        np.testing.assert_allclose(star_top, [1.0, 2.5, 20.0])


class TestHeatModel:
    """Test heat model definition."""

    def test_default_parameters(self):
        """Test default parameter values."""
        model = HeatModel()
        assert model.params.rho_c == 1.0
        assert model.params.alpha == pytest.approx(0.01)
        assert model.params.initial_T == pytest.approx(295.15)
        assert model.params.T_bottom == pytest.approx(300.0)
        assert model.params.flux_top == 0.0

    def test_layouts(self, heat_model):
        """Test variable layouts."""
        assert heat_model.vars_state_conservative() == ('rhocT',)
        assert heat_model.vars_state_auxiliary() == ('z', 'T')
        assert heat_model.vars_state_gradient() == ('rhocT',)
        assert heat_model.vars_state_gradient_flux() == ('alpha_grad_rhocT',)

    def test_default_boundary_conditions(self):
        """Test Dirichlet bottom and Neumann top."""
        model = HeatModel(rho_c=2.0, T_bottom=300.0, flux_top=0.5)
        bcs = model.boundary_conditions()
        assert isinstance(bcs[BoundaryTag.BOTTOM], Dirichlet)
        assert bcs[BoundaryTag.BOTTOM].values == {'rhocT': 600.0}
        assert isinstance(bcs[BoundaryTag.TOP], Neumann)
        assert bcs[BoundaryTag.TOP].fluxes == {'alpha_grad_rhocT': 0.5}

    def test_callbacks(self):
        """Test auxiliary update and fluxes."""
        model = HeatModel(rho_c=2.0, alpha=0.1)
        state = {'rhocT': jnp.asarray([600.0, 610.0])}
        aux = {'z': jnp.asarray([0.0, 1.0]), 'T': jnp.zeros(2)}

        updated = model.update_auxiliary_state(state, aux, 0.0)
        np.testing.assert_allclose(updated['T'], [300.0, 305.0])

        diffusive = model.compute_gradient_flux({'rhocT': jnp.asarray([1.0, 2.0])}, state, aux, 0.0)
        np.testing.assert_allclose(diffusive['alpha_grad_rhocT'], [0.1, 0.2])

        flux = model.flux_second_order(state, diffusive, aux, 0.0)
        np.testing.assert_allclose(flux['rhocT'], [-0.1, -0.2])

        np.testing.assert_allclose(model.flux_first_order(state, aux, 0.0)['rhocT'], 0.0)
        np.testing.assert_allclose(model.source(state, diffusive, aux, 0.0)['rhocT'], 0.0)

    def test_invalid_parameters(self):
        """Test non-positive rho_c or alpha are rejected."""
        with pytest.raises(ConfigurationError, match="alpha"):
            HeatParams(alpha=0.0)
        with pytest.raises(ConfigurationError, match="rho_c"):
            HeatModel(rho_c=-1.0)

    def test_params_immutable(self):
        """Test parameters are frozen."""
        params = HeatParams()
        with pytest.raises(Exception):
            params.alpha = 1.0

    def test_from_params(self, default_params):
        """Test construction from a parameter record."""
        model = HeatModel.from_params(HeatParams(**default_params))
        assert model.params.to_dict() == default_params

    def test_relaxation_solution(self):
        """Test the analytic mode at the boundaries."""
        model = HeatModel(alpha=1.0, T_bottom=300.0)
        T = model.relaxation_solution(np.array([0.0, 1.0]), 0.0, 5.0, 0.0, 1.0)
        np.testing.assert_allclose(T, [300.0, 305.0])

        decayed = model.relaxation_solution(np.array([1.0]), 1.0, 5.0, 0.0, 1.0)
        assert decayed[0] == pytest.approx(300.0 + 5.0 * np.exp(-np.pi**2 / 4))

    def test_describe(self, heat_model):
        """Test description output."""
        description = heat_model.describe()
        assert "Heat Equation" in description
        assert "bottom" in description
        assert "Dirichlet" in description

    def test_repr(self, heat_model):
        """Test string representation."""
        assert "HeatModel" in repr(heat_model)
        assert "alpha=0.01" in repr(heat_model)


class TestGradientResolver:
    """Test gradient resolution through the operator."""

    def test_linear_profile_exact(self, small_mesh):
        """Test the resolved gradient of a linear profile is exact."""
        model = HeatModel(alpha=0.1, T_bottom=290.0, initial_profile=lambda z: 290.0 + 4.0 * z)
        dg = DGOperator(model, small_mesh)
        Q = dg.init_ode_state(0.0)

        diffusive = dg.diagnostics(Q, 0.0)['diffusive']['alpha_grad_rhocT']
        np.testing.assert_allclose(diffusive, 0.4, atol=1e-10)

    def test_quadratic_profile_exact(self):
        """Test exactness for polynomials up to the element order."""
        mesh = ColumnMesh.uniform(0.0, 2.0, 3, 2)
        model = HeatModel(alpha=1.0, T_bottom=300.0, initial_profile=lambda z: 300.0 + z**2)
        dg = DGOperator(model, mesh)
        Q = dg.init_ode_state(0.0)

        diffusive = dg.diagnostics(Q, 0.0)['diffusive']['alpha_grad_rhocT']
        np.testing.assert_allclose(diffusive, 2.0 * mesh.z, atol=1e-10)

    def test_dirichlet_trace(self, small_operator):
        """Test the bottom gradient trace equals the Dirichlet value."""
        Q = small_operator.init_ode_state(0.0)
        star_bottom, _ = small_operator.diagnostics(Q, 0.0)['gradient_traces']['rhocT']
        assert float(star_bottom[0]) == pytest.approx(300.0)

    def test_jump_lifted(self, small_operator):
        """Test the Dirichlet jump produces a gradient at the bottom node only."""
        Q = small_operator.init_ode_state(0.0)
        diffusive = small_operator.diagnostics(Q, 0.0)['diffusive']['alpha_grad_rhocT']

        assert float(diffusive[0, 0]) > 0.0
        np.testing.assert_allclose(diffusive[1:], 0.0, atol=1e-10)
        np.testing.assert_allclose(diffusive[0, 1:], 0.0, atol=1e-10)


class TestDGOperator:
    """Test the DG spatial operator."""

    def test_init_ode_state(self, small_operator, small_mesh):
        """Test initial state layout and values."""
        Q = small_operator.init_ode_state(0.0)
        assert Q.shape == (1, small_mesh.n_elements, small_mesh.n_nodes)
        np.testing.assert_allclose(Q, 295.15)

    def test_tendency_finite(self, small_operator):
        """Test the default heat problem gives a finite tendency."""
        Q = small_operator.init_ode_state(0.0)
        dQ = small_operator.evaluate_rhs(Q, 0.0)
        assert dQ.shape == Q.shape
        assert np.all(np.isfinite(np.asarray(dQ)))

    def test_callable(self, small_operator):
        """Test the operator is callable like the right-hand side."""
        Q = small_operator.init_ode_state(0.0)
        np.testing.assert_allclose(small_operator(Q, 0.0), small_operator.evaluate_rhs(Q, 0.0))

    def test_compiled_matches_eager(self, small_operator):
        """Test the jitted kernel against the uncompiled assembly."""
        Q = small_operator.init_ode_state(0.0)
        eager = small_operator.diagnostics(Q, 0.0)['tendency']
        np.testing.assert_allclose(small_operator.evaluate_rhs(Q, 0.0), eager, rtol=1e-10, atol=1e-9)

    def test_heating_from_below(self, small_operator):
        """Test the Dirichlet jump heats the bottom of the column."""
        Q = small_operator.init_ode_state(0.0)
        dQ = np.asarray(small_operator.evaluate_rhs(Q, 0.0))
        assert dQ[0, 0, 0] > 0.0
        np.testing.assert_allclose(dQ[0, 1:], 0.0, atol=1e-9)

    def test_steady_state(self, small_mesh):
        """Test a uniform column at the Dirichlet temperature with zero flux is steady."""
        model = HeatModel(initial_T=300.0, T_bottom=300.0, flux_top=0.0)
        dg = DGOperator(model, small_mesh)
        Q0 = dg.init_ode_state(0.0)

        np.testing.assert_allclose(dg.evaluate_rhs(Q0, 0.0), 0.0, atol=1e-9)

        dt = fourier_time_step(small_mesh, 0.01)
        lsrk = LSRK54CarpenterKennedy(dg, Q0, dt=dt, timeend=50 * dt)
        Q = lsrk.solve()
        np.testing.assert_allclose(Q, 300.0, atol=1e-9)

    def test_conservation_insulated(self, small_mesh):
        """Test heat content is conserved with zero flux at both ends."""
        model = neumann_zero_model(alpha=0.05, initial_profile=lambda z: 295.0 + 5.0 * jnp.cos(jnp.pi * z))
        dg = DGOperator(model, small_mesh)
        Q0 = dg.init_ode_state(0.0)

        dQ = np.asarray(dg.evaluate_rhs(Q0, 0.0))
        assert abs(np.sum(small_mesh.mass * dQ[0])) < 1e-10
        assert np.max(np.abs(dQ)) > 1e-3

        dt = fourier_time_step(small_mesh, 0.05)
        lsrk = LSRK54CarpenterKennedy(dg, Q0, dt=dt, timeend=100 * dt)
        Q = lsrk.solve()

        heat_0 = small_mesh.integrate(np.asarray(Q0[0]))
        heat_1 = small_mesh.integrate(np.asarray(Q[0]))
        assert heat_1 == pytest.approx(heat_0, rel=1e-12)

    def test_heat_budget_matches_boundary_fluxes(self, small_mesh):
        """Test d/dt of heat content equals minus the outward boundary fluxes."""
        model = HeatModel(alpha=0.05, T_bottom=300.0, flux_top=0.2,
                          initial_profile=lambda z: 296.0 + 3.0 * z**2)
        dg = DGOperator(model, small_mesh)
        Q = dg.init_ode_state(0.0)

        dQ = np.asarray(dg.evaluate_rhs(Q, 0.0))
        fluxes = dg.boundary_normal_fluxes(Q, 0.0)
        outflow = fluxes[BoundaryTag.BOTTOM]['rhocT'] + fluxes[BoundaryTag.TOP]['rhocT']

        assert np.sum(small_mesh.mass * dQ[0]) == pytest.approx(-outflow, abs=1e-10)

    def test_neumann_flux_enforced(self, small_mesh):
        """Test the outward flux on the top face equals flux_top."""
        model = HeatModel(alpha=0.05, flux_top=0.3, initial_profile=lambda z: 296.0 + z)
        dg = DGOperator(model, small_mesh)
        Q = dg.init_ode_state(0.0)

        fluxes = dg.boundary_normal_fluxes(Q, 0.0)
        assert fluxes[BoundaryTag.TOP]['rhocT'] == pytest.approx(0.3)

    def test_dirichlet_approached(self, small_mesh):
        """Test the bottom node relaxes to the Dirichlet temperature."""
        model = HeatModel(alpha=1.0)
        dg = DGOperator(model, small_mesh)
        dt = fourier_time_step(small_mesh, 1.0)
        lsrk = LSRK54CarpenterKennedy(dg, dg.init_ode_state(0.0), dt=dt, timeend=1.0)
        Q = lsrk.solve()

        all_vars = dg.get_all_vars(Q, lsrk.t)
        assert all_vars['T'][0] == pytest.approx(300.0, abs=0.1)
        assert np.all(all_vars['T'] > 295.15)

    def test_get_all_vars(self, small_operator, small_mesh):
        """Test named output in column order with refreshed auxiliary state."""
        Q = small_operator.init_ode_state(0.0) + 10.0
        all_vars = small_operator.get_all_vars(Q, 0.0)

        assert list(all_vars.keys()) == ['rhocT', 'z', 'T']
        assert all(len(v) == small_mesh.n_points for v in all_vars.values())
        np.testing.assert_allclose(all_vars['z'], small_mesh.column())
        np.testing.assert_allclose(all_vars['T'], 305.15)

    def test_get_vars_exclude(self, small_operator):
        """Test excluded names are dropped."""
        Q = small_operator.init_ode_state(0.0)
        assert list(small_operator.get_all_vars(Q, 0.0, exclude=('z',)).keys()) == ['rhocT', 'T']
        assert list(small_operator.get_auxiliary_vars(exclude=('T',)).keys()) == ['z']

    def test_auxiliary_tracks_state(self, small_operator):
        """Test state_auxiliary follows the last evaluated state."""
        Q = small_operator.init_ode_state(0.0) + 1.0
        small_operator.evaluate_rhs(Q, 0.0)
        T = np.asarray(small_operator.state_auxiliary)[1]
        np.testing.assert_allclose(T, 296.15)

    def test_source_only_model(self, small_mesh):
        """Test a model without gradient flux skips gradient resolution."""
        model = ReactionModel(k=2.0)
        dg = DGOperator(model, small_mesh)
        assert dg.gradient_resolver is None

        Q = dg.init_ode_state(0.0)
        np.testing.assert_allclose(dg.evaluate_rhs(Q, 0.0), -2.0 * np.asarray(Q), atol=1e-12)

    def test_missing_boundary_tag(self, small_mesh):
        """Test binding fails when a mesh tag has no condition."""
        model = HeatModel(boundary_conditions={BoundaryTag.BOTTOM: Dirichlet({'rhocT': 300.0})})
        with pytest.raises(ConfigurationError, match="TOP"):
            DGOperator(model, small_mesh)

    def test_unrecognized_boundary_tag(self, small_mesh):
        """Test binding fails on an unknown tag."""
        model = HeatModel(boundary_conditions={
            BoundaryTag.BOTTOM: Dirichlet({'rhocT': 300.0}),
            BoundaryTag.TOP: Neumann({'alpha_grad_rhocT': 0.0}),
            7: Neumann({'alpha_grad_rhocT': 0.0}),
        })
        with pytest.raises(ConfigurationError, match="Unrecognized"):
            DGOperator(model, small_mesh)

    def test_boundary_names_undeclared_variable(self, small_mesh):
        """Test binding fails when a condition names an unknown variable."""
        model = HeatModel(boundary_conditions={
            BoundaryTag.BOTTOM: Dirichlet({'T': 300.0}),
            BoundaryTag.TOP: Neumann({'alpha_grad_rhocT': 0.0}),
        })
        with pytest.raises(ConfigurationError):
            DGOperator(model, small_mesh)

    def test_layout_mismatch(self, small_mesh):
        """Test binding fails when a callback returns undeclared names."""

        class BadFlux(HeatModel):
            def flux_second_order(self, state, diffusive, aux, t):
                return {'energy': -diffusive['alpha_grad_rhocT']}

        with pytest.raises(ConfigurationError, match="flux_second_order"):
            DGOperator(BadFlux(), small_mesh)

    def test_gradient_layout_mismatch(self, small_mesh):
        """Test binding fails when the gradient argument has undeclared names."""

        class ExtraGradient(HeatModel):
            def compute_gradient_argument(self, state, aux, t):
                return {'rhocT': state['rhocT'], 'extra': state['rhocT']}

        with pytest.raises(ConfigurationError, match="compute_gradient_argument"):
            DGOperator(ExtraGradient(), small_mesh)

    def test_duplicate_layout(self, small_mesh):
        """Test duplicate variable names are rejected."""

        class Duplicate(HeatModel):
            def vars_state_auxiliary(self):
                return ('z', 'z')

        with pytest.raises(ConfigurationError, match="duplicate"):
            DGOperator(Duplicate(), small_mesh)

    def test_non_finite_detected(self, small_operator):
        """Test NaN input raises with element location."""
        Q = small_operator.init_ode_state(0.0)
        Q = Q.at[0, 2, 1].set(jnp.nan)

        with pytest.raises(NumericalInstabilityError) as excinfo:
            small_operator.evaluate_rhs(Q, 0.5)

        err = excinfo.value
        assert err.time == pytest.approx(0.5)
        assert err.elements[0] <= 2 <= err.elements[1]
        assert isinstance(err, StratadgError)
        assert isinstance(err, ArithmeticError)

    def test_repr(self, small_operator):
        """Test string representation."""
        assert "HeatModel" in repr(small_operator)


class TestConvergence:
    """Test accuracy against the analytic relaxation mode."""

    def _error(self, n_elements, order):
        mesh, model, Q = run_relaxation(n_elements, order)
        exact = model.relaxation_solution(mesh.z, 0.1, 5.0, 0.0, 1.0)
        return np.sqrt(mesh.integrate((np.asarray(Q[0]) - exact)**2))

    def test_p_refinement(self):
        """Test higher polynomial order reduces the error."""
        err_2 = self._error(4, 2)
        err_4 = self._error(4, 4)
        assert err_4 < err_2 / 4
        assert err_4 < 1e-2

    def test_h_refinement(self):
        """Test more elements reduce the error."""
        err_coarse = self._error(2, 2)
        err_fine = self._error(8, 2)
        assert err_fine < err_coarse / 4


class TestStability:
    """Test the Fourier-number time step bound."""

    def test_fourier_time_step(self, small_mesh):
        """Test dt = F dz^2 / alpha."""
        dt = fourier_time_step(small_mesh, 0.01, 0.08)
        assert dt == pytest.approx(0.08 * small_mesh.min_node_distance()**2 / 0.01)

    def test_stable_below_bound(self, small_mesh):
        """Test integration stays finite at the bound."""
        dg = DGOperator(HeatModel(alpha=1.0), small_mesh)
        dt = 0.9 * fourier_time_step(small_mesh, 1.0)
        lsrk = LSRK54CarpenterKennedy(dg, dg.init_ode_state(0.0), dt=dt, timeend=300 * dt)
        Q = lsrk.solve()
        assert np.all(np.isfinite(np.asarray(Q)))
        assert np.max(np.asarray(Q)) < 301.0

    def test_unstable_at_ten_times_bound(self, small_mesh):
        """Test 10x the bound grows without limit and then fails."""
        dg = DGOperator(HeatModel(alpha=1.0), small_mesh)
        dt = 10.0 * fourier_time_step(small_mesh, 1.0)
        lsrk = LSRK54CarpenterKennedy(dg, dg.init_ode_state(0.0), dt=dt, timeend=3000 * dt)

        for _ in range(100):
            lsrk.dostep()
        assert np.max(np.abs(np.asarray(lsrk.Q) - 300.0)) > 1e6

        with pytest.raises(NumericalInstabilityError):
            lsrk.solve()
        assert lsrk.steps < 3000


class TestIntegrator:
    """Test the LSRK54 Carpenter-Kennedy integrator."""

    def test_coefficients(self):
        """Test stage coefficient tables."""
        assert len(RKA) == len(RKB) == len(RKC) == 5
        assert RKA[0] == 0.0
        assert RKC[0] == 0.0
        assert RKC[1] == pytest.approx(RKB[0])

    def test_exponential_decay(self):
        """Test accuracy on dQ/dt = -Q."""
        lsrk = LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(3), dt=0.1, timeend=1.0)
        Q = lsrk.solve()
        np.testing.assert_allclose(Q, np.exp(-1.0), atol=1e-5)
        assert lsrk.steps == 10

    def test_fourth_order(self):
        """Test error drops by ~16 when dt is halved."""
        errors = []
        for dt in (0.2, 0.1):
            lsrk = LSRK54CarpenterKennedy(lambda Q, t: -2.0 * Q, jnp.ones(1), dt=dt, timeend=2.0)
            errors.append(abs(float(lsrk.solve()[0]) - np.exp(-4.0)))
        assert errors[0] / errors[1] > 8.0

    def test_time_dependent_rhs(self):
        """Test stage times through dQ/dt = cos(t)."""
        lsrk = LSRK54CarpenterKennedy(lambda Q, t: jnp.cos(t) * jnp.ones_like(Q),
                                      jnp.zeros(1), dt=0.05, timeend=2.0)
        Q = lsrk.solve()
        assert float(Q[0]) == pytest.approx(np.sin(2.0), abs=1e-7)

    def test_final_step_lands_on_timeend(self):
        """Test the last step is shortened."""
        lsrk = LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=0.3, timeend=1.0)
        lsrk.solve()
        assert lsrk.t == 1.0
        assert lsrk.steps == 4
        assert lsrk.status is IntegratorStatus.FINISHED

    def test_status_transitions(self):
        """Test INITIALIZED -> STEPPING -> FINISHED."""
        lsrk = LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=0.5, timeend=1.0)
        assert lsrk.status is IntegratorStatus.INITIALIZED
        lsrk.dostep()
        assert lsrk.status is IntegratorStatus.STEPPING
        lsrk.dostep()
        assert lsrk.status is IntegratorStatus.FINISHED

    def test_step_after_finish(self):
        """Test stepping a finished integrator raises StateError."""
        lsrk = LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=0.5, timeend=0.5)
        lsrk.dostep()
        with pytest.raises(StateError):
            lsrk.dostep()

    def test_failed_stage_keeps_state(self, small_operator):
        """Test a failure in a later stage leaves the step retryable."""
        calls = [0]

        def rhs(Q, t):
            calls[0] += 1
            if calls[0] == 3:
                Q = Q.at[0, 1, 1].set(jnp.nan)
            return small_operator(Q, t)

        Q0 = small_operator.init_ode_state(0.0)
        lsrk = LSRK54CarpenterKennedy(rhs, Q0, dt=1e-3, timeend=1.0)

        with pytest.raises(NumericalInstabilityError):
            lsrk.dostep()

        np.testing.assert_array_equal(np.asarray(lsrk.Q), np.asarray(Q0))
        np.testing.assert_array_equal(np.asarray(lsrk.dQ), 0.0)
        assert lsrk.t == 0.0
        assert lsrk.steps == 0

        lsrk.dt = 5e-4
        assert lsrk.dostep() == pytest.approx(5e-4)
        assert np.all(np.isfinite(np.asarray(lsrk.Q)))

    def test_progress_bar_closed_on_failure(self, monkeypatch):
        """Test the verbose progress bar is closed when a step raises."""
        closed = []

        class Bar:
            def __init__(self, *args, **kwargs):
                pass

            def update(self, n):
                pass

            def close(self):
                closed.append(True)

        monkeypatch.setattr("stratadg.core.integrator.tqdm", Bar)

        def rhs(Q, t):
            raise NumericalInstabilityError(t)

        lsrk = LSRK54CarpenterKennedy(rhs, jnp.ones(1), dt=0.1, timeend=1.0)
        with pytest.raises(NumericalInstabilityError):
            lsrk.solve(verbose=True)
        assert closed == [True]

    def test_invalid_dt(self):
        """Test non-positive dt is rejected."""
        with pytest.raises(StateError, match="dt"):
            LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=0.0, timeend=1.0)
        with pytest.raises(StateError):
            LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=-0.1, timeend=1.0)

    def test_start_after_end(self):
        """Test t0 after timeend is rejected."""
        with pytest.raises(StateError, match="after"):
            LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=0.1, t0=2.0, timeend=1.0)

    def test_state_error_is_runtime_error(self):
        """Test StateError subclasses RuntimeError."""
        assert issubclass(StateError, RuntimeError)

    def test_run_result(self):
        """Test run() returns snapshots and counters."""
        lsrk = LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(2), dt=0.25, timeend=1.0)
        result = lsrk.run(save_dt=0.5, verbose=False)

        assert result['total_steps'] == 4
        np.testing.assert_allclose(result['times'], [0.0, 0.5, 1.0])
        assert result['n_snapshots'] == 3
        assert result['callback_failures'] == 0
        assert result['snapshots'][-1][1].shape == (2,)

    def test_repr(self):
        """Test string representation."""
        lsrk = LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=0.1, timeend=1.0)
        assert "initialized" in repr(lsrk)


class TestCallbacks:
    """Test periodic callbacks."""

    def _integrator(self):
        return LSRK54CarpenterKennedy(lambda Q, t: -Q, jnp.ones(1), dt=0.25, timeend=1.0)

    def test_cadence(self):
        """Test firing at t0 and every interval."""
        fired = []
        lsrk = self._integrator()
        lsrk.solve(callbacks=[EveryXSimulationTime(0.5, lambda i: fired.append(i.t))])
        assert fired == [0.0, 0.5, 1.0]

    def test_no_initial_firing(self):
        """Test init=False skips the start time."""
        fired = []
        lsrk = self._integrator()
        lsrk.solve(callbacks=[EveryXSimulationTime(0.5, lambda i: fired.append(i.t), init=False)])
        assert fired == [0.5, 1.0]

    def test_plain_function_every_step(self):
        """Test a plain function runs after every step."""
        fired = []
        lsrk = self._integrator()
        lsrk.solve(callbacks=[lambda i: fired.append(i.steps)])
        assert fired == [1, 2, 3, 4]

    def test_callback_sees_current_state(self):
        """Test the callback receives the current solution."""
        seen = []
        lsrk = self._integrator()
        lsrk.solve(callbacks=[EveryXSimulationTime(1.0, lambda i: seen.append(float(i.Q[0])))])
        assert seen[0] == 1.0
        assert seen[-1] == pytest.approx(np.exp(-1.0), abs=1e-4)

    def test_failure_does_not_abort(self, caplog):
        """Test a raising callback is logged and counted."""

        def broken(integrator):
            raise RuntimeError("disk full")

        lsrk = self._integrator()
        with caplog.at_level(logging.ERROR, logger="stratadg"):
            lsrk.solve(callbacks=[EveryXSimulationTime(0.5, broken)])

        assert lsrk.status is IntegratorStatus.FINISHED
        assert lsrk.t == 1.0
        assert lsrk.callback_failures == 3
        assert "disk full" in caplog.text

    def test_invalid_interval(self):
        """Test non-positive interval is rejected."""
        with pytest.raises(ValueError):
            EveryXSimulationTime(0.0, print)
