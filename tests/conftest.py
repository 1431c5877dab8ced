"""Pytest configuration and fixtures for stratadg tests."""

import pytest
import numpy as np


@pytest.fixture
def default_params():
    """Default heat model parameters."""
    return {
        'rho_c': 1.0,
        'alpha': 0.01,
        'initial_T': 295.15,
        'T_bottom': 300.0,
        'flux_top': 0.0,
    }


@pytest.fixture
def small_mesh():
    """Four elements of order 3 on [0, 1]."""
    from stratadg import ColumnMesh

    return ColumnMesh.uniform(0.0, 1.0, n_elements=4, polynomial_order=3)


@pytest.fixture
def default_mesh():
    """Ten elements of order 5 on [0, 1]."""
    from stratadg import ColumnMesh

    return ColumnMesh(np.linspace(0.0, 1.0, 11), polynomial_order=5)


@pytest.fixture
def heat_model(default_params):
    """Heat model with the default parameters."""
    from stratadg import HeatModel

    return HeatModel(**default_params)


@pytest.fixture
def small_operator(heat_model, small_mesh):
    """DG operator of the default heat model on the small mesh."""
    from stratadg import DGOperator

    return DGOperator(heat_model, small_mesh)
