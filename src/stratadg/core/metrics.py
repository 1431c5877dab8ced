"""
Metrics for DG Heat Column Analysis.

Provides metrics for checking a column simulation:
    - Conservation metrics (heat content, temperature range)
    - Stability metrics (Fourier number, finiteness)
    - Boundary metrics (enforced values and fluxes)
    - Accuracy metrics (L2 / max error against a reference)

All integrals use the LGL quadrature of the mesh (mass weights w_j J_k).

References:
    Hesthaven, J. S., & Warburton, T. (2008). Nodal Discontinuous
        Galerkin Methods. Springer.
"""

import numpy as np
from typing import Dict, Any, Optional

from .mesh import ColumnMesh


def fourier_time_step(mesh: ColumnMesh, alpha: float, fourier: float = 0.08) -> float:
    """
    Explicit diffusion time step Δt = F Δz² / α.

    Args:
        mesh: ColumnMesh (Δz is its minimum node distance)
        alpha: Thermal diffusivity
        fourier: Fourier number F

    Returns:
        Time step
    """
    if alpha <= 0:
        raise ValueError(f"alpha must be > 0, got {alpha}")
    return fourier * mesh.min_node_distance()**2 / alpha


# ============================================================================
# CONSERVATION METRICS
# ============================================================================

def compute_conservation_metrics(
    rhocT: np.ndarray,
    mesh: ColumnMesh,
    rho_c: float
) -> Dict[str, float]:
    """
    Compute heat content and temperature statistics.

    Args:
        rhocT: Conservative variable ρcT [K, N+1] (or flattened)
        mesh: ColumnMesh
        rho_c: Volumetric heat capacity

    Returns:
        Dictionary with conservation metrics
    """
    rhocT = np.asarray(rhocT).reshape(mesh.z.shape)
    T = rhocT / rho_c
    length = float(mesh.velems[-1] - mesh.velems[0])

    heat_content = mesh.integrate(rhocT)
    mean_T = mesh.integrate(T) / length

    return {
        'heat_content': float(heat_content),
        'mean_T': float(mean_T),
        'min_T': float(np.min(T)),
        'max_T': float(np.max(T)),
        'range_T': float(np.max(T) - np.min(T)),
    }


# ============================================================================
# STABILITY METRICS
# ============================================================================

def compute_stability_metrics(
    rhocT: np.ndarray,
    mesh: ColumnMesh,
    alpha: float,
    dt: float
) -> Dict[str, float]:
    """
    Compute stability metrics.

    Args:
        rhocT: Conservative variable [K, N+1]
        mesh: ColumnMesh
        alpha: Thermal diffusivity
        dt: Time step

    Returns:
        Dictionary with stability metrics
    """
    dz = mesh.min_node_distance()
    fourier = alpha * dt / dz**2

    return {
        'dt': float(dt),
        'min_node_distance': float(dz),
        'fourier_number': float(fourier),
        'max_abs_rhocT': float(np.max(np.abs(rhocT))),
        'is_finite': float(np.all(np.isfinite(rhocT))),
        'is_stable': float(np.all(np.isfinite(rhocT)) and fourier <= 0.1),
    }


# ============================================================================
# BOUNDARY METRICS
# ============================================================================

def compute_boundary_metrics(
    T: np.ndarray,
    mesh: ColumnMesh,
    T_bottom: float,
    flux_top: float,
    top_flux: Optional[float] = None
) -> Dict[str, float]:
    """
    Compare boundary nodes with the imposed conditions.

    Args:
        T: Temperature [K, N+1]
        mesh: ColumnMesh
        T_bottom: Imposed bottom temperature
        flux_top: Imposed outward top flux
        top_flux: Numerical outward flux on the top face, if available

    Returns:
        Dictionary with boundary metrics
    """
    T = np.asarray(T).reshape(mesh.z.shape)

    results = {
        'T_bottom_node': float(T[0, 0]),
        'T_top_node': float(T[-1, -1]),
        'bottom_T_error': float(abs(T[0, 0] - T_bottom)),
        'flux_top_imposed': float(flux_top),
    }
    if top_flux is not None:
        results['flux_top_numerical'] = float(top_flux)
        results['top_flux_error'] = float(abs(top_flux - flux_top))

    return results


# ============================================================================
# ACCURACY METRICS
# ============================================================================

def compute_l2_error(
    field: np.ndarray,
    reference: np.ndarray,
    mesh: ColumnMesh
) -> Dict[str, float]:
    """
    Quadrature L2 and max-norm errors against a reference field.

    Args:
        field: Numerical field [K, N+1]
        reference: Reference values on the same nodes
        mesh: ColumnMesh

    Returns:
        Dictionary with 'l2_error', 'max_error', 'relative_l2_error'
    """
    field = np.asarray(field).reshape(mesh.z.shape)
    reference = np.asarray(reference).reshape(mesh.z.shape)
    diff = field - reference

    l2 = np.sqrt(mesh.integrate(diff**2))
    norm = np.sqrt(mesh.integrate(reference**2))

    return {
        'l2_error': float(l2),
        'max_error': float(np.max(np.abs(diff))),
        'relative_l2_error': float(l2 / (norm + 1e-300)),
    }


# ============================================================================
# MASTER METRICS FUNCTION
# ============================================================================

def compute_all_metrics(
    rhocT: np.ndarray,
    mesh: ColumnMesh,
    params: Dict[str, float],
    dt: float,
    conservation_initial: Optional[Dict[str, float]] = None,
    top_flux: Optional[float] = None,
    reference_T: Optional[np.ndarray] = None,
    verbose: bool = False
) -> Dict[str, Any]:
    """
    Compute all metrics for a given state.

    Args:
        rhocT: Conservative variable [K, N+1]
        mesh: ColumnMesh
        params: Heat parameters (rho_c, alpha, T_bottom, flux_top)
        dt: Time step
        conservation_initial: Conservation metrics of the initial state
        top_flux: Numerical outward top flux
        reference_T: Reference temperature for error metrics
        verbose: Print progress

    Returns:
        Dictionary of metrics, each under its plain and prefixed name
    """
    rhocT = np.asarray(rhocT).reshape(mesh.z.shape)
    T = rhocT / params['rho_c']

    if verbose:
        print("      Computing conservation metrics...")
    conservation = compute_conservation_metrics(rhocT, mesh, params['rho_c'])

    if conservation_initial is not None:
        heat_0 = conservation_initial['heat_content']
        conservation['heat_content_change'] = conservation['heat_content'] - heat_0
        conservation['relative_heat_change'] = (
            conservation['heat_content_change'] / (abs(heat_0) + 1e-300)
        )

    if verbose:
        print("      Computing stability metrics...")
    stability = compute_stability_metrics(rhocT, mesh, params['alpha'], dt)

    if verbose:
        print("      Computing boundary metrics...")
    boundary = compute_boundary_metrics(
        T, mesh, params['T_bottom'], params['flux_top'], top_flux
    )

    groups = [('cons', conservation), ('stab', stability), ('bnd', boundary)]

    if reference_T is not None:
        if verbose:
            print("      Computing accuracy metrics...")
        groups.append(('acc', compute_l2_error(T, reference_T, mesh)))

    results = {}
    for prefix, group in groups:
        for key, value in group.items():
            results[f'{prefix}_{key}'] = value
            results[key] = value

    return results
