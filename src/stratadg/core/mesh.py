"""
Single-stack column mesh for nodal discontinuous Galerkin discretizations.

The column [z_0, z_K] is split into K ordered elements. Each element carries
N+1 Legendre-Gauss-Lobatto (LGL) collocation nodes mapped affinely from the
reference interval [-1, 1]:

    z(ξ) = z_k + (ξ + 1) h_k / 2,    J_k = h_k / 2

LGL nodes are -1, +1 and the roots of P'_N; the quadrature weights are

    w_j = 2 / (N (N+1) P_N(ξ_j)²)

and the nodal differentiation matrix D_ij = ℓ'_j(ξ_i) has the closed form

    D_ij = P_N(ξ_i) / (P_N(ξ_j) (ξ_i - ξ_j))    (i ≠ j)
    D_00 = -N(N+1)/4,  D_NN = N(N+1)/4,  0 otherwise

References:
    Kopriva, D. A. (2009). Implementing Spectral Methods for Partial
        Differential Equations. Springer.
    Hesthaven, J. S., & Warburton, T. (2008). Nodal Discontinuous
        Galerkin Methods. Springer.
"""

import numpy as np
from numpy.polynomial import legendre
from typing import Tuple, Optional, Sequence
from dataclasses import dataclass

from .boundary import BoundaryTag
from .errors import ConfigurationError


def lgl_nodes_weights(order: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Legendre-Gauss-Lobatto nodes and weights on [-1, 1].

    Args:
        order: Polynomial order N (N+1 nodes)

    Returns:
        Tuple of (nodes, weights), nodes in ascending order
    """
    P_N = legendre.Legendre.basis(order)
    interior = np.sort(P_N.deriv().roots().real) if order > 1 else np.array([])
    xi = np.concatenate([[-1.0], interior, [1.0]])

    weights = 2.0 / (order * (order + 1) * P_N(xi)**2)

    return xi, weights


def lgl_differentiation_matrix(xi: np.ndarray) -> np.ndarray:
    """
    Nodal differentiation matrix on LGL nodes.

    Args:
        xi: LGL nodes of order N = len(xi) - 1

    Returns:
        D with (D @ f)_i = f'(ξ_i) for polynomials f of degree <= N
    """
    order = len(xi) - 1
    P = legendre.Legendre.basis(order)(xi)

    diff = xi[:, None] - xi[None, :]
    np.fill_diagonal(diff, 1.0)
    D = (P[:, None] / P[None, :]) / diff
    np.fill_diagonal(D, 0.0)

    D[0, 0] = -order * (order + 1) / 4.0
    D[order, order] = order * (order + 1) / 4.0

    return D


@dataclass(frozen=True)
class Face:
    """Element face: outward normal plus neighbor element or boundary tag."""
    normal: float
    neighbor: Optional[int] = None
    tag: Optional[BoundaryTag] = None

    @property
    def is_boundary(self) -> bool:
        return self.tag is not None


@dataclass(frozen=True)
class Element:
    """
    One column element.

    Attributes:
        index: Position in the column (0 = bottom)
        order: Polynomial order N
        z: Node coordinates [N+1]
        jacobian: dz/dξ = h/2
        bottom: Bottom face (normal -1)
        top: Top face (normal +1)
    """
    index: int
    order: int
    z: np.ndarray
    jacobian: float
    bottom: Face
    top: Face

    @property
    def faces(self) -> Tuple[Face, Face]:
        return (self.bottom, self.top)


class ColumnMesh:
    """
    Ordered 1D column of DG elements with a fixed polynomial order.

    Attributes:
        velems: Element boundary coordinates [K+1]
        polynomial_order: N
        n_elements: K
        n_nodes: Nodes per element (N+1)
        xi, weights: LGL reference nodes and weights [N+1]
        D: Reference differentiation matrix [N+1, N+1]
        z: Node coordinates [K, N+1]
        jacobian: Per-element Jacobian [K]
        mass: Diagonal mass weights w_j J_k [K, N+1]
        elements: Tuple of Element records

    Example:
        >>> mesh = ColumnMesh(np.linspace(0.0, 1.0, 11), polynomial_order=5)
        >>> mesh.z.shape
        (10, 6)
    """

    def __init__(self, velems: Sequence[float], polynomial_order: int):
        """
        Build the column.

        Args:
            velems: Strictly increasing element boundary coordinates
            polynomial_order: Polynomial order N >= 1

        Raises:
            ConfigurationError: On non-positive order, fewer than one
                element or non-increasing coordinates
        """
        velems = np.asarray(velems, dtype=np.float64)

        if int(polynomial_order) != polynomial_order or polynomial_order <= 0:
            raise ConfigurationError(
                f"polynomial_order must be a positive integer, got {polynomial_order}"
            )
        if velems.ndim != 1 or len(velems) < 2:
            raise ConfigurationError("velems must hold at least two coordinates (one element)")
        if not np.all(np.isfinite(velems)) or np.any(np.diff(velems) <= 0):
            raise ConfigurationError("velems must be finite and strictly increasing")

        self.velems = velems
        self.polynomial_order = int(polynomial_order)
        self.n_elements = len(velems) - 1
        self.n_nodes = self.polynomial_order + 1

        self.xi, self.weights = lgl_nodes_weights(self.polynomial_order)
        self.D = lgl_differentiation_matrix(self.xi)

        h = np.diff(velems)
        self.jacobian = h / 2.0
        self.z = velems[:-1, None] + (self.xi[None, :] + 1.0) * self.jacobian[:, None]
        self.mass = self.weights[None, :] * self.jacobian[:, None]

        self.elements = tuple(self._build_elements())

    @classmethod
    def uniform(
        cls,
        z_min: float,
        z_max: float,
        n_elements: int,
        polynomial_order: int
    ) -> "ColumnMesh":
        """Column of n_elements equal elements on [z_min, z_max]."""
        if int(n_elements) != n_elements or n_elements <= 0:
            raise ConfigurationError(
                f"n_elements must be a positive integer, got {n_elements}"
            )
        return cls(np.linspace(z_min, z_max, int(n_elements) + 1), polynomial_order)

    def _build_elements(self):
        K = self.n_elements
        for k in range(K):
            if k == 0:
                bottom = Face(normal=-1.0, tag=BoundaryTag.BOTTOM)
            else:
                bottom = Face(normal=-1.0, neighbor=k - 1)

            if k == K - 1:
                top = Face(normal=1.0, tag=BoundaryTag.TOP)
            else:
                top = Face(normal=1.0, neighbor=k + 1)

            z = self.z[k].copy()
            z.setflags(write=False)
            yield Element(
                index=k,
                order=self.polynomial_order,
                z=z,
                jacobian=float(self.jacobian[k]),
                bottom=bottom,
                top=top,
            )

    @property
    def boundary_tags(self) -> Tuple[BoundaryTag, ...]:
        """Tags of all boundary faces, bottom first."""
        tags = []
        for element in self.elements:
            for face in element.faces:
                if face.is_boundary:
                    tags.append(face.tag)
        return tuple(tags)

    @property
    def n_points(self) -> int:
        """Total number of DG nodes."""
        return self.n_elements * self.n_nodes

    def column(self) -> np.ndarray:
        """Node coordinates flattened bottom to top [K*(N+1)]."""
        return self.z.reshape(-1).copy()

    def min_node_distance(self) -> float:
        """Smallest distance between neighboring nodes of one element."""
        return float(np.min(np.diff(self.z, axis=1)))

    def integrate(self, field: np.ndarray) -> float:
        """LGL quadrature of a nodal field [K, N+1] over the column."""
        return float(np.sum(self.mass * np.asarray(field)))

    def __repr__(self) -> str:
        return (
            f"ColumnMesh(n_elements={self.n_elements}, "
            f"polynomial_order={self.polynomial_order}, "
            f"extent=[{self.velems[0]:.4g}, {self.velems[-1]:.4g}])"
        )
