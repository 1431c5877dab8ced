"""Typed failures raised by the DG column solver."""

from typing import Optional, Tuple


class StratadgError(Exception):
    """Base class for all solver errors."""


class ConfigurationError(StratadgError, ValueError):
    """Invalid mesh, model or configuration, detected at bind time."""


class StateError(StratadgError, RuntimeError):
    """Integrator used in a state that does not allow the operation."""


class NumericalInstabilityError(StratadgError, ArithmeticError):
    """
    Non-finite values produced during a right-hand-side evaluation.
    
    Attributes:
        time: Simulation time of the failing evaluation
        elements: (first, last) element index holding non-finite values
        nodes: (first, last) node index within those elements
    """
    
    def __init__(
        self,
        time: float,
        elements: Optional[Tuple[int, int]] = None,
        nodes: Optional[Tuple[int, int]] = None
    ):
        self.time = time
        self.elements = elements
        self.nodes = nodes
        
        msg = f"Non-finite tendency at t={time:.6e}"
        if elements is not None:
            msg += f" in elements {elements[0]}..{elements[1]}"
        if nodes is not None:
            msg += f", nodes {nodes[0]}..{nodes[1]}"
        msg += "; reduce dt (Fourier number) and retry"
        super().__init__(msg)
