"""
Explicit low-storage Runge-Kutta time integration.

Implements the 5-stage, 4th-order 2N-storage scheme of Carpenter & Kennedy:
only the solution Q and one increment dQ are kept, whatever the number of
stages. For stage i:

    dQ = A_i dQ + Δt L(Q, t + C_i Δt)
    Q  = Q + B_i dQ

Stability (not enforced): for diffusion the step must satisfy

    Δt <= F Δz² / α

with Δz the minimum node distance and a Fourier number F <= ~0.1
(F = 0.08 is a safe choice). See metrics.fourier_time_step.

References:
    Carpenter, M. H., & Kennedy, C. A. (1994). Fourth-order 2N-storage
        Runge-Kutta schemes. NASA TM-109112.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Any, Iterable, List, Optional, Tuple

import jax.numpy as jnp
import numpy as np
from jax import jit
from tqdm import tqdm

from .errors import StateError


logger = logging.getLogger(__name__)


# ============================================================================
# Carpenter-Kennedy LSRK(5,4) coefficients
# ============================================================================

RKA = (
    0.0,
    -567301805773.0 / 1357537059087.0,
    -2404267990393.0 / 2016746695238.0,
    -3550918686646.0 / 2091501179385.0,
    -1275806237668.0 / 842570457699.0,
)

RKB = (
    1432997174477.0 / 9575080441755.0,
    5161836677717.0 / 13612068292357.0,
    1720146321549.0 / 2090206949498.0,
    3134564353537.0 / 4481467310338.0,
    2277821191437.0 / 14882151754819.0,
)

RKC = (
    0.0,
    1432997174477.0 / 9575080441755.0,
    2526269341429.0 / 6820363962896.0,
    2006345519317.0 / 3224310063776.0,
    2802321613138.0 / 2924317926251.0,
)

# Relative tolerance for landing on timeend and callback intervals
TIME_TOL = 1.0e-10


@jit
def _lsrk_stage(Q: jnp.ndarray, dQ: jnp.ndarray, rhs: jnp.ndarray,
                a: float, b: float, dt: float) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """One low-storage stage update."""
    dQ = a * dQ + dt * rhs
    return Q + b * dQ, dQ


class IntegratorStatus(Enum):
    """Lifecycle of an integrator; FINISHED once timeend is reached."""
    INITIALIZED = "initialized"
    STEPPING = "stepping"
    FINISHED = "finished"


# ============================================================================
# Callbacks
# ============================================================================

class EveryXSimulationTime:
    """
    Fire a function every `interval` units of simulated time.

    The function receives the integrator, so it can read integrator.Q and
    integrator.t. With init=True it also fires once before the first step.

    Example:
        >>> step = [0]
        >>> def write(integrator):
        ...     writer.write(step[0], dg.get_all_vars(integrator.Q, integrator.t), integrator.t)
        ...     step[0] += 1
        >>> callback = EveryXSimulationTime(8.0, write)
    """

    def __init__(self, interval: float, func: Callable[[Any], Any], init: bool = True):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")
        self.interval = float(interval)
        self.func = func
        self.init = init
        self.last_time: Optional[float] = None

    def initialize(self, integrator):
        self.last_time = integrator.t
        if self.init:
            self.func(integrator)

    def __call__(self, integrator):
        if self.last_time is None:
            self.last_time = integrator.t0
        elapsed = integrator.t - self.last_time
        if elapsed >= self.interval * (1.0 - TIME_TOL):
            self.last_time = integrator.t
            self.func(integrator)

    def __repr__(self) -> str:
        return f"EveryXSimulationTime(interval={self.interval})"


# ============================================================================
# Integrator
# ============================================================================

class LSRK54CarpenterKennedy:
    """
    Five-stage, fourth-order low-storage Runge-Kutta integrator.

    States: INITIALIZED -> STEPPING -> FINISHED. The integrator finishes
    when the simulation time reaches timeend; the final step is shortened
    to land on it exactly.

    Example:
        >>> dg = DGOperator(HeatModel(), mesh)
        >>> Q = dg.init_ode_state(0.0)
        >>> dt = fourier_time_step(mesh, alpha=0.01, fourier=0.08)
        >>> lsrk = LSRK54CarpenterKennedy(dg, Q, dt=dt, t0=0.0, timeend=40.0)
        >>> Q = lsrk.solve()

    Attributes:
        rhs: Callable L(Q, t), typically a DGOperator
        Q: Current solution
        dQ: Stage increment buffer
        dt: Nominal time step
        t0, t: Start and current time
        timeend: Target end time
        steps: Completed steps
        status: IntegratorStatus
        callback_failures: Number of callback invocations that raised
    """

    def __init__(
        self,
        rhs: Callable[[jnp.ndarray, float], jnp.ndarray],
        Q: jnp.ndarray,
        dt: float,
        t0: float = 0.0,
        timeend: float = np.inf
    ):
        """
        Initialize the integrator.

        Args:
            rhs: Right-hand side L(Q, t)
            Q: Initial conservative state
            dt: Time step (> 0)
            t0: Start time
            timeend: Target end time (>= t0)

        Raises:
            StateError: If dt <= 0 or t0 > timeend
        """
        if not np.isfinite(dt) or dt <= 0:
            raise StateError(f"dt must be finite and > 0, got {dt}")
        if t0 > timeend:
            raise StateError(f"t0={t0} is after timeend={timeend}")

        self.rhs = rhs
        self.Q = jnp.asarray(Q)
        self.dQ = jnp.zeros_like(self.Q)
        self.dt = float(dt)
        self.t0 = float(t0)
        self.t = float(t0)
        self.timeend = float(timeend)
        self.steps = 0
        self.callback_failures = 0

        if self._remaining() <= 0.0:
            self.status = IntegratorStatus.FINISHED
        else:
            self.status = IntegratorStatus.INITIALIZED

    @property
    def n_stages(self) -> int:
        return len(RKA)

    def gettime(self) -> float:
        return self.t

    def _remaining(self) -> float:
        remaining = self.timeend - self.t
        if remaining <= TIME_TOL * max(1.0, abs(self.timeend)):
            return 0.0
        return remaining

    def dostep(self) -> float:
        """
        Advance one time step.

        Returns:
            New simulation time

        Raises:
            StateError: If the integrator has finished
            NumericalInstabilityError: From the right-hand side
        """
        if self.status is IntegratorStatus.FINISHED:
            raise StateError(
                f"Integrator finished at t={self.t}; no further steps allowed"
            )
        self.status = IntegratorStatus.STEPPING

        # Stages run on locals; a failing RHS leaves Q, dQ and t untouched
        dt = min(self.dt, self._remaining())
        Q, dQ = self.Q, self.dQ
        for a, b, c in zip(RKA, RKB, RKC):
            rhs = self.rhs(Q, self.t + c * dt)
            Q, dQ = _lsrk_stage(Q, dQ, rhs, a, b, dt)

        self.Q, self.dQ = Q, dQ
        self.t += dt
        self.steps += 1

        if self._remaining() == 0.0:
            self.t = self.timeend
            self.status = IntegratorStatus.FINISHED

        return self.t

    def _invoke(self, func: Callable, *args):
        """Run a callback; failures are logged and counted, never raised."""
        try:
            func(*args)
        except Exception:
            self.callback_failures += 1
            logger.exception(
                "Callback %r failed at t=%.6e (step %d); continuing",
                func, self.t, self.steps
            )

    def solve(self, callbacks: Iterable[Callable] = (), verbose: bool = False) -> jnp.ndarray:
        """
        Integrate to timeend.

        Args:
            callbacks: Callables taking the integrator, run after every
                step (EveryXSimulationTime filters by simulated time);
                an `initialize` method, if present, runs before stepping
            verbose: Show a tqdm progress bar

        Returns:
            Final state Q
        """
        callbacks = list(callbacks)
        for callback in callbacks:
            initialize = getattr(callback, 'initialize', None)
            if initialize is not None:
                self._invoke(initialize, self)

        if verbose:
            pbar = tqdm(total=self.timeend - self.t, desc="      Simulating", unit="t")

        try:
            while self.status is not IntegratorStatus.FINISHED:
                t_prev = self.t
                self.dostep()
                for callback in callbacks:
                    self._invoke(callback, self)
                if verbose:
                    pbar.update(self.t - t_prev)
        finally:
            if verbose:
                pbar.close()

        return self.Q

    def run(
        self,
        save_dt: Optional[float] = None,
        callbacks: Iterable[Callable] = (),
        verbose: bool = True
    ) -> Dict[str, Any]:
        """
        Integrate to timeend and keep snapshots.

        Args:
            save_dt: Simulated time between snapshots (None: start and end only)
            callbacks: Extra callbacks passed to solve
            verbose: Show progress

        Returns:
            Dictionary with 'snapshots' [(t, Q)], 'times', 't_end',
            'n_snapshots', 'total_steps', 'callback_failures'
        """
        snapshots: List[Tuple[float, np.ndarray]] = []

        def keep(integrator):
            snapshots.append((integrator.t, np.array(integrator.Q)))

        extra = []
        if save_dt is not None:
            extra.append(EveryXSimulationTime(save_dt, keep))
        else:
            keep(self)

        self.solve(callbacks=extra + list(callbacks), verbose=verbose)

        if not snapshots or snapshots[-1][0] < self.t:
            keep(self)

        return {
            'snapshots': snapshots,
            'times': np.array([s[0] for s in snapshots]),
            't_end': self.timeend,
            'n_snapshots': len(snapshots),
            'total_steps': self.steps,
            'callback_failures': self.callback_failures,
        }

    def __repr__(self) -> str:
        return (
            f"LSRK54CarpenterKennedy(dt={self.dt:.4e}, t={self.t:.4e}, "
            f"timeend={self.timeend}, status='{self.status.value}')"
        )
