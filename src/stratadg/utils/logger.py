"""Simulation logger for DG column runs."""

import logging
from pathlib import Path
from datetime import datetime
from typing import Dict, Any, List


class SimulationLogger:
    """Logger for column simulations with per-run log file."""

    def __init__(
        self,
        scenario_name: str,
        log_dir: str = "logs",
        verbose: bool = True,
        capture: str = "stratadg"
    ):
        """
        Initialize simulation logger.

        Args:
            scenario_name: Scenario name (for log filename)
            log_dir: Directory for log files
            verbose: Print warnings and errors to console
            capture: Library logger whose records also go to the log file
                (None to disable)
        """
        self.scenario_name = scenario_name
        self.log_dir = Path(log_dir)
        self.verbose = verbose

        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / f"{scenario_name}.log"

        self.handler = self._setup_handler()
        self.logger = self._setup_logger()

        self.captured = logging.getLogger(capture) if capture else None
        if self.captured is not None:
            self.captured.setLevel(logging.DEBUG)
            self.captured.addHandler(self.handler)

        self.warnings: List[str] = []
        self.errors: List[str] = []

    def _setup_handler(self) -> logging.Handler:
        handler = logging.FileHandler(self.log_file, mode='w')
        handler.setLevel(logging.DEBUG)

        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        return handler

    def _setup_logger(self) -> logging.Logger:
        """Configure Python logging."""
        logger = logging.getLogger(f"stratadg_run_{self.scenario_name}")
        logger.setLevel(logging.DEBUG)
        logger.handlers = []
        logger.propagate = False

        logger.addHandler(self.handler)
        return logger

    def info(self, msg: str):
        """Log informational message."""
        self.logger.info(msg)

    def warning(self, msg: str):
        """Log warning message."""
        self.logger.warning(msg)
        self.warnings.append(msg)

        if self.verbose:
            print(f"  WARNING: {msg}")

    def error(self, msg: str):
        """Log error message."""
        self.logger.error(msg)
        self.errors.append(msg)

        if self.verbose:
            print(f"  ERROR: {msg}")

    def log_parameters(self, config: Dict[str, Any]):
        """Log all simulation parameters."""
        self.info("=" * 70)
        self.info("DG COLUMN SIMULATION - STRATADG")
        self.info(f"Scenario: {config.get('scenario_name', 'Unknown')}")
        self.info("=" * 70)
        self.info("")

        self.info("MESH PARAMETERS:")
        self.info(f"  z = [{config.get('z_min', 0.0)}, {config.get('z_max', 1.0)}]")
        self.info(f"  n_elements = {config.get('n_elements', 10)}")
        self.info(f"  polynomial_order = {config.get('polynomial_order', 5)}")

        self.info("")
        self.info("PHYSICAL PARAMETERS:")
        self.info(f"  rho_c = {config.get('rho_c', 1.0):.4g}")
        self.info(f"  alpha = {config.get('alpha', 0.01):.4g}")
        self.info(f"  initial_T = {config.get('initial_T', 295.15):.2f} K")
        self.info(f"  T_bottom = {config.get('T_bottom', 300.0):.2f} K")
        self.info(f"  flux_top = {config.get('flux_top', 0.0):.4g}")
        self.info(f"  init_type = {config.get('init_type', 'uniform')}")

        self.info("")
        self.info("SIMULATION PARAMETERS:")
        self.info(f"  t_end = {config.get('t_end', 40.0)}")
        self.info(f"  n_outputs = {config.get('n_outputs', 5)}")
        self.info(f"  Fourier number = {config.get('fourier', 0.08)}")

        self.info("=" * 70)
        self.info("")

    def log_conservation(self, metrics: Dict[str, float], t: float):
        """Log conservation metrics at a time."""
        self.info(f"Conservation at t={t:.4f}:")
        self.info(f"  Heat content: {metrics.get('heat_content', 0):.8e}")
        self.info(f"  Mean T: {metrics.get('mean_T', 0):.6f}")
        self.info(f"  T range: [{metrics.get('min_T', 0):.6f}, {metrics.get('max_T', 0):.6f}]")

    def log_stability(self, metrics: Dict[str, float], t: float):
        """Log stability metrics."""
        self.info(f"Stability at t={t:.4f}:")
        self.info(f"  dt: {metrics.get('dt', 0):.6e}")
        self.info(f"  Fourier number: {metrics.get('fourier_number', 0):.4f}")
        self.info(f"  Is stable: {bool(metrics.get('is_stable', False))}")

    def log_timing(self, timing: Dict[str, float]):
        """Log timing breakdown."""
        self.info("=" * 70)
        self.info("TIMING BREAKDOWN:")
        self.info("=" * 70)

        for key, value in sorted(timing.items()):
            if key != 'total':
                self.info(f"  {key}: {value:.3f} s")

        self.info(f"  {'-' * 40}")
        total_time = timing.get('total', sum(timing.values()))
        self.info(f"  TOTAL: {total_time:.3f} s")

        self.info("=" * 70)
        self.info("")

    def log_final_metrics(self, metrics: Dict[str, Any]):
        """Log final simulation metrics."""
        self.info("=" * 70)
        self.info("FINAL METRICS:")
        self.info("=" * 70)

        sections = [
            ('cons_', "CONSERVATION", "{:.8e}"),
            ('stab_', "STABILITY", "{:.6g}"),
            ('bnd_', "BOUNDARY", "{:.6g}"),
            ('acc_', "ACCURACY", "{:.6e}"),
        ]
        for prefix, title, fmt in sections:
            keys = sorted(k for k in metrics if k.startswith(prefix))
            if not keys:
                continue
            self.info(f"\n{title}:")
            for key in keys:
                value = metrics[key]
                if isinstance(value, (int, float)):
                    self.info(f"  {key[len(prefix):]}: " + fmt.format(value))

        self.info("=" * 70)

    def finalize(self):
        """Write final summary and release the log file."""
        self.info("=" * 70)
        self.info("SIMULATION SUMMARY:")
        self.info("=" * 70)
        self.info("")

        if self.errors:
            self.info(f"ERRORS: {len(self.errors)}")
            for i, err in enumerate(self.errors, 1):
                self.info(f"  {i}. {err}")
        else:
            self.info("ERRORS: None")

        self.info("")

        if self.warnings:
            self.info(f"WARNINGS: {len(self.warnings)}")
            for i, warn in enumerate(self.warnings, 1):
                self.info(f"  {i}. {warn}")
        else:
            self.info("WARNINGS: None")

        self.info("")
        self.info(f"Log file: {self.log_file}")
        self.info("=" * 70)
        self.info(f"Simulation completed: {self.scenario_name}")
        self.info(f"Timestamp: {datetime.now().isoformat()}")
        self.info("=" * 70)

        self.close()

    def close(self):
        """Detach and close the file handler."""
        self.logger.removeHandler(self.handler)
        if self.captured is not None:
            self.captured.removeHandler(self.handler)
        self.handler.close()
