#!/usr/bin/env python3
"""
Command-line interface for the stratadg column solver.

Usage:
    stratadg case1              # Dirichlet bottom heating of a uniform column
    stratadg case2              # Neumann heat flux through the top
    stratadg case3              # Sine-mode relaxation vs analytic solution
    stratadg -a                 # Run all cases sequentially
    stratadg --all              # Run all cases sequentially
    stratadg -c config.txt      # Run from config file
    stratadg --config my.txt    # Run from config file
    stratadg --help             # Show help
"""

import argparse
import logging
import os
import sys
import time
from typing import Dict, Any, Optional, List

import numpy as np
import jax.numpy as jnp
from tqdm import tqdm

from stratadg.core.boundary import BoundaryTag
from stratadg.core.dg_operator import DGOperator
from stratadg.core.heat_model import HeatModel
from stratadg.core.integrator import LSRK54CarpenterKennedy, EveryXSimulationTime
from stratadg.core.mesh import ColumnMesh
from stratadg.core.metrics import (
    fourier_time_step,
    compute_conservation_metrics,
    compute_all_metrics,
)
from stratadg.io.config_manager import ConfigManager
from stratadg.io.data_handler import DataHandler, NetCDFWriter
from stratadg.utils.logger import SimulationLogger
from stratadg.visualization.animator import Animator


# =============================================================================
# Scenario Configurations
# =============================================================================

def _scenario(**overrides) -> Dict[str, Any]:
    config = ConfigManager.get_default_config()
    config.update(overrides)
    return config


SCENARIOS = {
    'case1': _scenario(
        scenario_name='Case 1 - Dirichlet Bottom Heating',
        slug='dirichlet_heating',
    ),
    'case2': _scenario(
        scenario_name='Case 2 - Neumann Top Heat Flux',
        slug='neumann_flux',
        T_bottom=295.15,
        flux_top=-0.05,
    ),
    'case3': _scenario(
        scenario_name='Case 3 - Sine Mode Relaxation',
        slug='sine_relaxation',
        init_type='sine',
        amplitude=5.0,
        t_end=50.0,
    ),
}


# =============================================================================
# Logging Setup
# =============================================================================

def setup_logging(verbose: bool = False) -> logging.Logger:
    """Console output for library warnings (all records with -v)."""
    logger = logging.getLogger('stratadg')

    for handler in list(logger.handlers):
        if getattr(handler, '_stratadg_console', False):
            logger.removeHandler(handler)

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.WARNING)
    ch.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    ch._stratadg_console = True
    logger.addHandler(ch)

    return logger


# =============================================================================
# Model Construction
# =============================================================================

def build_model(config: Dict[str, Any]) -> HeatModel:
    """Heat model with the initial profile requested by init_type."""
    initial_profile = None

    if config.get('init_type', 'uniform') == 'sine':
        z_min = config.get('z_min', 0.0)
        k = np.pi / (2.0 * (config.get('z_max', 1.0) - z_min))
        T_bottom = config['T_bottom']
        amplitude = config.get('amplitude', 5.0)

        def initial_profile(z):
            return T_bottom + amplitude * jnp.sin(k * (z - z_min))

    return HeatModel(
        rho_c=config['rho_c'],
        alpha=config['alpha'],
        initial_T=config['initial_T'],
        T_bottom=config['T_bottom'],
        flux_top=config['flux_top'],
        initial_profile=initial_profile,
    )


def reference_profile(model: HeatModel, mesh: ColumnMesh, config: Dict[str, Any], t: float):
    """Analytic temperature for the sine scenario, None otherwise."""
    if config.get('init_type', 'uniform') != 'sine':
        return None
    return model.relaxation_solution(
        mesh.z, t, config.get('amplitude', 5.0),
        config.get('z_min', 0.0), config.get('z_max', 1.0)
    )


# =============================================================================
# Main Simulation Runner
# =============================================================================

def run_simulation(
    scenario_key: str,
    output_dir: str = 'outputs',
    verbose: bool = False,
    log_dir: str = 'logs'
) -> Dict[str, Any]:
    """
    Run a complete column simulation for a given scenario.

    Args:
        scenario_key: Key from SCENARIOS dict (e.g., 'case1')
        output_dir: Directory for output files
        verbose: Enable verbose output
        log_dir: Directory for the log file

    Returns:
        Dictionary with simulation results and timing information
    """
    if scenario_key not in SCENARIOS:
        raise ValueError(f"Unknown scenario: {scenario_key}. "
                         f"Available: {list(SCENARIOS.keys())}")

    config = SCENARIOS[scenario_key]
    ConfigManager.validate_config(config)
    scenario_name = f"{scenario_key}_{config.get('slug', config.get('init_type', 'custom'))}"

    os.makedirs(output_dir, exist_ok=True)

    slog = SimulationLogger(scenario_name, log_dir=log_dir, verbose=verbose)
    try:
        return _run(config, scenario_name, output_dir, slog)
    except Exception as e:
        slog.error(f"{type(e).__name__}: {e}")
        raise
    finally:
        slog.finalize()


def _run(
    config: Dict[str, Any],
    scenario_name: str,
    output_dir: str,
    slog: SimulationLogger
) -> Dict[str, Any]:
    timing = {}
    slog.log_parameters(config)

    # Mesh, model and operator
    t_start = time.perf_counter()

    mesh = ColumnMesh.uniform(
        config['z_min'], config['z_max'],
        config['n_elements'], config['polynomial_order']
    )
    model = build_model(config)
    dg = DGOperator(model, mesh)
    params = model.params.to_dict()

    dt = fourier_time_step(mesh, config['alpha'], config['fourier'])
    Q = dg.init_ode_state(0.0)
    z = mesh.column()

    timing['operator_init'] = time.perf_counter() - t_start

    slog.info(f"Mesh: {mesh}")
    slog.info(f"Model: {model}")
    slog.info(f"dt = {dt:.6e} (Fourier number {config['fourier']})")
    slog.info("")

    initial_conservation = compute_conservation_metrics(Q[0], mesh, params['rho_c'])

    # Output callback
    nc_file = f"{output_dir}/{scenario_name}.nc"
    writer = None
    if config.get('save_netcdf', True):
        writer = NetCDFWriter(nc_file, z, metadata={
            'scenario_name': config['scenario_name'],
            'n_elements': mesh.n_elements,
            'polynomial_order': mesh.polynomial_order,
            'dt': dt,
            **params,
        })

    data: Dict[int, Dict[str, Any]] = {}
    metrics_history: List[Dict[str, Any]] = []
    times: List[float] = []
    step = [0]

    def do_output(integrator):
        index = step[0]
        step[0] += 1
        t = integrator.t
        all_vars = dg.get_all_vars(integrator.Q, t)
        if writer is not None:
            writer.write(index, all_vars, t)
        data[index] = {'time': t, **all_vars}

        if config.get('compute_metrics', True):
            top_flux = dg.boundary_normal_fluxes(integrator.Q, t)[BoundaryTag.TOP]['rhocT']
            metrics = compute_all_metrics(
                integrator.Q[0], mesh, params, dt,
                conservation_initial=initial_conservation,
                top_flux=top_flux,
                reference_T=reference_profile(model, mesh, config, t),
            )
            metrics_history.append(metrics)
            times.append(t)
            slog.log_conservation(metrics, t)

    interval = config['t_end'] / config['n_outputs']
    callback = EveryXSimulationTime(interval, do_output)

    # Integrate
    t_start = time.perf_counter()

    print(f"\n{'='*60}")
    print(f"  Running: {config['scenario_name']}")
    print(f"  Mesh: {mesh.n_elements} elements, N = {mesh.polynomial_order}, "
          f"t_end: {config['t_end']}")
    print(f"{'='*60}\n")

    lsrk = LSRK54CarpenterKennedy(dg, Q, dt=dt, t0=0.0, timeend=config['t_end'])
    Q = lsrk.solve(callbacks=[callback], verbose=True)

    timing['simulation'] = time.perf_counter() - t_start
    print()

    if lsrk.callback_failures:
        slog.warning(f"{lsrk.callback_failures} output callback(s) failed; see log")

    # Output at the final time if the cadence missed it
    if not data or data[max(data)]['time'] < lsrk.t:
        do_output(lsrk)

    slog.info(f"Completed {lsrk.steps} steps to t = {lsrk.t:.4f}")

    # Final metrics
    t_start = time.perf_counter()
    top_flux = dg.boundary_normal_fluxes(Q, lsrk.t)[BoundaryTag.TOP]['rhocT']
    final_metrics = compute_all_metrics(
        Q[0], mesh, params, dt,
        conservation_initial=initial_conservation,
        top_flux=top_flux,
        reference_T=reference_profile(model, mesh, config, lsrk.t),
    )
    slog.log_stability(final_metrics, lsrk.t)
    slog.log_final_metrics(final_metrics)
    timing['metrics'] = time.perf_counter() - t_start

    if writer is not None:
        data = DataHandler.collect_data(nc_file)

    # Post-processing with progress bar
    post_steps = [
        ('Creating profile plots', 'png'),
        ('Creating metrics plot', 'metrics_png'),
        ('Creating animation', 'gif'),
        ('Saving CSV', 'csv'),
    ]

    animator = Animator(fps=config.get('animation_fps', 10), dpi=config.get('png_dpi', 150))
    last = data[max(data)]
    outputs = []

    pbar = tqdm(post_steps, desc="Post-processing", unit="step", leave=True)

    for step_name, step_key in pbar:
        pbar.set_description(f"  {step_name}")

        if step_key == 'png' and config.get('save_png', True):
            t_start = time.perf_counter()
            snapshot_png = f"{output_dir}/{scenario_name}_snapshot.png"
            reference = reference_profile(model, mesh, config, last['time'])
            animator.export_plot_snapshot(
                z, last, ('T', 'rhocT'), snapshot_png,
                config['scenario_name'], time=last['time'],
                reference=None if reference is None else reference.reshape(-1),
            )
            evolution_png = f"{output_dir}/{scenario_name}_evolution.png"
            animator.export_plot(z, data, 'T', evolution_png,
                                 f"{config['scenario_name']} - Evolution")
            outputs += [snapshot_png, evolution_png]
            timing['png_save'] = time.perf_counter() - t_start

        elif step_key == 'metrics_png' and config.get('save_png', True) and metrics_history:
            t_start = time.perf_counter()
            metrics_png = f"{output_dir}/{scenario_name}_metrics.png"
            animator.create_metrics_plot(
                np.array(times), metrics_history, metrics_png,
                f"{config['scenario_name']} - Diagnostics"
            )
            outputs.append(metrics_png)
            timing['visualization'] = time.perf_counter() - t_start

        elif step_key == 'gif' and config.get('save_gif', False):
            t_start = time.perf_counter()
            gif_file = f"{output_dir}/{scenario_name}.gif"
            animator.dpi = config.get('animation_dpi', 100)
            animator.create_animation(z, data, 'T', gif_file, config['scenario_name'])
            outputs.append(gif_file)
            timing['gif_save'] = time.perf_counter() - t_start

        elif step_key == 'csv' and config.get('save_csv', True):
            t_start = time.perf_counter()
            metrics_csv = f"{output_dir}/{scenario_name}_metrics.csv"
            DataHandler.save_metrics_csv(metrics_csv, metrics_history, np.array(times))
            final_csv = f"{output_dir}/{scenario_name}_final_metrics.csv"
            DataHandler.save_final_metrics_csv(final_csv, final_metrics)
            profiles_csv = f"{output_dir}/{scenario_name}_profiles.csv"
            DataHandler.save_profiles_csv(profiles_csv, data, z)
            outputs += [metrics_csv, final_csv, profiles_csv]
            timing['csv_save'] = time.perf_counter() - t_start

    print()

    timing['total'] = sum(timing.values())
    slog.log_timing(timing)

    if writer is not None:
        outputs.insert(0, nc_file)

    # Console summary
    print(f"\n{'='*60}")
    print(f"  SIMULATION COMPLETE")
    print(f"{'='*60}")
    print(f"  Total time: {timing['total']:.1f}s")
    print(f"  Steps: {lsrk.steps}, dt = {dt:.3e}")
    print(f"  Heat content change: {final_metrics.get('heat_content_change', 0):.6e}")
    print(f"  T range: [{final_metrics['min_T']:.4f}, {final_metrics['max_T']:.4f}] K")
    if 'l2_error' in final_metrics:
        print(f"  L2 error vs analytic: {final_metrics['l2_error']:.3e}")
    print(f"{'='*60}")
    print(f"  Output files:")
    for path in outputs:
        print(f"    • {path}")
    print(f"    • {slog.log_file}")
    print(f"{'='*60}\n")

    return {
        'config': config,
        'mesh': mesh,
        'model': model,
        'operator': dg,
        'Q': Q,
        't': lsrk.t,
        'dt': dt,
        'total_steps': lsrk.steps,
        'data': data,
        'times': np.array(times),
        'metrics_history': metrics_history,
        'final_metrics': final_metrics,
        'timing': timing,
        'outputs': outputs,
    }


# =============================================================================
# CLI Entry Point
# =============================================================================

def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from a text file, filling gaps with defaults.

    Args:
        config_path: Path to config file

    Returns:
        Configuration dictionary compatible with run_simulation
    """
    config = ConfigManager.get_default_config()
    config.update(ConfigManager.load(config_path))
    ConfigManager.validate_config(config)
    return config


def run_simulation_from_config(
    config: Dict[str, Any],
    output_dir: str = 'outputs',
    verbose: bool = False,
    log_dir: str = 'logs'
) -> Dict[str, Any]:
    """
    Run simulation from a configuration dictionary.

    Args:
        config: Configuration dictionary
        output_dir: Output directory
        verbose: Enable verbose output
        log_dir: Directory for the log file

    Returns:
        Simulation results
    """
    init_type = config.get('init_type', 'custom')
    scenario_key = "custom"

    SCENARIOS[scenario_key] = dict(config, slug=init_type)

    try:
        return run_simulation(
            scenario_key,
            output_dir=output_dir,
            verbose=verbose,
            log_dir=log_dir
        )
    finally:
        SCENARIOS.pop(scenario_key, None)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description='stratadg: DG Balance-Law Column Solver',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  stratadg case1              Run Dirichlet bottom heating
  stratadg case2              Run Neumann top heat flux
  stratadg case3              Run sine mode relaxation
  stratadg -a                 Run all test cases sequentially
  stratadg --all              Run all test cases sequentially
  stratadg -c config.txt      Run from config file
  stratadg case1 -v           Run with verbose output

Available scenarios:
  case1  Dirichlet Bottom Heating (uniform column warmed from below)
  case2  Neumann Top Heat Flux (heat entering through the top)
  case3  Sine Mode Relaxation (compared with the analytic solution)
        """
    )

    parser.add_argument(
        'scenario',
        nargs='?',
        choices=list(SCENARIOS.keys()),
        default=None,
        help='Scenario to run (optional if using -a or -c)'
    )

    parser.add_argument(
        '-a', '--all',
        action='store_true',
        help='Run all test cases sequentially'
    )

    parser.add_argument(
        '-c', '--config',
        type=str,
        default=None,
        help='Path to configuration file (.txt)'
    )

    parser.add_argument(
        '-o', '--output',
        default='outputs',
        help='Output directory (default: outputs)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )

    args = parser.parse_args(argv)

    if not args.all and not args.config and not args.scenario:
        parser.error("Please specify a scenario, use -a/--all, or provide -c/--config")

    setup_logging(args.verbose)

    try:
        if args.all:
            print(f"\n{'='*60}")
            print(f"  STRATADG: Running All Test Cases")
            print(f"{'='*60}\n")

            results = {}
            failed = []
            scenarios = list(SCENARIOS.keys())

            for i, scenario in enumerate(scenarios, 1):
                print(f"\n[{i}/{len(scenarios)}] Running {scenario}...")
                try:
                    results[scenario] = run_simulation(
                        scenario,
                        output_dir=args.output,
                        verbose=args.verbose
                    )
                except Exception as e:
                    print(f"  ERROR: {e}")
                    failed.append((scenario, str(e)))

            print(f"\n{'='*60}")
            print(f"  ALL SIMULATIONS COMPLETE")
            print(f"{'='*60}")
            print(f"  Successful: {len(results)}/{len(scenarios)}")
            if failed:
                print(f"  Failed: {len(failed)}")
                for scenario, error in failed:
                    print(f"    • {scenario}: {error}")
            print(f"{'='*60}\n")

            return 0 if not failed else 1

        elif args.config:
            if not os.path.exists(args.config):
                print(f"Error: Config file not found: {args.config}", file=sys.stderr)
                return 1

            print(f"\n  Loading config: {args.config}")
            config = load_config_file(args.config)

            run_simulation_from_config(
                config,
                output_dir=args.output,
                verbose=args.verbose
            )
            return 0

        else:
            run_simulation(
                args.scenario,
                output_dir=args.output,
                verbose=args.verbose
            )
            return 0

    except KeyboardInterrupt:
        print("\n\nSimulation interrupted by user.")
        return 1
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
