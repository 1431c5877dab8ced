#!/usr/bin/env python
"""
Example: Basic usage of the stratadg library.

This script heats a uniform column from below (Dirichlet bottom,
insulated top) and writes profiles every 8 time units.

Run with:
    python examples/basic_usage.py
"""

import numpy as np
from pathlib import Path

from stratadg import ColumnMesh, HeatModel, DGOperator
from stratadg import LSRK54CarpenterKennedy, EveryXSimulationTime
from stratadg import fourier_time_step, compute_all_metrics, compute_conservation_metrics
from stratadg.io.data_handler import DataHandler, NetCDFWriter
from stratadg.visualization.animator import Animator


def main():
    print("=" * 60)
    print("stratadg: DG Heat Column")
    print("=" * 60)

    output_dir = Path("example_outputs")
    output_dir.mkdir(exist_ok=True)

    # 1. Mesh: 10 elements of order 5 on [0, 1]
    print("\n[1] Creating column mesh...")
    mesh = ColumnMesh(np.linspace(0.0, 1.0, 11), polynomial_order=5)
    print(f"    {mesh}")

    # 2. Heat model and DG operator
    print("\n[2] Binding heat model...")
    model = HeatModel(rho_c=1.0, alpha=0.01, initial_T=295.15, T_bottom=300.0, flux_top=0.0)
    dg = DGOperator(model, mesh)
    print(model.describe())

    # 3. Time step and initial state
    dt = fourier_time_step(mesh, alpha=0.01, fourier=0.08)
    Q = dg.init_ode_state(0.0)
    print(f"\n[3] dt = {dt:.4e}")

    # 4. Output every 8 time units
    nc_file = output_dir / "heat_column.nc"
    writer = NetCDFWriter(nc_file, mesh.column(), metadata=model.params.to_dict())
    step = [0]

    def do_output(integrator):
        writer.write(step[0], dg.get_all_vars(integrator.Q, integrator.t), integrator.t)
        step[0] += 1

    print("\n[4] Running simulation...")
    lsrk = LSRK54CarpenterKennedy(dg, Q, dt=dt, t0=0.0, timeend=40.0)
    Q = lsrk.solve(callbacks=[EveryXSimulationTime(8.0, do_output)], verbose=True)
    print(f"    Completed {lsrk.steps} steps, {len(writer.steps)} output steps")

    # 5. Metrics
    print("\n[5] Computing metrics...")
    metrics = compute_all_metrics(
        Q[0], mesh, model.params.to_dict(), dt,
        conservation_initial=compute_conservation_metrics(
            dg.init_ode_state(0.0)[0], mesh, model.params.rho_c
        ),
    )
    print(f"    Bottom node T: {metrics['T_bottom_node']:.4f} K")
    print(f"    Top node T:    {metrics['T_top_node']:.4f} K")
    print(f"    Heat gained:   {metrics['heat_content_change']:.4e}")

    # 6. Plots
    print("\n[6] Creating visualizations...")
    data = DataHandler.collect_data(nc_file)
    z = DataHandler.load_coordinates(nc_file)

    png_file = output_dir / "heat_column_evolution.png"
    Animator(dpi=150).export_plot(z, data, 'T', str(png_file), "Heating From Below")
    print(f"    Saved: {png_file}")

    print("\n" + "=" * 60)
    print("Done! Check 'example_outputs' directory for results.")
    print("=" * 60)


if __name__ == "__main__":
    main()
