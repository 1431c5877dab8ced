"""
Visualization module for DG column simulations.

Provides the Animator class for creating:
    - Vertical profile snapshots of one output step
    - Profile evolution across all output steps
    - Diagnostic time series (heat content, boundary values)
    - GIF animations of profile evolution

Uses dark theme with publication-quality output.
"""

import numpy as np
import matplotlib.pyplot as plt
import matplotlib.animation as animation
from typing import Dict, List, Optional, Any, Mapping, Sequence


# Set dark style globally
plt.style.use('dark_background')


# Axis labels of the known variables
LABELS = {
    'rhocT': r'$\rho c T$',
    'T': r'$T$ [K]',
    'alpha_grad_rhocT': r'$\alpha\,\partial_z(\rho c T)$',
}


class Animator:
    """
    Plotting and animation of column profiles.

    Profiles are drawn with the variable on the x-axis and z on the
    y-axis, bottom of the column at the bottom of the figure.

    Attributes:
        fps: Frames per second for animations
        dpi: Resolution for saved figures
    """

    def __init__(self, fps: int = 10, dpi: int = 150):
        """
        Initialize the Animator.

        Args:
            fps: Frames per second for GIF animations
            dpi: Dots per inch for saved figures
        """
        self.fps = fps
        self.dpi = dpi

        self.colors = {
            'profile': '#00D4AA',      # Cyan-green
            'reference': '#FF6B9D',    # Pink
            'heat': '#FFD93D',         # Yellow
            'bottom': '#00D4AA',       # Cyan
            'top': '#FF6B9D',          # Pink
            'grid': '#2a2a3e',         # Dark grid
            'text': '#ffffff',         # White text
        }
        self.cmap = plt.get_cmap('plasma')

        self.fig_facecolor = '#1a1a2e'
        self.ax_facecolor = '#16213e'

    def _style(self, ax, xlabel: str, ylabel: str, title: Optional[str] = None):
        ax.set_facecolor(self.ax_facecolor)
        ax.set_xlabel(xlabel, color=self.colors['text'])
        ax.set_ylabel(ylabel, color=self.colors['text'])
        if title:
            ax.set_title(title, color=self.colors['text'])
        ax.grid(True, alpha=0.3, color=self.colors['grid'])
        ax.tick_params(colors=self.colors['text'])

    def _save(self, fig, filename: str):
        plt.tight_layout()
        plt.savefig(filename, dpi=self.dpi, facecolor=self.fig_facecolor,
                    bbox_inches='tight', pad_inches=0.1)
        plt.close(fig)

    def export_plot_snapshot(
        self,
        z: np.ndarray,
        fields: Mapping[str, np.ndarray],
        variables: Sequence[str],
        filename: str,
        title: str = "Column Profile",
        time: Optional[float] = None,
        reference: Optional[np.ndarray] = None
    ) -> None:
        """
        Plot the profiles of one output step, one panel per variable.

        Args:
            z: Node coordinates
            fields: name -> node values (e.g. one collected step)
            variables: Names to plot
            filename: Output file path
            title: Plot title
            time: Simulation time shown in the title
            reference: Optional reference profile for the first variable
        """
        n = len(variables)
        fig, axes = plt.subplots(1, n, figsize=(5 * n, 6), facecolor=self.fig_facecolor,
                                 squeeze=False)
        heading = title if time is None else f"{title}\nt = {time:.2f}"
        fig.suptitle(heading, fontsize=14, color=self.colors['text'])

        for i, (ax, name) in enumerate(zip(axes[0], variables)):
            ax.plot(fields[name], z, color=self.colors['profile'], linewidth=2,
                    marker='o', markersize=3, label='DG')
            if reference is not None and i == 0:
                ax.plot(reference, z, color=self.colors['reference'], linewidth=1.5,
                        linestyle='--', label='Analytic')
                ax.legend(facecolor=self.ax_facecolor, edgecolor='gray')
            self._style(ax, LABELS.get(name, name), 'z', name)

        self._save(fig, filename)

    def export_plot(
        self,
        z: np.ndarray,
        data: Mapping[int, Mapping[str, Any]],
        variable: str,
        filename: str,
        title: str = "Profile Evolution"
    ) -> None:
        """
        Overlay the profile of one variable at every output step.

        Args:
            z: Node coordinates
            data: Collected steps {step: {"time": t, name: values}}
            variable: Name to plot
            filename: Output file path
            title: Plot title
        """
        fig, ax = plt.subplots(figsize=(7, 6), facecolor=self.fig_facecolor)
        fig.suptitle(title, fontsize=14, color=self.colors['text'])

        steps = sorted(data)
        for i, step in enumerate(steps):
            color = self.cmap(i / max(len(steps) - 1, 1))
            ax.plot(data[step][variable], z, color=color, linewidth=2,
                    label=f"t = {data[step]['time']:.2f}")

        self._style(ax, LABELS.get(variable, variable), 'z')
        ax.legend(facecolor=self.ax_facecolor, edgecolor='gray')

        self._save(fig, filename)

    def create_metrics_plot(
        self,
        times: np.ndarray,
        metrics_history: List[Dict[str, float]],
        filename: str,
        title: str = "Diagnostics"
    ) -> None:
        """
        Create diagnostic time series plot.

        Panels (1x3):
            - Heat content
            - Mean / min / max temperature
            - Bottom and top node temperatures

        Args:
            times: Array of time points
            metrics_history: List of metric dicts (compute_all_metrics)
            filename: Output file path
            title: Plot title
        """
        fig, axes = plt.subplots(1, 3, figsize=(15, 4.5), facecolor=self.fig_facecolor)
        fig.suptitle(title, fontsize=14, color=self.colors['text'])

        times = np.array(times)

        def extract(key, default=np.nan):
            return np.array([h.get(key, default) for h in metrics_history])

        ax = axes[0]
        ax.plot(times, extract('heat_content'), color=self.colors['heat'], linewidth=2)
        self._style(ax, 'Time', r'$\int \rho c T\, dz$', 'Heat Content')

        ax = axes[1]
        ax.plot(times, extract('mean_T'), color=self.colors['profile'], linewidth=2, label='Mean')
        ax.fill_between(times, extract('min_T'), extract('max_T'),
                        color=self.colors['profile'], alpha=0.25, label='Range')
        self._style(ax, 'Time', 'T [K]', 'Temperature')
        ax.legend(facecolor=self.ax_facecolor, edgecolor='gray')

        ax = axes[2]
        ax.plot(times, extract('T_bottom_node'), color=self.colors['bottom'], linewidth=2, label='Bottom')
        ax.plot(times, extract('T_top_node'), color=self.colors['top'], linewidth=2, label='Top')
        self._style(ax, 'Time', 'T [K]', 'Boundary Nodes')
        ax.legend(facecolor=self.ax_facecolor, edgecolor='gray')

        self._save(fig, filename)

    def create_animation(
        self,
        z: np.ndarray,
        data: Mapping[int, Mapping[str, Any]],
        variable: str,
        filename: str,
        title: str = "Column Evolution",
        verbose: bool = False
    ) -> None:
        """
        Create GIF animation of a profile over the output steps.

        Args:
            z: Node coordinates
            data: Collected steps {step: {"time": t, name: values}}
            variable: Name to animate
            filename: Output GIF file path
            title: Animation title
            verbose: Print progress
        """
        steps = sorted(data)
        if not steps:
            if verbose:
                print("No output steps available for animation")
            return

        all_values = [np.asarray(data[s][variable]) for s in steps]
        vmin = min(np.min(v) for v in all_values)
        vmax = max(np.max(v) for v in all_values)
        pad = 0.05 * (vmax - vmin) if vmax > vmin else 1.0

        fig, ax = plt.subplots(figsize=(6, 7), facecolor=self.fig_facecolor)
        line, = ax.plot(all_values[0], z, color=self.colors['profile'], linewidth=2)
        ax.set_xlim(vmin - pad, vmax + pad)
        ax.set_ylim(np.min(z), np.max(z))
        self._style(ax, LABELS.get(variable, variable), 'z')

        time_text = ax.set_title(f"{title}\nt = {data[steps[0]]['time']:.2f}",
                                 color=self.colors['text'])

        def update(frame):
            line.set_xdata(all_values[frame])
            time_text.set_text(f"{title}\nt = {data[steps[frame]]['time']:.2f}")
            return [line, time_text]

        if verbose:
            print(f"Creating animation with {len(steps)} frames...")

        anim = animation.FuncAnimation(
            fig, update, frames=len(steps),
            interval=1000 // self.fps, blit=False
        )

        anim.save(filename, writer='pillow', fps=self.fps,
                  savefig_kwargs={'facecolor': self.fig_facecolor})
        plt.close(fig)

        if verbose:
            print(f"Animation saved to {filename}")
