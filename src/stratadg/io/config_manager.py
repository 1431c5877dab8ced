"""Configuration file parser for DG column simulations."""

from pathlib import Path
from typing import Dict, Any

from ..core.errors import ConfigurationError


class ConfigManager:
    """Parse and manage configuration files for column simulations."""

    @staticmethod
    def load(config_path: str) -> Dict[str, Any]:
        """
        Load configuration from file.

        File format:
            # Comments
            key = value

        Args:
            config_path: Path to configuration file

        Returns:
            Dictionary of configuration parameters
        """
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config not found: {config_path}")

        config = {}

        with open(path, 'r') as f:
            for line in f:
                line = line.strip()

                if not line or line.startswith('#'):
                    continue

                if '=' not in line:
                    continue

                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip()

                # Inline comments
                if '#' in value:
                    value = value.split('#')[0].strip()

                config[key] = ConfigManager._parse_value(value)

        return config

    @staticmethod
    def _parse_value(value: str) -> Any:
        """Parse string to appropriate Python type."""
        if value.lower() in ['true', 'false']:
            return value.lower() == 'true'

        try:
            if '.' in value or 'e' in value.lower():
                return float(value)
            else:
                return int(value)
        except ValueError:
            return value

    @staticmethod
    def save(config: Dict[str, Any], config_path: str):
        """
        Save configuration to file.

        Args:
            config: Configuration dictionary
            config_path: Output path
        """
        path = Path(config_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, 'w') as f:
            f.write("# stratadg column configuration\n")
            f.write("# Generated automatically\n\n")

            for key, value in sorted(config.items()):
                if isinstance(value, bool):
                    value_str = 'true' if value else 'false'
                elif isinstance(value, float):
                    if value != 0 and (abs(value) < 1e-4 or abs(value) > 1e4):
                        value_str = f"{value:.6e}"
                    else:
                        value_str = repr(value)
                else:
                    value_str = str(value)

                f.write(f"{key} = {value_str}\n")

    @staticmethod
    def get_default_config() -> Dict[str, Any]:
        """Get default configuration (Dirichlet-bottom heating of a uniform column)."""
        return {
            'scenario_name': 'Dirichlet Bottom Heating',
            # Mesh
            'z_min': 0.0,
            'z_max': 1.0,
            'n_elements': 10,
            'polynomial_order': 5,
            # Time stepping
            'fourier': 0.08,
            't_end': 40.0,
            'n_outputs': 5,
            # Heat model
            'rho_c': 1.0,
            'alpha': 0.01,
            'initial_T': 295.15,
            'T_bottom': 300.0,
            'flux_top': 0.0,
            'init_type': 'uniform',
            'amplitude': 5.0,
            # Output
            'compute_metrics': True,
            'save_csv': True,
            'save_netcdf': True,
            'save_png': True,
            'save_gif': False,
            'output_dir': 'outputs',
            'animation_fps': 10,
            'animation_dpi': 100,
            'png_dpi': 150,
        }

    @staticmethod
    def validate_config(config: Dict[str, Any]) -> bool:
        """
        Validate configuration parameters.

        Args:
            config: Configuration dictionary

        Returns:
            True if valid

        Raises:
            ConfigurationError: If configuration is invalid
        """
        required = ['n_elements', 'polynomial_order', 't_end', 'fourier', 'alpha', 'rho_c']

        for key in required:
            if key not in config:
                raise ConfigurationError(f"Missing required parameter: {key}")

        if config['n_elements'] < 1:
            raise ConfigurationError("n_elements must be >= 1")

        if config['polynomial_order'] < 1:
            raise ConfigurationError("polynomial_order must be >= 1")

        if config['fourier'] <= 0 or config['fourier'] > 1:
            raise ConfigurationError("fourier must be in (0, 1]")

        if config['t_end'] <= 0:
            raise ConfigurationError("t_end must be > 0")

        if config['alpha'] <= 0:
            raise ConfigurationError("alpha must be > 0")

        if config['rho_c'] <= 0:
            raise ConfigurationError("rho_c must be > 0")

        if config.get('z_max', 1.0) <= config.get('z_min', 0.0):
            raise ConfigurationError("z_max must be > z_min")

        if config.get('n_outputs', 1) < 1:
            raise ConfigurationError("n_outputs must be >= 1")

        if config.get('init_type', 'uniform') not in ('uniform', 'sine'):
            raise ConfigurationError(
                f"init_type must be 'uniform' or 'sine', got {config.get('init_type')!r}"
            )

        return True
