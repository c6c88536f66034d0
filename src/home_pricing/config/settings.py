"""
Centralized settings and path configuration for the home pricing core.
"""
import os
from pathlib import Path
from dataclasses import dataclass
from typing import Optional


def get_project_root() -> Path:
    """Get the project root directory (where pyproject.toml lives)."""
    # Walk up from this file to find the project root
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / 'pyproject.toml').exists():
            return parent
    # Fallback to 4 levels up from this file
    return Path(__file__).resolve().parent.parent.parent.parent


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in ('true', '1', 'yes', 'on')


@dataclass
class Settings:
    """Application settings with sensible defaults."""

    # Project paths
    project_root: Path
    data_dir: Path

    # Catalog input files
    plans_csv: Path
    options_csv: Path
    components_csv: Path
    packages_csv: Path
    lots_csv: Path
    lot_pricing_csv: Path

    # Output files
    build_report: Path

    # Pricing behaviour
    auto_promote_first_package: bool = True

    # Logging
    log_level: str = "INFO"

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> 'Settings':
        """Load settings from the project structure and environment."""
        root = project_root or get_project_root()

        data_dir = Path(os.environ.get('HOME_PRICING_DATA_DIR') or root / 'data')

        return cls(
            project_root=root,
            data_dir=data_dir,
            plans_csv=data_dir / 'plans.csv',
            options_csv=data_dir / 'options.csv',
            components_csv=data_dir / 'components.csv',
            packages_csv=data_dir / 'packages.csv',
            lots_csv=data_dir / 'lots.csv',
            lot_pricing_csv=data_dir / 'lot_pricing.csv',
            build_report=data_dir / 'outputs' / 'build_report.json',
            auto_promote_first_package=_env_flag('HOME_PRICING_AUTO_PROMOTE', True),
            log_level=os.environ.get('HOME_PRICING_LOG_LEVEL', 'INFO').upper(),
        )


# Default settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reset_settings():
    """Drop the cached settings so the next get_settings() reloads them."""
    global _settings
    _settings = None
