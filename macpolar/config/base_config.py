from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union
import yaml


def find_macpolar_root() -> Path:
    """Find the macpolar repository root directory."""
    return Path(__file__).resolve().parent.parent.parent

MACPOLAR_ROOT = find_macpolar_root()

VALID_DESIGNS = ('repeated', 'independent')
VALID_LSD_DF = ('pooled_pair', 'error')
VALID_Y_SCALES = ('linear', 'log')


@dataclass
class BaseConfig:
    """Base configuration with statistics and figure parameters shared by all datasets."""
    # ANOVA design
    design: str = 'repeated'  # 'repeated' or 'independent'
    expected_group_count: int = 8
    min_replicates: int = 2
    require_equal_group_sizes: bool = True

    # Post-hoc (Fisher LSD) parameters
    group_size: Optional[int] = None  # None = observed group sizes
    lsd_df: Union[str, int] = 'pooled_pair'  # 'pooled_pair', 'error' or an explicit int
    alpha: float = 0.05

    # p-value display
    p_display_floor: float = 0.0001
    p_decimals: int = 4

    # Figure parameters
    figure_format: str = 'tiff'
    figure_dpi: int = 300
    font_size: int = 12

    # Table parameters
    summary_decimals: int = 3

    @classmethod
    def from_file(cls, file_path: Optional[str]):
        """
        Creates a config instance by loading parameters from a YAML file.
        Any parameters in the YAML file will override the class defaults.
        """
        # If no file is provided, return a default config instance
        if not file_path:
            return cls()

        with open(file_path, 'r') as f:
            config_data = yaml.safe_load(f) or {}

        # Unknown keys are dropped so one YAML file can carry notes or
        # settings for other tools.
        valid_fields = {f.name for f in fields(cls)}
        filtered_data = {k: v for k, v in config_data.items() if k in valid_fields}

        config = cls(**filtered_data)
        config.resolve_paths(Path(file_path).resolve().parent)
        return config

    def resolve_paths(self, base_dir: Path) -> None:
        """Hook for subclasses holding file paths relative to the config file."""

    def __post_init__(self):
        """Validate choices that are otherwise only checked deep inside the analysis."""
        if self.design not in VALID_DESIGNS:
            raise ValueError(f"design must be one of {VALID_DESIGNS}, got {self.design!r}")
        if isinstance(self.lsd_df, str):
            if self.lsd_df not in VALID_LSD_DF:
                raise ValueError(f"lsd_df must be one of {VALID_LSD_DF} or a positive integer, got {self.lsd_df!r}")
        elif int(self.lsd_df) <= 0:
            raise ValueError(f"lsd_df must be positive, got {self.lsd_df}")
        if self.group_size is not None and self.group_size < 1:
            raise ValueError(f"group_size must be at least 1, got {self.group_size}")
