from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .base_config import BaseConfig, VALID_Y_SCALES

DEFAULT_GROUP_ORDER = [
    'M0_Vehicle',
    'M0_DEP',
    'M0 -> M1',
    'M0 -> M1+DEP',
    'M2_Vehicle',
    'M2_DEP',
    'M2 -> M1',
    'M2 -> M1+DEP',
]


@dataclass
class AnalysisConfig(BaseConfig):
    """Configuration parameters for analysing one assay dataset."""

    # Dataset identity and location
    name: str = 'dataset'
    data_file: Optional[str] = None
    sep: str = ','
    output_dir: str = 'results'

    # Sample table layout
    id_column: str = 'Sample'
    group_column: Optional[str] = None  # derived from id_column when missing
    replicate_column: Optional[str] = None
    rename_columns: Dict[str, str] = field(default_factory=dict)
    group_aliases: Dict[str, str] = field(default_factory=dict)

    # Measured variables: explicit names win over a positional [start, stop) range
    variable_columns: Optional[List[str]] = None
    variable_range: Optional[List[int]] = None

    # Canonical treatment group ordering
    group_order: List[str] = field(default_factory=lambda: list(DEFAULT_GROUP_ORDER))

    # Bar plot parameters
    y_axis_label: str = 'Value'
    y_scale: str = 'linear'  # 'linear' or 'log'
    y_max: Optional[float] = None
    bracket_step: float = 0.08
    annotate_only_significant: bool = True
    palette: Optional[Dict[str, str]] = None

    # PCA parameters
    n_components: int = 2
    log_transform: bool = False

    def __post_init__(self):
        super().__post_init__()
        if self.y_scale not in VALID_Y_SCALES:
            raise ValueError(f"y_scale must be one of {VALID_Y_SCALES}, got {self.y_scale!r}")
        if self.variable_range is not None and len(self.variable_range) != 2:
            raise ValueError("variable_range must be [start, stop]")

    def resolve_paths(self, base_dir: Path) -> None:
        """Resolve data and output paths relative to the YAML file location."""
        if self.data_file and not Path(self.data_file).is_absolute():
            self.data_file = str(base_dir / self.data_file)
        if not Path(self.output_dir).is_absolute():
            self.output_dir = str(base_dir / self.output_dir)

    @property
    def dataset_output_dir(self) -> Path:
        return Path(self.output_dir) / self.name
