"""
macpolar: statistics and figures for macrophage polarization / DEP exposure assays
"""

__version__ = "0.1.0"

from . import config
from . import analysis

# Configuration imports
from .config import AnalysisConfig, BaseConfig
from .exceptions import (
    MacpolarError,
    DataLoadError,
    StatisticalPreconditionError,
    ExportError,
)

__all__ = [
    'AnalysisConfig',
    'BaseConfig',
    'MacpolarError',
    'DataLoadError',
    'StatisticalPreconditionError',
    'ExportError',
    "analysis", "config",
]
