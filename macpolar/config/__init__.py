from .base_config import BaseConfig, MACPOLAR_ROOT
from .analysis_config import AnalysisConfig, DEFAULT_GROUP_ORDER

__all__ = ['BaseConfig', 'AnalysisConfig', 'DEFAULT_GROUP_ORDER', 'MACPOLAR_ROOT']
