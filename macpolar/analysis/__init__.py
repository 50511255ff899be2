"""
Analysis of macrophage polarization assay datasets.

This module provides tools for the gene, cytokine and metabolic assay data including:
- Treatment group parsing and sample table loading
- Group means, SEM and pairwise group differences
- Repeated-measures ANOVA with Fisher LSD post-hoc comparisons
- Curation of the reported comparisons (match policy)
- Visualization (bar plots, PCA, clustered heatmaps) and spreadsheet export
"""

from .core import AnalysisEngine
from .workflows import AnalysisWorkflow
from .dataloading import AssayDataLoader
from .statistics import StatisticalAnalyzer, format_p_value
from .posthoc import PostHocAnalyzer, AnovaResult
from .matching import DEFAULT_MATCH_POLICY, MatchRule, apply_match_policy, match_pair
from .multivariate import MultivariateAnalyzer
from .visualization import AnalysisVisualizer
from .export import ResultsExporter
from .groups import TreatmentGroup, parse_treatment_label

__all__ = [
    'AnalysisEngine',
    'AnalysisWorkflow',
    'AssayDataLoader',
    'StatisticalAnalyzer',
    'format_p_value',
    'PostHocAnalyzer',
    'AnovaResult',
    'DEFAULT_MATCH_POLICY',
    'MatchRule',
    'apply_match_policy',
    'match_pair',
    'MultivariateAnalyzer',
    'AnalysisVisualizer',
    'ResultsExporter',
    'TreatmentGroup',
    'parse_treatment_label',
]
