"""
Group summary statistics and pairwise group differences.
"""

import logging
from itertools import combinations
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from ..config.analysis_config import AnalysisConfig

logger = logging.getLogger(__name__)


class StatisticalAnalyzer:
    """Per-group means, standard errors and group-pair differences."""

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def group_means(self, samples: pd.DataFrame, variables: List[str]) -> Dict[str, pd.DataFrame]:
        """
        Calculate per-treatment-group statistics for every variable.

        Args:
            samples: Prepared sample table
            variables: Measured variable columns

        Returns:
            Dict with 'mean', 'sem', 'std' and 'n' tables, one row per
            treatment group in canonical order and one column per variable
        """
        grouped = samples.groupby('Treatment', observed=False)[variables]
        stats = {
            'mean': grouped.mean(),
            'std': grouped.std(ddof=1),
            'n': grouped.count(),
        }
        stats['sem'] = stats['std'] / np.sqrt(stats['n'])

        for key, table in stats.items():
            table = table.reindex(self.config.group_order)
            table.index = pd.Index(self.config.group_order, name='Treatment')
            stats[key] = table
        return stats

    def pairwise_differences(self, means: pd.DataFrame) -> pd.DataFrame:
        """
        Differences between every unordered pair of treatment-group means.

        Args:
            means: Group means (rows in canonical order, one column per variable)

        Returns:
            pd.DataFrame: long table keyed by (group1, group2, variable) with
            signed ``difference`` (group1 - group2) and ``abs_difference``
        """
        records = []
        for group1, group2 in combinations(means.index, 2):
            for variable in means.columns:
                mean1 = means.at[group1, variable]
                mean2 = means.at[group2, variable]
                records.append({
                    'group1': group1,
                    'group2': group2,
                    'variable': variable,
                    'mean1': mean1,
                    'mean2': mean2,
                    'difference': mean1 - mean2,
                    'abs_difference': abs(mean1 - mean2),
                })

        differences = pd.DataFrame.from_records(
            records,
            columns=['group1', 'group2', 'variable', 'mean1', 'mean2', 'difference', 'abs_difference'],
        )
        logger.debug(f"Computed {len(differences)} group differences")
        return differences

    def summary_table(self, stats: Dict[str, pd.DataFrame], decimals: Optional[int] = None) -> pd.DataFrame:
        """Format 'mean ± SEM' strings per treatment group and variable."""
        decimals = self.config.summary_decimals if decimals is None else decimals
        means = stats['mean']
        sems = stats['sem']
        table = pd.DataFrame(index=means.index, columns=means.columns, dtype=object)
        for variable in means.columns:
            table[variable] = [
                _format_mean_sem(m, s, decimals) for m, s in zip(means[variable], sems[variable])
            ]
        return table


def _format_mean_sem(mean: float, sem: float, decimals: int) -> str:
    if pd.isna(mean):
        return ''
    if pd.isna(sem):
        return f"{mean:.{decimals}f}"
    return f"{mean:.{decimals}f} ± {sem:.{decimals}f}"


def format_p_value(p_value: float, floor: float = 0.0001, decimals: int = 4) -> str:
    """Render a p-value for display: values below the floor become '<floor'."""
    if p_value is None or pd.isna(p_value):
        return 'NA'
    if p_value < floor:
        return f"<{np.format_float_positional(floor, trim='-')}"
    return f"{round(p_value, decimals):.{decimals}f}"
