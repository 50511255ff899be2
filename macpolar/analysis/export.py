"""
Spreadsheet and JSON export of analysis results.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional

import pandas as pd

from ..config.analysis_config import AnalysisConfig
from ..exceptions import ExportError

logger = logging.getLogger(__name__)

# Excel limits sheet names to 31 characters
MAX_SHEET_NAME = 31


class ResultsExporter:
    """Writes summary tables for one dataset."""

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def anova_table(self, anova_results: Dict) -> pd.DataFrame:
        """Stack the per-variable stratified ANOVA tables into one long table."""
        frames = []
        for variable, result in anova_results.items():
            table = result.table.reset_index().rename(columns={'index': 'term'})
            table.insert(0, 'variable', variable)
            frames.append(table)
        if not frames:
            return pd.DataFrame(columns=['variable', 'term', 'sum_sq', 'df', 'mean_sq',
                                         'error_term', 'F', 'p_value'])
        return pd.concat(frames, ignore_index=True)

    def write_workbook(self,
                       output_file: str,
                       summary: pd.DataFrame,
                       stats: Dict[str, pd.DataFrame],
                       differences: Optional[pd.DataFrame] = None,
                       posthoc: Optional[Dict] = None) -> Path:
        """
        Write the summary workbook.

        Sheets: Mean_SEM, Means, SEM, N and, when available, Differences,
        PostHoc, Matched and ANOVA.
        """
        path = Path(output_file)
        sheets = {
            'Mean_SEM': summary,
            'Means': stats['mean'],
            'SEM': stats['sem'],
            'N': stats['n'],
        }
        if differences is not None:
            sheets['Differences'] = differences
        if posthoc is not None:
            sheets['PostHoc'] = posthoc['comparisons']
            sheets['Matched'] = posthoc['matched']
            sheets['ANOVA'] = self.anova_table(posthoc['anova'])

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with pd.ExcelWriter(path, engine='openpyxl') as writer:
                for sheet_name, table in sheets.items():
                    keep_index = sheet_name in ('Mean_SEM', 'Means', 'SEM', 'N')
                    table.to_excel(writer, sheet_name=sheet_name[:MAX_SHEET_NAME], index=keep_index)
        except OSError as e:
            raise ExportError(f"Could not write workbook {path}: {e}") from e

        logger.info(f"Summary workbook saved to {path}")
        return path

    def write_summary_json(self, output_file: str, summary: Dict) -> Path:
        """Write the run summary as JSON."""
        path = Path(output_file)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, 'w') as f:
                json.dump(summary, f, indent=2, default=str)
        except OSError as e:
            raise ExportError(f"Could not write summary {path}: {e}") from e
        logger.info(f"Analysis summary saved to {path}")
        return path
