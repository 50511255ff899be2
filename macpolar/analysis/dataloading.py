"""
Data loading and preparation of assay sample tables.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import pandas as pd
from pandas.api.types import is_numeric_dtype

from ..config.analysis_config import AnalysisConfig
from ..exceptions import DataLoadError
from .groups import parse_treatment_label, split_sample_id

logger = logging.getLogger(__name__)

GROUPING_COLUMNS = ['Sample', 'Treatment', 'Starting', 'Exposure', 'Replicate']


class AssayDataLoader:
    """Loads a delimited sample table and derives the grouping factors."""

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def load_samples(self, data_file: Optional[Union[str, Path]] = None) -> pd.DataFrame:
        """
        Load and prepare the sample table.

        Args:
            data_file: Path to the table (defaults to ``config.data_file``)

        Returns:
            pd.DataFrame: one row per sample with the columns
            ``Sample, Treatment, Starting, Exposure, Replicate`` followed by
            the measured variables
        """
        raw = self.read_table(data_file or self.config.data_file)
        return self.prepare_samples(raw)

    def read_table(self, data_file: Optional[Union[str, Path]]) -> pd.DataFrame:
        """Read a delimited text table (or an Excel sheet) into memory."""
        if not data_file:
            raise DataLoadError(f"No data file configured for dataset '{self.config.name}'")
        path = Path(data_file)
        if not path.exists():
            raise DataLoadError(f"Data file not found: {path}")

        try:
            if path.suffix.lower() in ('.xlsx', '.xls'):
                table = pd.read_excel(path)
            else:
                table = pd.read_csv(path, sep=self.config.sep)
        except (OSError, ValueError, pd.errors.ParserError) as e:
            raise DataLoadError(f"Could not read {path}: {e}") from e

        if table.empty:
            raise DataLoadError(f"Data file is empty: {path}")
        logger.info(f"Loaded {len(table)} rows x {len(table.columns)} columns from {path}")
        return table

    def prepare_samples(self, table: pd.DataFrame) -> pd.DataFrame:
        """Rename columns, derive grouping fields and select variables."""
        table = table.rename(columns=self.config.rename_columns)
        table.columns = [str(c).strip() for c in table.columns]

        variables = self.select_variables(table)
        samples = self._derive_grouping(table)

        values = table[variables].copy()
        non_numeric = [col for col in variables if not is_numeric_dtype(values[col])]
        if non_numeric:
            raise DataLoadError(f"Non-numeric measured columns: {non_numeric}")

        samples = pd.concat([samples, values.reset_index(drop=True)], axis=1)
        samples['Treatment'] = pd.Categorical(
            samples['Treatment'], categories=self.config.group_order, ordered=True
        )
        samples = samples.sort_values('Treatment', kind='stable').reset_index(drop=True)
        logger.info(f"Prepared {len(samples)} samples, {len(variables)} variables, "
                    f"{samples['Treatment'].nunique()} treatment groups")
        return samples

    def select_variables(self, table: pd.DataFrame) -> List[str]:
        """Resolve the measured variable columns from the configuration."""
        if self.config.variable_columns:
            missing = [c for c in self.config.variable_columns if c not in table.columns]
            if missing:
                raise DataLoadError(f"Configured variable columns not found: {missing}")
            return list(self.config.variable_columns)

        if self.config.variable_range:
            start, stop = self.config.variable_range
            variables = list(table.columns[start:stop])
            if not variables:
                raise DataLoadError(f"variable_range {self.config.variable_range} selects no columns")
            return variables

        reserved = set(GROUPING_COLUMNS) | {
            self.config.id_column, self.config.group_column, self.config.replicate_column
        }
        variables = [c for c in table.columns
                     if c not in reserved and is_numeric_dtype(table[c])]
        if not variables:
            raise DataLoadError("No numeric variable columns found")
        return variables

    def _derive_grouping(self, table: pd.DataFrame) -> pd.DataFrame:
        """Build Sample / Treatment / Starting / Exposure / Replicate columns."""
        id_col = self.config.id_column
        group_col = self.config.group_column
        rep_col = self.config.replicate_column

        if id_col not in table.columns:
            if group_col and group_col in table.columns:
                sample_ids = table[group_col].astype(str) + '_' + (table.groupby(group_col).cumcount() + 1).astype(str)
            else:
                raise DataLoadError(f"Identifier column '{id_col}' not found in data")
        else:
            sample_ids = table[id_col].astype(str).str.strip()

        split = [split_sample_id(s) for s in sample_ids]
        if group_col and group_col in table.columns:
            labels = table[group_col].astype(str).str.strip().tolist()
        else:
            labels = [label for label, _ in split]
        labels = [self.config.group_aliases.get(label, label) for label in labels]

        unknown = sorted(set(labels) - set(self.config.group_order))
        if unknown:
            raise DataLoadError(f"Treatment labels not in group_order: {unknown}")
        groups = [parse_treatment_label(label) for label in labels]

        grouping = pd.DataFrame({
            'Sample': sample_ids.tolist(),
            'Treatment': labels,
            'Starting': [g.starting for g in groups],
            'Exposure': [g.exposure for g in groups],
        })

        if rep_col and rep_col in table.columns:
            grouping['Replicate'] = table[rep_col].astype(str).str.strip().tolist()
        elif all(rep is not None for _, rep in split):
            grouping['Replicate'] = [str(rep) for _, rep in split]
        else:
            # Replicates numbered in row order within each group
            grouping['Replicate'] = (grouping.groupby('Treatment').cumcount() + 1).astype(str)

        return grouping
