"""
Two-factor repeated-measures ANOVA and Fisher LSD post-hoc comparisons.

Each variable is fitted as a split-plot design: the starting polarization
state and the exposure are crossed within every replicate (donor), and each
effect is tested against its replicate-by-effect error stratum. The mean
square of the finest stratum (replicate x starting x exposure) is the pooled
error for the pairwise t-ratios::

    t = |mean1 - mean2| / sqrt(MSE * (1/n1 + 1/n2))
    p = 2 * (1 - CDF_t(t, df))
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.formula.api import ols
from statsmodels.stats.anova import anova_lm
from tqdm import tqdm

from ..config.analysis_config import AnalysisConfig
from ..exceptions import StatisticalPreconditionError
from .matching import apply_match_policy, matched_comparisons
from .statistics import format_p_value

logger = logging.getLogger(__name__)

REPEATED_FORMULA = ('value ~ C(Starting) * C(Exposure) + C(Replicate)'
                    ' + C(Replicate):C(Starting) + C(Replicate):C(Exposure)')
INDEPENDENT_FORMULA = 'value ~ C(Starting) * C(Exposure)'

STARTING = frozenset(['Starting'])
EXPOSURE = frozenset(['Exposure'])
INTERACTION = frozenset(['Starting', 'Exposure'])
RESIDUAL = frozenset(['Residual'])

# Effect -> error stratum it is tested against
REPEATED_ERROR_TERMS = {
    STARTING: frozenset(['Replicate', 'Starting']),
    EXPOSURE: frozenset(['Replicate', 'Exposure']),
    INTERACTION: RESIDUAL,
}
INDEPENDENT_ERROR_TERMS = {
    STARTING: RESIDUAL,
    EXPOSURE: RESIDUAL,
    INTERACTION: RESIDUAL,
}

COMPARISON_COLUMNS = [
    'variable', 'group1', 'group2', 'mean1', 'mean2', 'difference', 'abs_difference',
    'n1', 'n2', 'mse', 'df', 't_ratio', 'p_value', 'p_display',
    'match', 'match_rule', 'interaction_p',
]


@dataclass
class AnovaResult:
    """ANOVA summary for one variable."""
    variable: str
    table: pd.DataFrame
    interaction_p: float
    mse: float
    df_error: float


def _term_key(row_name: str) -> frozenset:
    """'C(Replicate):C(Starting)' -> frozenset({'Replicate', 'Starting'})"""
    parts = row_name.split(':')
    return frozenset(p[2:-1] if p.startswith('C(') and p.endswith(')') else p for p in parts)


class PostHocAnalyzer:
    """Repeated-measures ANOVA with Fisher LSD pairwise comparisons."""

    def __init__(self, config: AnalysisConfig):
        self.config = config

    def check_preconditions(self, samples: pd.DataFrame) -> pd.Series:
        """
        Verify the group structure the ANOVA and post-hoc formulas rely on.

        Returns:
            pd.Series: replicate count per treatment group
        """
        sizes = samples.groupby('Treatment', observed=False).size()
        present = sizes[sizes > 0]

        if len(present) != self.config.expected_group_count:
            raise StatisticalPreconditionError(
                f"Expected {self.config.expected_group_count} treatment groups, found {len(present)}: "
                f"{list(present.index)}"
            )
        too_small = present[present < self.config.min_replicates]
        if len(too_small):
            raise StatisticalPreconditionError(
                f"Groups with fewer than {self.config.min_replicates} replicates: {too_small.to_dict()}"
            )
        if self.config.require_equal_group_sizes and present.nunique() > 1:
            raise StatisticalPreconditionError(f"Unequal group sizes: {present.to_dict()}")

        if self.config.design == 'repeated':
            layout = pd.crosstab(samples['Replicate'], samples['Treatment'].astype(str))
            if (layout.values != 1).any():
                raise StatisticalPreconditionError(
                    "Repeated-measures design needs every replicate exactly once in every "
                    "treatment group; use design 'independent' for unpaired samples"
                )
            if layout.shape[0] < 2:
                raise StatisticalPreconditionError("Repeated-measures design needs at least 2 replicates")

        return present

    def fit_anova(self, samples: pd.DataFrame, variable: str) -> AnovaResult:
        """
        Fit the two-factor ANOVA for one variable.

        Args:
            samples: Prepared sample table
            variable: Measured variable column

        Returns:
            AnovaResult: stratified ANOVA table, interaction p-value and the
            mean square error of the finest error stratum
        """
        frame = samples[['Treatment', 'Starting', 'Exposure', 'Replicate']].copy()
        frame['value'] = samples[variable].astype(float).values

        if self.config.design == 'repeated':
            if frame['value'].isna().any():
                raise StatisticalPreconditionError(
                    f"Missing values in '{variable}' break the repeated-measures layout"
                )
            formula, error_terms, typ = REPEATED_FORMULA, REPEATED_ERROR_TERMS, 1
        else:
            frame = frame.dropna(subset=['value'])
            self._check_observed_groups(frame, variable)
            formula, error_terms, typ = INDEPENDENT_FORMULA, INDEPENDENT_ERROR_TERMS, 2

        model = ols(formula, data=frame).fit()
        raw = anova_lm(model, typ=typ)
        table = self._stratify(raw, error_terms)

        residual = table.loc['Residual']
        if not residual['df'] > 0:
            raise StatisticalPreconditionError(f"No residual degrees of freedom left for '{variable}'")

        interaction_row = [name for name in table.index if _term_key(name) == INTERACTION]
        interaction_p = table.loc[interaction_row[0], 'p_value'] if interaction_row else np.nan
        mse = residual['mean_sq']
        if mse == 0:
            logger.warning(f"Zero residual mean square for '{variable}'; t-ratios are infinite")

        return AnovaResult(variable=variable, table=table, interaction_p=interaction_p,
                           mse=mse, df_error=residual['df'])

    def _check_observed_groups(self, frame: pd.DataFrame, variable: str):
        """Group count and replicate minimum on the non-missing values of one variable."""
        sizes = frame.groupby('Treatment', observed=False).size()
        present = sizes[sizes > 0]
        if len(present) != self.config.expected_group_count:
            raise StatisticalPreconditionError(
                f"'{variable}' has values in {len(present)} of "
                f"{self.config.expected_group_count} treatment groups"
            )
        too_small = present[present < self.config.min_replicates]
        if len(too_small):
            raise StatisticalPreconditionError(
                f"'{variable}' has fewer than {self.config.min_replicates} values in groups: "
                f"{too_small.to_dict()}"
            )

    def _stratify(self, raw: pd.DataFrame, error_terms: Dict[frozenset, frozenset]) -> pd.DataFrame:
        """Recompute F and p of each effect against its own error stratum."""
        table = pd.DataFrame({
            'sum_sq': raw['sum_sq'],
            'df': raw['df'],
        })
        table['mean_sq'] = table['sum_sq'] / table['df']
        keys = {name: _term_key(name) for name in table.index}
        by_key = {key: name for name, key in keys.items()}

        table['error_term'] = None
        table['F'] = np.nan
        table['p_value'] = np.nan
        for name, key in keys.items():
            error_key = error_terms.get(key)
            if error_key is None or error_key not in by_key:
                continue
            error_name = by_key[error_key]
            ms_error = table.at[error_name, 'mean_sq']
            df_error = table.at[error_name, 'df']
            f_value = table.at[name, 'mean_sq'] / ms_error if ms_error > 0 else np.inf
            table.at[name, 'error_term'] = error_name
            table.at[name, 'F'] = f_value
            table.at[name, 'p_value'] = stats.f.sf(f_value, table.at[name, 'df'], df_error)
        return table

    def lsd_comparisons(self, differences: pd.DataFrame, anova: AnovaResult,
                        counts: pd.Series) -> pd.DataFrame:
        """
        Fisher LSD t-ratios and two-tailed p-values for one variable.

        Args:
            differences: Pairwise differences of this variable
            anova: ANOVA result providing the pooled error term
            counts: Non-missing replicate count per treatment group

        Returns:
            pd.DataFrame: the differences with n1, n2, mse, df, t_ratio,
            p_value and p_display columns
        """
        result = differences.copy()
        if self.config.group_size is not None:
            result['n1'] = self.config.group_size
            result['n2'] = self.config.group_size
        else:
            counts = pd.Series(counts.values, index=counts.index.astype(str))
            result['n1'] = result['group1'].map(counts).astype(int)
            result['n2'] = result['group2'].map(counts).astype(int)

        result['mse'] = anova.mse
        result['df'] = self._degrees_of_freedom(result['n1'], result['n2'], anova.df_error)

        standard_error = np.sqrt(anova.mse * (1.0 / result['n1'] + 1.0 / result['n2']))
        with np.errstate(divide='ignore', invalid='ignore'):
            result['t_ratio'] = result['abs_difference'].abs() / standard_error
        result['p_value'] = 2 * stats.t.sf(result['t_ratio'], result['df'])
        result['p_display'] = [
            format_p_value(p, self.config.p_display_floor, self.config.p_decimals)
            for p in result['p_value']
        ]
        result['interaction_p'] = anova.interaction_p
        return result

    def _degrees_of_freedom(self, n1: pd.Series, n2: pd.Series, df_error: float) -> pd.Series:
        if self.config.lsd_df == 'pooled_pair':
            return n1 + n2 - 2
        if self.config.lsd_df == 'error':
            return pd.Series(df_error, index=n1.index)
        return pd.Series(int(self.config.lsd_df), index=n1.index)

    def run(self, samples: pd.DataFrame, variables: List[str],
            differences: pd.DataFrame, counts: Optional[pd.DataFrame] = None) -> Dict:
        """
        Run ANOVA and post-hoc comparisons for every variable.

        Args:
            samples: Prepared sample table
            variables: Measured variable columns
            differences: Output of StatisticalAnalyzer.pairwise_differences
            counts: Per-group non-missing counts (one column per variable)

        Returns:
            Dict with 'comparisons' (all pairs), 'matched' (curated pairs),
            'anova' (variable -> AnovaResult) and 'interaction_p' (Series)
        """
        self.check_preconditions(samples)
        if counts is None:
            counts = samples.groupby('Treatment', observed=False)[variables].count()

        anova_results = {}
        frames = []
        for variable in tqdm(variables, desc='ANOVA / post-hoc', disable=len(variables) < 10):
            anova = self.fit_anova(samples, variable)
            anova_results[variable] = anova
            var_diffs = differences[differences['variable'] == variable]
            frames.append(self.lsd_comparisons(var_diffs, anova, counts[variable]))
            logger.debug(f"{variable}: interaction p={anova.interaction_p:.4g}, MSE={anova.mse:.4g}")

        comparisons = apply_match_policy(pd.concat(frames, ignore_index=True))
        comparisons = comparisons[COMPARISON_COLUMNS]
        matched = matched_comparisons(comparisons)

        interaction_p = pd.Series(
            {v: r.interaction_p for v, r in anova_results.items()}, name='interaction_p'
        )
        logger.info(f"Post-hoc: {len(comparisons)} comparisons, {len(matched)} retained by the match policy")
        return {
            'comparisons': comparisons,
            'matched': matched,
            'anova': anova_results,
            'interaction_p': interaction_p,
        }
