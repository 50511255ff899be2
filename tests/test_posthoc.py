import numpy as np
import pandas as pd
import pytest
from scipy import stats
from statsmodels.stats.anova import AnovaRM

from macpolar.analysis.dataloading import AssayDataLoader
from macpolar.analysis.posthoc import PostHocAnalyzer
from macpolar.analysis.statistics import StatisticalAnalyzer
from macpolar.config import AnalysisConfig
from macpolar.exceptions import StatisticalPreconditionError

from conftest import make_table


def run_posthoc(config, samples, variables):
    analyzer = StatisticalAnalyzer(config)
    group_stats = analyzer.group_means(samples, variables)
    differences = analyzer.pairwise_differences(group_stats['mean'])
    return PostHocAnalyzer(config).run(samples, variables, differences, group_stats['n'])


def pair_row(table, variable, group1, group2):
    rows = table[(table['variable'] == variable) & (
        ((table['group1'] == group1) & (table['group2'] == group2)) |
        ((table['group1'] == group2) & (table['group2'] == group1))
    )]
    assert len(rows) == 1
    return rows.iloc[0]


def test_interaction_p_matches_repeated_measures_anova(config, samples):
    result = PostHocAnalyzer(config).fit_anova(samples, 'GeneA')

    frame = samples[['Replicate', 'Starting', 'Exposure']].copy()
    frame['value'] = samples['GeneA'].values
    reference = AnovaRM(frame, 'value', 'Replicate', within=['Starting', 'Exposure']).fit()
    expected = reference.anova_table.loc['Starting:Exposure', 'Pr > F']

    assert result.interaction_p == pytest.approx(expected, rel=1e-6)
    # replicate x starting x exposure stratum: (5-1)(2-1)(4-1)
    assert result.df_error == 12


def test_main_effects_use_their_own_error_strata(config, samples):
    table = PostHocAnalyzer(config).fit_anova(samples, 'GeneA').table
    starting = [name for name in table.index if name == 'C(Starting)'][0]
    error_name = table.at[starting, 'error_term']
    assert 'Replicate' in error_name and 'Starting' in error_name
    expected_f = table.at[starting, 'mean_sq'] / table.at[error_name, 'mean_sq']
    assert table.at[starting, 'F'] == pytest.approx(expected_f)


def test_lsd_formula(config, samples, variables):
    posthoc = run_posthoc(config, samples, variables)
    row = pair_row(posthoc['comparisons'], 'GeneA', 'M0_Vehicle', 'M0_DEP')
    mse = posthoc['anova']['GeneA'].mse

    t_ratio = abs(row['mean1'] - row['mean2']) / np.sqrt(mse * (1 / 5 + 1 / 5))
    assert row['t_ratio'] == pytest.approx(t_ratio)
    assert row['df'] == 8
    assert row['p_value'] == pytest.approx(2 * (1 - stats.t.cdf(t_ratio, 8)), abs=1e-12)


def test_all_pairs_and_matched_subset(config, samples, variables):
    posthoc = run_posthoc(config, samples, variables)
    assert len(posthoc['comparisons']) == 28 * len(variables)
    assert len(posthoc['matched']) == 16 * len(variables)
    assert posthoc['matched']['match'].all()
    assert set(posthoc['interaction_p'].index) == set(variables)


def test_p_value_invariant_to_pair_order(config, samples):
    analyzer = PostHocAnalyzer(config)
    anova = analyzer.fit_anova(samples, 'GeneA')
    counts = samples.groupby('Treatment', observed=False)['GeneA'].count()
    forward = pd.DataFrame([{'group1': 'M0_Vehicle', 'group2': 'M2 -> M1', 'variable': 'GeneA',
                             'mean1': 1.0, 'mean2': 3.5, 'difference': -2.5, 'abs_difference': 2.5}])
    backward = pd.DataFrame([{'group1': 'M2 -> M1', 'group2': 'M0_Vehicle', 'variable': 'GeneA',
                              'mean1': 3.5, 'mean2': 1.0, 'difference': 2.5, 'abs_difference': 2.5}])
    p_forward = analyzer.lsd_comparisons(forward, anova, counts)['p_value'].iloc[0]
    p_backward = analyzer.lsd_comparisons(backward, anova, counts)['p_value'].iloc[0]
    assert p_forward == p_backward


def test_synthetic_scenario_detects_difference(config, samples, variables):
    posthoc = run_posthoc(config, samples, variables)

    row = pair_row(posthoc['comparisons'], 'GeneA', 'M0_Vehicle', 'M0 -> M1')
    assert row['p_value'] < 0.05
    assert row['match']
    assert row['match_rule'] == 'same_start_M0'

    matched_pairs = set(zip(posthoc['matched']['group1'], posthoc['matched']['group2']))
    assert ('M0_Vehicle', 'M2_DEP') not in matched_pairs
    assert ('M2_DEP', 'M0_Vehicle') not in matched_pairs


def test_p_display_column(config, samples, variables):
    posthoc = run_posthoc(config, samples, variables)
    table = posthoc['comparisons']
    tiny = table[table['p_value'] < 0.0001]
    assert len(tiny) > 0
    assert (tiny['p_display'] == '<0.0001').all()
    rest = table[table['p_value'] >= 0.0001]
    assert rest['p_display'].str.fullmatch(r'\d\.\d{4}').all()


def test_error_df_and_explicit_overrides(samples, variables):
    error_df = run_posthoc(AnalysisConfig(lsd_df='error'), samples, variables)
    assert (error_df['comparisons']['df'] == 12).all()

    fixed = run_posthoc(AnalysisConfig(lsd_df=20, group_size=4), samples, variables)
    assert (fixed['comparisons']['df'] == 20).all()
    assert (fixed['comparisons']['n1'] == 4).all()


def test_missing_group_raises(config, samples, variables):
    partial = samples[samples['Treatment'] != 'M2_DEP']
    with pytest.raises(StatisticalPreconditionError, match='Expected 8 treatment groups'):
        run_posthoc(config, partial, variables)


def test_unequal_group_sizes_raise(config, samples, variables):
    unequal = samples.drop(index=samples.index[0])
    with pytest.raises(StatisticalPreconditionError, match='Unequal group sizes'):
        run_posthoc(config, unequal, variables)


def test_incomplete_replicate_layout_raises(samples, variables):
    config = AnalysisConfig(require_equal_group_sizes=False)
    shuffled = samples.copy()
    shuffled.loc[shuffled.index[0], 'Replicate'] = '99'
    with pytest.raises(StatisticalPreconditionError, match='every replicate'):
        run_posthoc(config, shuffled, variables)


def test_too_few_replicates_raise(variables):
    config = AnalysisConfig(design='independent')
    samples = AssayDataLoader(config).prepare_samples(make_table(n_replicates=1))
    with pytest.raises(StatisticalPreconditionError, match='fewer than 2'):
        run_posthoc(config, samples, variables)


def test_independent_design_allows_unequal_groups(variables):
    config = AnalysisConfig(design='independent', require_equal_group_sizes=False)
    samples = AssayDataLoader(config).prepare_samples(make_table(n_replicates=4, seed=3))
    samples = samples.drop(index=samples.index[0]).reset_index(drop=True)

    posthoc = run_posthoc(config, samples, variables)
    row = pair_row(posthoc['comparisons'], 'GeneA', 'M0_Vehicle', 'M0_DEP')
    assert row['n1'] == 3
    assert row['n2'] == 4
    assert row['df'] == 5
    assert posthoc['anova']['GeneA'].df_error == 32 - 1 - 8


def test_independent_design_rejects_variable_without_values(samples, variables):
    config = AnalysisConfig(design='independent')
    samples = samples.copy()
    samples['Empty'] = np.nan
    with pytest.raises(StatisticalPreconditionError, match="'Empty' has values in 0 of 8"):
        run_posthoc(config, samples, variables + ['Empty'])


def test_independent_design_rejects_group_missing_for_one_variable(samples, variables):
    config = AnalysisConfig(design='independent')
    samples = samples.copy()
    samples.loc[samples['Treatment'] == 'M2_DEP', 'GeneB'] = np.nan
    with pytest.raises(StatisticalPreconditionError, match="'GeneB' has values in 7 of 8"):
        run_posthoc(config, samples, variables)


def test_independent_design_rejects_too_few_values_for_one_variable(samples, variables):
    config = AnalysisConfig(design='independent', require_equal_group_sizes=False)
    samples = samples.copy()
    m2_dep = samples.index[samples['Treatment'] == 'M2_DEP']
    samples.loc[m2_dep[1:], 'GeneB'] = np.nan
    with pytest.raises(StatisticalPreconditionError, match="'GeneB' has fewer than 2 values"):
        run_posthoc(config, samples, variables)
