import numpy as np
import pytest

from macpolar.analysis.statistics import StatisticalAnalyzer, format_p_value
from macpolar.config import DEFAULT_GROUP_ORDER


def test_group_means_match_raw_means(config, samples, variables):
    stats = StatisticalAnalyzer(config).group_means(samples, variables)

    assert list(stats['mean'].index) == DEFAULT_GROUP_ORDER
    for variable in variables:
        for group in DEFAULT_GROUP_ORDER:
            raw = samples.loc[samples['Treatment'] == group, variable].to_numpy()
            assert stats['mean'].at[group, variable] == pytest.approx(raw.mean(), abs=1e-9)
            expected_sem = raw.std(ddof=1) / np.sqrt(len(raw))
            assert stats['sem'].at[group, variable] == pytest.approx(expected_sem, abs=1e-9)
            assert stats['n'].at[group, variable] == 5


def test_pairwise_differences_cover_all_pairs(config, samples, variables):
    analyzer = StatisticalAnalyzer(config)
    means = analyzer.group_means(samples, variables)['mean']
    diffs = analyzer.pairwise_differences(means)

    assert len(diffs) == 28 * len(variables)
    per_variable = diffs[diffs['variable'] == 'GeneA']
    assert len(per_variable) == 28
    assert len(set(zip(per_variable['group1'], per_variable['group2']))) == 28
    assert (diffs['abs_difference'] >= 0).all()


def test_pairwise_difference_symmetry(config, samples, variables):
    analyzer = StatisticalAnalyzer(config)
    means = analyzer.group_means(samples, variables)['mean']
    forward = analyzer.pairwise_differences(means)
    backward = analyzer.pairwise_differences(means.iloc[::-1])

    fwd = forward.set_index(['group1', 'group2', 'variable'])['abs_difference']
    bwd = backward.set_index(['group2', 'group1', 'variable'])['abs_difference']
    bwd.index.names = fwd.index.names
    assert np.allclose(fwd.sort_index().values, bwd.sort_index().values)


def test_summary_table_format(config, samples, variables):
    analyzer = StatisticalAnalyzer(config)
    stats = analyzer.group_means(samples, variables)
    table = analyzer.summary_table(stats, decimals=2)
    mean = stats['mean'].at['M0_DEP', 'GeneA']
    sem = stats['sem'].at['M0_DEP', 'GeneA']
    assert table.at['M0_DEP', 'GeneA'] == f"{mean:.2f} ± {sem:.2f}"


@pytest.mark.parametrize("p,expected", [
    (0.00001, "<0.0001"),
    (0.0000999, "<0.0001"),
    (0.0001, "0.0001"),
    (0.034567, "0.0346"),
    (0.5, "0.5000"),
    (1.0, "1.0000"),
])
def test_format_p_value(p, expected):
    assert format_p_value(p) == expected


def test_format_p_value_missing():
    assert format_p_value(float('nan')) == 'NA'


def test_format_p_value_floor_printed_as_given():
    assert format_p_value(0.0004, floor=0.001) == "<0.001"
    assert format_p_value(0.0004, floor=0.001, decimals=2) == "<0.001"
    assert format_p_value(0.0123, floor=0.001, decimals=3) == "0.012"
