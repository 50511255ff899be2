"""
Pytest configuration for macpolar tests.
"""
import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from macpolar.config import AnalysisConfig, DEFAULT_GROUP_ORDER


# ==============================================================================
# Synthetic datasets
# ==============================================================================

GROUP_MEANS = {
    'M0_Vehicle': 0.0,
    'M0_DEP': 0.5,
    'M0 -> M1': 2.0,
    'M0 -> M1+DEP': 2.5,
    'M2_Vehicle': 1.0,
    'M2_DEP': 1.2,
    'M2 -> M1': 3.0,
    'M2 -> M1+DEP': 3.5,
}

N_REPLICATES = 5


def make_table(n_replicates=N_REPLICATES, seed=0, noise=0.3, offset=10.0):
    """Sample table in the raw file layout: Sample id '<group>_<replicate>' + variables."""
    rng = np.random.default_rng(seed)
    rows = []
    for group in DEFAULT_GROUP_ORDER:
        for replicate in range(1, n_replicates + 1):
            rows.append({
                'Sample': f"{group}_{replicate}",
                'GeneA': offset + GROUP_MEANS[group] + rng.normal(0, noise),
                'GeneB': offset + rng.normal(0, noise),
                'IL-1β': offset + 2 * GROUP_MEANS[group] + rng.normal(0, noise),
            })
    return pd.DataFrame(rows)


@pytest.fixture
def raw_table():
    return make_table()


@pytest.fixture
def config(tmp_path):
    return AnalysisConfig(name='synthetic', output_dir=str(tmp_path / 'results'),
                          figure_format='png', figure_dpi=40)


@pytest.fixture
def data_file(tmp_path, raw_table):
    path = tmp_path / 'synthetic.csv'
    raw_table.to_csv(path, index=False)
    return path


@pytest.fixture
def samples(config, raw_table):
    from macpolar.analysis.dataloading import AssayDataLoader
    return AssayDataLoader(config).prepare_samples(raw_table)


@pytest.fixture
def variables():
    return ['GeneA', 'GeneB', 'IL-1β']
