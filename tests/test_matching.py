from itertools import combinations

import pandas as pd
import pytest

from macpolar.analysis.matching import (
    DEFAULT_MATCH_POLICY,
    MatchRule,
    apply_match_policy,
    match_pair,
    matched_comparisons,
)
from macpolar.config import DEFAULT_GROUP_ORDER


@pytest.fixture
def all_pairs():
    return pd.DataFrame(list(combinations(DEFAULT_GROUP_ORDER, 2)), columns=['group1', 'group2'])


def test_sixteen_of_twenty_eight_pairs_retained(all_pairs):
    assert len(all_pairs) == 28
    tagged = apply_match_policy(all_pairs)
    assert tagged['match'].sum() == 16


def test_policy_is_idempotent(all_pairs):
    once = apply_match_policy(all_pairs)
    twice = apply_match_policy(once)
    pd.testing.assert_frame_equal(once, twice)
    assert len(matched_comparisons(matched_comparisons(all_pairs))) == 16


def test_rule_counts(all_pairs):
    counts = apply_match_policy(all_pairs)['match_rule'].value_counts()
    assert counts['same_start_M0'] == 6
    assert counts['same_start_M2'] == 6
    assert counts['vehicle'] == 1
    assert counts['combined'] == 1
    assert counts['dep'] == 1
    assert counts['cross_start_polarized'] == 1


@pytest.mark.parametrize("group1,group2,rule", [
    ("M0_Vehicle", "M0 -> M1", "same_start_M0"),
    ("M2_Vehicle", "M2 -> M1", "same_start_M2"),
    ("M0_Vehicle", "M2_Vehicle", "vehicle"),
    ("M0 -> M1+DEP", "M2 -> M1+DEP", "combined"),
    ("M0_DEP", "M2_DEP", "dep"),
    ("M0 -> M1", "M2 -> M1", "cross_start_polarized"),
    ("M2 -> M1", "M0 -> M1", "cross_start_polarized"),
])
def test_first_matching_rule(group1, group2, rule):
    assert match_pair(group1, group2) == rule


@pytest.mark.parametrize("group1,group2", [
    ("M0_Vehicle", "M2_DEP"),
    ("M0 -> M1", "M2 -> M1+DEP"),
    ("M0_DEP", "M2 -> M1"),
    ("M0_Vehicle", "M2 -> M1"),
])
def test_excluded_pairs(group1, group2):
    assert match_pair(group1, group2) is None
    assert match_pair(group2, group1) is None


def test_custom_policy_order_decides_label():
    policy = [MatchRule('vehicle', DEFAULT_MATCH_POLICY[2].predicate)] + DEFAULT_MATCH_POLICY
    assert match_pair("M0_Vehicle", "M2_Vehicle", policy) == 'vehicle'
    assert match_pair("M0_Vehicle", "M0_DEP", policy) == 'same_start_M0'
    assert match_pair("M0_Vehicle", "M0_DEP", []) is None
