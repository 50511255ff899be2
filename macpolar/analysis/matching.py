"""
Curation of the group-pair comparisons that are reported and plotted.

Of the 28 pairwise comparisons between the 8 treatment groups only pairs
sharing a biological context are shown. The policy is an ordered list of
rules; a pair is kept when any rule matches and is tagged with the label of
the first rule that does. The policy only selects comparisons, it never
changes their statistics.
"""

from typing import Callable, List, NamedTuple, Optional, Sequence

import pandas as pd

from .groups import TreatmentGroup, parse_treatment_label


class MatchRule(NamedTuple):
    label: str
    predicate: Callable[[TreatmentGroup, TreatmentGroup], bool]


def _both(test):
    return lambda a, b: test(a) and test(b)


def _cross_start_polarized(a: TreatmentGroup, b: TreatmentGroup) -> bool:
    if not (a.is_polarized and b.is_polarized and a.exposure == b.exposure):
        return False
    return {a.starting, b.starting} == {'M0', 'M2'}


DEFAULT_MATCH_POLICY: List[MatchRule] = [
    MatchRule('same_start_M0', _both(lambda g: g.starting == 'M0')),
    # M2 -> M1 groups start at M2 and belong here too
    MatchRule('same_start_M2', _both(lambda g: g.starting == 'M2')),
    MatchRule('vehicle', _both(lambda g: g.is_vehicle)),
    MatchRule('combined', _both(lambda g: g.is_combined)),
    MatchRule('dep', _both(lambda g: g.is_dep_only)),
    MatchRule('cross_start_polarized', _cross_start_polarized),
]


def match_pair(group1: str, group2: str,
               policy: Optional[Sequence[MatchRule]] = None) -> Optional[str]:
    """Return the label of the first rule matching the pair, or None."""
    policy = DEFAULT_MATCH_POLICY if policy is None else policy
    a = parse_treatment_label(group1)
    b = parse_treatment_label(group2)
    for rule in policy:
        if rule.predicate(a, b):
            return rule.label
    return None


def apply_match_policy(comparisons: pd.DataFrame,
                       policy: Optional[Sequence[MatchRule]] = None) -> pd.DataFrame:
    """
    Tag comparisons with ``match`` / ``match_rule`` columns.

    Args:
        comparisons: Table with ``group1`` and ``group2`` columns
        policy: Ordered rules (defaults to DEFAULT_MATCH_POLICY)

    Returns:
        pd.DataFrame: copy of ``comparisons`` with the two columns set
    """
    comparisons = comparisons.copy()
    pairs = comparisons[['group1', 'group2']].drop_duplicates()
    lookup = {
        (g1, g2): match_pair(g1, g2, policy)
        for g1, g2 in pairs.itertuples(index=False)
    }
    comparisons['match_rule'] = [
        lookup[(g1, g2)] for g1, g2 in zip(comparisons['group1'], comparisons['group2'])
    ]
    comparisons['match'] = comparisons['match_rule'].notna()
    return comparisons


def matched_comparisons(comparisons: pd.DataFrame,
                        policy: Optional[Sequence[MatchRule]] = None) -> pd.DataFrame:
    """Keep only the comparisons selected by the policy."""
    tagged = apply_match_policy(comparisons, policy)
    return tagged[tagged['match']].reset_index(drop=True)
