"""
Treatment group labels and their two grouping factors.

A label such as ``"M0_Vehicle"`` or ``"M2 -> M1+DEP"`` names the starting
polarization state (``M0``/``M2``) and the exposure applied to it
(``Vehicle``, ``DEP``, the polarizing stimulus ``M1``, or ``M1+DEP``).
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..exceptions import DataLoadError

LABEL_PATTERN = re.compile(r'^(?P<starting>M\d+)\s*(?:_|->)\s*(?P<exposure>\S.*?)\s*$')
REPLICATE_SUFFIX = re.compile(r'^(?P<label>.+?)[_\s]+(?P<replicate>\d+)$')

VEHICLE = 'Vehicle'
DEP = 'DEP'


@dataclass(frozen=True)
class TreatmentGroup:
    """One combination of starting state and exposure."""
    label: str
    starting: str
    exposure: str

    @property
    def is_vehicle(self) -> bool:
        return self.exposure == VEHICLE

    @property
    def is_combined(self) -> bool:
        return '+' in self.exposure

    @property
    def is_dep_only(self) -> bool:
        return self.exposure == DEP

    @property
    def is_polarized(self) -> bool:
        """Polarizing stimulus without DEP (e.g. ``M0 -> M1``)."""
        return not (self.is_vehicle or self.is_dep_only or self.is_combined)


def parse_treatment_label(label: str) -> TreatmentGroup:
    """Split a treatment label into its starting state and exposure."""
    match = LABEL_PATTERN.match(str(label).strip())
    if match is None:
        raise DataLoadError(f"Cannot parse treatment label: {label!r}")
    return TreatmentGroup(label=str(label).strip(),
                          starting=match.group('starting'),
                          exposure=match.group('exposure'))


def split_sample_id(sample_id: str) -> Tuple[str, Optional[int]]:
    """
    Split a sample identifier into (treatment label, replicate).

    ``"M0 -> M1_3"`` gives ``("M0 -> M1", 3)``; identifiers without a
    numeric suffix give ``(sample_id, None)``.
    """
    text = str(sample_id).strip()
    match = REPLICATE_SUFFIX.match(text)
    if match is None:
        return text, None
    return match.group('label'), int(match.group('replicate'))
