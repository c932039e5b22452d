# birdsync:index.py

# MIT License
#
# Copyright (c) 2025 Jonas Waldeck
#
# Permission is hereby granted, free of charge, to any person obtaining a copy
# of this software and associated documentation files (the "Software"), to deal
# in the Software without restriction, including without limitation the rights
# to use, copy, modify, merge, publish, distribute, sublicense, and/or sell
# copies of the Software, and to permit persons to whom the Software is
# furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all
# copies or substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED "AS IS", WITHOUT WARRANTY OF ANY KIND.

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from birdsync import inat
from birdsync.ebird import ObservationKey
from birdsync.inat import Result

logger = logging.getLogger(__name__)

# Fields the index needs from GET /observations
INDEX_FIELDS = (
    "description",
    "observed_on",
    "taxon.name",
    "taxon.preferred_common_name",
    "ofvs.all",
    "photos.all",
    "sounds.all",
)


@dataclass(frozen=True)
class FuzzyKey:
    """(observed date, common or scientific name). A heuristic, never checked for emptiness."""

    observed_on: str
    name: str

    def __str__(self) -> str:
        return f"{self.observed_on}[{self.name}]"


def result_key(r: Result) -> ObservationKey:
    return ObservationKey(
        submission_id=r.field_value(inat.EBIRD_FIELD),
        scientific_name=r.field_value(inat.EBIRD_SCIENTIFIC_NAME_FIELD),
    )


@dataclass
class DestinationIndex:
    exact: Dict[ObservationKey, Result] = field(default_factory=dict)
    fuzzy: Dict[FuzzyKey, List[str]] = field(default_factory=dict)
    # (key, replaced uuid, kept uuid) for records sharing one key
    conflicts: List[Tuple[ObservationKey, str, str]] = field(default_factory=list)

    def fuzzy_matches(self, *keys: FuzzyKey) -> List[str]:
        hits: List[str] = []
        for k in keys:
            for obs_uuid in self.fuzzy.get(k, ()):
                if obs_uuid not in hits:
                    hits.append(obs_uuid)
        return hits


def build_index(results: Iterable[Result]) -> DestinationIndex:
    """
    Split downloaded observations into those created by a previous sync
    (valid key, looked up exactly) and everything else (looked up by date+name).
    Records without a valid key are indexed under both taxon names.
    """
    idx = DestinationIndex()
    fuzzy: Dict[FuzzyKey, List[str]] = defaultdict(list)

    for r in results:
        key = result_key(r)
        if key.valid():
            prev = idx.exact.get(key)
            if prev is not None:
                idx.conflicts.append((key, prev.uuid, r.uuid))
                logger.warning(
                    "Duplicate iNaturalist observations for %s: %s replaces %s (run `birdsync dedupe`)",
                    key, r.uuid, prev.uuid,
                )
            idx.exact[key] = r
            continue
        for name in (r.taxon_common_name, r.taxon_name):
            fk = FuzzyKey(r.observed_on, name)
            if r.uuid not in fuzzy[fk]:
                fuzzy[fk].append(r.uuid)

    idx.fuzzy = {k: sorted(v) for k, v in fuzzy.items()}
    logger.info(
        "Indexed %d previously synced observations and %d date/name keys (%d conflicts)",
        len(idx.exact), len(idx.fuzzy), len(idx.conflicts),
    )
    return idx
