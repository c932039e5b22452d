# birdsync:classifier.py

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

"""
Decides what to do with one eBird record. Checks run in a fixed order and
the first one that applies wins:

  1. parse the observation time (malformed -> MalformedRecordError)
  2. --after / --before window
  3. exact (checklist, scientific name) match -> previously synced, maybe with new media
  4. --fuzzy: same date and common or scientific name as a hand-entered observation
  5. --verifiable: no ML assets
  6. create

Classification has no side effects; sync.Syncer acts on the result.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from birdsync.config import SyncOptions
from birdsync.ebird import ObservationKey, Record
from birdsync.inat import Observation, Result, new_uuid
from birdsync.index import DestinationIndex, FuzzyKey
from birdsync.media import MediaSet, media_change
from birdsync.observation import build_observation


class Decision(str, Enum):
    TOO_EARLY = "after"
    TOO_LATE = "before"
    PREVIOUSLY_SYNCED = "previously"
    NEEDS_MEDIA = "media"
    FUZZY_DUPLICATE = "fuzzy"
    UNVERIFIABLE = "verifiable"
    CREATE = "create"

    @property
    def is_skip(self) -> bool:
        return self not in (Decision.NEEDS_MEDIA, Decision.CREATE)


@dataclass
class Classification:
    decision: Decision
    record: Record
    observed: datetime
    key: ObservationKey
    match: Optional[Result] = None
    added: MediaSet = field(default_factory=MediaSet)
    drift: str = ""
    fuzzy_hits: List[str] = field(default_factory=list)
    observation: Optional[Observation] = None
    asset_ids: List[str] = field(default_factory=list)


def fuzzy_keys(rec: Record, observed: datetime) -> List[FuzzyKey]:
    day = observed.strftime("%Y-%m-%d")
    return [FuzzyKey(day, rec.common_name), FuzzyKey(day, rec.scientific_name)]


def classify(
    rec: Record,
    idx: DestinationIndex,
    options: SyncOptions,
    make_uuid: Callable[[], str] = new_uuid,
) -> Classification:
    observed = rec.observed()
    key = rec.key()

    def result(decision: Decision, **kwargs) -> Classification:
        return Classification(decision=decision, record=rec, observed=observed, key=key, **kwargs)

    if options.after is not None and observed < options.after:
        return result(Decision.TOO_EARLY)
    if options.before is not None and observed > options.before:
        return result(Decision.TOO_LATE)

    match = idx.exact.get(key)
    if match is not None:
        added, drift = media_change(rec.ml_catalog_numbers, match)
        decision = Decision.NEEDS_MEDIA if added else Decision.PREVIOUSLY_SYNCED
        return result(decision, match=match, added=added, drift=drift)

    if options.fuzzy:
        hits = idx.fuzzy_matches(*fuzzy_keys(rec, observed))
        if hits:
            return result(Decision.FUZZY_DUPLICATE, fuzzy_hits=hits)

    asset_ids = MediaSet(rec.asset_ids()).ids
    if options.verifiable and not asset_ids:
        return result(Decision.UNVERIFIABLE)

    return result(Decision.CREATE, observation=build_observation(rec, make_uuid()), asset_ids=asset_ids)
