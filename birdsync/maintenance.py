# birdsync:maintenance.py

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
One-off fixes for observations created by earlier syncs. Each tool is split
into a plan (pure, from downloaded observations) and an apply step that only
writes when asked to.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from birdsync import ebird, inat
from birdsync.ebird import ObservationKey, Record
from birdsync.inat import INatClient, Observation, ObservationFieldValue, Result
from birdsync.index import result_key

logger = logging.getLogger(__name__)

DEDUPE_FIELDS = ("created_at", "identifications_count", "ofvs.all")
PURGE_FIELDS = ("photos", "sounds", "quality_grade", "ofvs.all")
POSITION_FIELDS = ("ofvs.all", "positional_accuracy")
REPAIR_FIELDS = ("taxon.name", "ofvs.all")
DUMP_FIELDS = ("description", "observed_on", "photos.all", "sounds.all", "taxon.name", "ofvs.all")

# iNaturalist taxon name -> eBird scientific name, where they differ
TAXON_TO_EBIRD_NAME = {
    "Columba livia domestica": "Columba livia (Feral Pigeon)",
    "Larinae": "Larinae sp.",
}


def synced(results: Iterable[Result]) -> Iterable[Tuple[ObservationKey, Result]]:
    for r in results:
        key = result_key(r)
        if key.valid():
            yield key, r


@dataclass(frozen=True)
class DedupeGroup:
    key: ObservationKey
    keep: Result
    drop: Tuple[Result, ...]


def plan_dedupe(results: Iterable[Result]) -> List[DedupeGroup]:
    """
    Find observations sharing one (checklist, scientific name). Keep the one
    with the most identifications, then the earliest created.
    """
    groups: Dict[ObservationKey, List[Result]] = defaultdict(list)
    for key, r in synced(results):
        groups[key].append(r)

    plan: List[DedupeGroup] = []
    for key in sorted(groups, key=str):
        rs = groups[key]
        if len(rs) < 2:
            continue
        rs = sorted(rs, key=lambda r: (-r.identifications_count, r.created_at))
        plan.append(DedupeGroup(key=key, keep=rs[0], drop=tuple(rs[1:])))
    return plan


def plan_purge(results: Iterable[Result]) -> List[Result]:
    """Synced observations with neither photos nor sounds."""
    return [r for _, r in synced(results) if not r.photos and not r.sounds]


def plan_position(results: Iterable[Result], accuracy: int = ebird.POSITIONAL_ACCURACY) -> List[Result]:
    return [r for _, r in synced(results) if r.positional_accuracy != accuracy]


@dataclass(frozen=True)
class Repair:
    result: Result
    scientific_name: str
    via_mapping: bool = False


def checklist_names(records: Iterable[Record]) -> Dict[str, Set[str]]:
    out: Dict[str, Set[str]] = defaultdict(set)
    for rec in records:
        out[rec.submission_id].add(rec.scientific_name)
    return dict(out)


def plan_repair(results: Iterable[Result], names: Dict[str, Set[str]]) -> Tuple[List[Repair], List[Result]]:
    """
    Observations created before the eBird scientific name field was recorded
    have a checklist ID only. Recover the name from the taxon when the
    checklist lists it, directly or through TAXON_TO_EBIRD_NAME.
    Returns (repairs, observations that can't be repaired).
    """
    repairs: List[Repair] = []
    unknown: List[Result] = []
    for r in results:
        checklist = r.field_value(inat.EBIRD_FIELD)
        if not checklist or r.field_value(inat.EBIRD_SCIENTIFIC_NAME_FIELD):
            continue
        on_checklist = names.get(checklist, set())
        if r.taxon_name in on_checklist:
            repairs.append(Repair(r, r.taxon_name))
            continue
        mapped = TAXON_TO_EBIRD_NAME.get(r.taxon_name, "")
        if mapped and mapped in on_checklist:
            repairs.append(Repair(r, mapped, via_mapping=True))
            continue
        unknown.append(r)
    return repairs, unknown


def apply_dedupe(client: INatClient, plan: List[DedupeGroup], apply: bool) -> int:
    n = 0
    for g in plan:
        logger.info("%s keeping %s", g.key, g.keep.uuid)
        for r in g.drop:
            logger.info("%s deleting duplicate %s", g.key, r.uuid)
            if apply:
                client.delete_observation(r.uuid)
            n += 1
    return n


def apply_purge(client: INatClient, plan: List[Result], apply: bool) -> int:
    for r in plan:
        logger.info("Deleting %s (%s, no photos or sounds)", r.uuid, r.quality_grade or "unknown grade")
        if apply:
            client.delete_observation(r.uuid)
    return len(plan)


def apply_position(
    client: INatClient, plan: List[Result], apply: bool, accuracy: int = ebird.POSITIONAL_ACCURACY
) -> int:
    for r in plan:
        logger.info("%s positional accuracy %d -> %d", r.uuid, r.positional_accuracy, accuracy)
        if apply:
            client.update_observation(Observation(uuid=r.uuid, positional_accuracy=accuracy))
    return len(plan)


def apply_repair(client: INatClient, repairs: List[Repair], unknown: List[Result], apply: bool) -> int:
    for rep in repairs:
        how = "mapped name" if rep.via_mapping else "taxon name"
        logger.info("Set %s eBird scientific name to %s %s", rep.result.uuid, how, rep.scientific_name)
        if apply:
            client.update_observation(
                Observation(
                    uuid=rep.result.uuid,
                    observation_field_values_attributes=[
                        ObservationFieldValue(inat.EBIRD_SCIENTIFIC_NAME_FIELD, rep.scientific_name)
                    ],
                )
            )
    for r in unknown:
        logger.warning(
            "Can't repair %s: taxon name %s is not on checklist %s",
            r.uuid, r.taxon_name, r.field_value(inat.EBIRD_FIELD),
        )
    return len(repairs)
