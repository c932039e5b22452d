# birdsync:observation.py

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

from typing import Iterable, List

from birdsync import ebird, inat
from birdsync.ebird import Record
from birdsync.inat import Observation, ObservationFieldValue

CREATED_BY = "Observation created using birdsync"

# (iNat observation field, eBird column) copied verbatim onto new observations
_FIELD_COLUMNS = [
    (inat.COUNT_FIELD, ebird.COUNT),
    (inat.COMMON_NAME_FIELD, ebird.COMMON_NAME),
    (inat.LOCATION_FIELD, ebird.LOCATION),
    (inat.COUNTY_FIELD, ebird.COUNTY),
    (inat.STATE_OR_PROVINCE_FIELD, ebird.STATE_PROVINCE),
    (inat.NUM_OBSERVERS_FIELD, ebird.NUMBER_OF_OBSERVERS),
    (inat.EBIRD_FIELD, ebird.SUBMISSION_ID),
    (inat.EBIRD_SCIENTIFIC_NAME_FIELD, ebird.SCIENTIFIC_NAME),
]


def asset_line(asset_id: str) -> str:
    return f"Macaulay Library Asset: {inat.ML_ASSET_URL}{asset_id}"


def with_asset_lines(description: str, asset_ids: Iterable[str]) -> str:
    lines = [asset_line(a) for a in asset_ids]
    if not lines:
        return description
    if description and not description.endswith("\n"):
        description += "\n"
    return description + "\n".join(lines) + "\n"


def build_description(rec: Record) -> str:
    out: List[str] = [CREATED_BY]
    if rec.observation_details:
        out += ["eBird observation details:", rec.observation_details]
    out.append(f"Checklist: https://ebird.org/checklist/{rec.submission_id}")
    out.append(f"Protocol: {rec.protocol}")
    if rec.checklist_comments:
        out += ["eBird checklist comments:", rec.checklist_comments]
    return "\n".join(out) + "\n"


def build_observation(rec: Record, obs_uuid: str) -> Observation:
    """New iNaturalist observation for an eBird record, without its media."""
    return Observation(
        uuid=obs_uuid,
        captive_flag=False,  # eBird checklists only include wild birds
        description=build_description(rec),
        latitude=rec.float_field(ebird.LATITUDE),
        longitude=rec.float_field(ebird.LONGITUDE),
        location_is_exact=False,
        observed_on_string=f"{rec.date} {rec.time}".strip(),
        place_guess=rec.location,
        positional_accuracy=ebird.POSITIONAL_ACCURACY,
        species_guess=rec.scientific_name,
        observation_field_values_attributes=[
            ObservationFieldValue(field_id, rec.column(column))
            for field_id, column in _FIELD_COLUMNS
        ],
    )
