# birdsync:media.py

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

import re
from typing import Iterable, Iterator, List, Tuple

from birdsync.inat import Result

_ML_ASSET_MARKER = "macaulaylibrary.org/asset/"
_ASSET_ID_RE = re.compile(r"(\d+)(?:\.\w+)?\s*$")


def normalize_asset_id(raw: str) -> str:
    """
    Reduce an ML asset reference to its catalog number.
    Examples:
      '12345' -> '12345'
      'ML12345.jpg' -> '12345'
      'https://macaulaylibrary.org/asset/12345' -> '12345'
    Falls back to the stripped string if there is no numeric tail.
    """
    s = (raw or "").strip()
    m = _ASSET_ID_RE.search(s)
    return m.group(1) if m else s


class MediaSet:
    """Ordered set of ML catalog numbers. Equality ignores order."""

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._ids: List[str] = []
        self._seen: set[str] = set()
        for raw in ids:
            self.add(raw)

    def add(self, raw: str) -> None:
        asset_id = normalize_asset_id(raw)
        if asset_id and asset_id not in self._seen:
            self._seen.add(asset_id)
            self._ids.append(asset_id)

    @property
    def ids(self) -> List[str]:
        return list(self._ids)

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._seen

    def __iter__(self) -> Iterator[str]:
        return iter(self._ids)

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MediaSet):
            return NotImplemented
        return self._seen == other._seen

    def __sub__(self, other: "MediaSet") -> "MediaSet":
        return MediaSet(i for i in self._ids if i not in other)

    def __str__(self) -> str:
        return " ".join(self._ids)

    def __repr__(self) -> str:
        return f"MediaSet({self._ids!r})"


def ebird_assets(ml_catalog_numbers: str) -> MediaSet:
    return MediaSet(ml_catalog_numbers.split())


def description_assets(description: str) -> MediaSet:
    """Catalog numbers listed as ML asset links in an observation description."""
    out = MediaSet()
    for line in description.splitlines():
        i = line.find(_ML_ASSET_MARKER)
        if i >= 0:
            out.add(line[i + len(_ML_ASSET_MARKER):])
    return out


def inat_assets(r: Result) -> MediaSet:
    if r.linked_media is not None:
        return MediaSet(r.linked_media)
    return description_assets(r.description)


def media_change(ml_catalog_numbers: str, r: Result) -> Tuple[MediaSet, str]:
    """
    Compare the eBird record's ML assets with what the iNaturalist observation has.

    Returns the assets added on the eBird side (the only actionable part) and a
    "; "-joined summary of every difference, "" when there is none. Assets
    removed from eBird and description/media count mismatches are only reported.
    """
    e_set = ebird_assets(ml_catalog_numbers)
    i_set = inat_assets(r)
    diffs: List[str] = []

    added = e_set - i_set
    if added:
        diffs.append(f"{len(added)} ML Asset IDs added to eBird: {added}")
    removed = i_set - e_set
    if removed:
        diffs.append(f"{len(removed)} ML Asset IDs removed from eBird: {removed}")

    photo_count = len(r.photos)
    sound_count = len(r.sounds)
    media_count = photo_count + sound_count
    desc_count = len(description_assets(r.description))
    if desc_count != media_count:
        diffs.append(
            f"iNat description lists {desc_count} ML Asset IDs, but observation has "
            f"{media_count} media files ({photo_count} photos + {sound_count} sounds)"
        )

    return added, "; ".join(diffs)
