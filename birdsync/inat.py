# birdsync:inat.py

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
import os
import re
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import requests

from birdsync.errors import RemoteError

logger = logging.getLogger(__name__)

BASE_URL = "https://api.inaturalist.org/v2"

# Observation field IDs, see
# https://www.inaturalist.org/observation_fields?order=asc&order_by=created_at
COUNT_FIELD = 1
LOCATION_FIELD = 157
COUNTY_FIELD = 245
COMMON_NAME_FIELD = 256
DISTANCE_FIELD = 396
NUM_OBSERVERS_FIELD = 2527
EBIRD_FIELD = 6033
STATE_OR_PROVINCE_FIELD = 7739
EBIRD_SCIENTIFIC_NAME_FIELD = 20215

# Max page size for GET /observations
PER_PAGE = 200

ML_ASSET_URL = "https://macaulaylibrary.org/asset/"
_ML_FILENAME_RE = re.compile(r"^ML(\d+)(\.\w+)?$")


@dataclass(frozen=True)
class ObservationFieldValue:
    observation_field_id: int
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"observation_field_id": self.observation_field_id, "value": self.value}


@dataclass
class Observation:
    """Create/update payload. Empty, zero and false fields are not sent."""

    uuid: str
    captive_flag: bool = False
    description: str = ""
    latitude: float = 0.0
    longitude: float = 0.0
    location_is_exact: bool = False
    observed_on_string: str = ""
    place_guess: str = ""
    positional_accuracy: float = 0.0
    species_guess: str = ""
    observation_field_values_attributes: List[ObservationFieldValue] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for name, value in self.__dict__.items():
            if name == "observation_field_values_attributes":
                value = [ofv.to_dict() for ofv in value]
            if value in ("", 0, 0.0, False, None, []):
                continue
            out[name] = value
        return out


@dataclass(frozen=True)
class Ofv:
    field_id: int
    value: str
    name: str = ""


@dataclass(frozen=True)
class Media:
    id: int
    url: str = ""
    original_filename: str = ""


@dataclass(frozen=True)
class Result:
    """One observation as returned by GET /observations (only requested fields are set)."""

    uuid: str
    observed_on: str = ""
    description: str = ""
    taxon_name: str = ""
    taxon_common_name: str = ""
    created_at: str = ""
    identifications_count: int = 0
    positional_accuracy: int = 0
    quality_grade: str = ""
    ofvs: Tuple[Ofv, ...] = ()
    photos: Tuple[Media, ...] = ()
    sounds: Tuple[Media, ...] = ()
    # ML catalog numbers attached as first-class media; None when unknown
    linked_media: Optional[Tuple[str, ...]] = None

    @classmethod
    def from_json(cls, d: Dict[str, Any]) -> "Result":
        taxon = d.get("taxon") or {}
        photos = tuple(_media_from_json(p, "url") for p in (d.get("photos") or []))
        sounds = tuple(_media_from_json(s, "file_url") for s in (d.get("sounds") or []))
        return cls(
            uuid=str(d.get("uuid") or ""),
            observed_on=d.get("observed_on") or "",
            description=d.get("description") or "",
            taxon_name=taxon.get("name") or "",
            taxon_common_name=taxon.get("preferred_common_name") or "",
            created_at=d.get("created_at") or "",
            identifications_count=int(d.get("identifications_count") or 0),
            positional_accuracy=int(d.get("positional_accuracy") or 0),
            quality_grade=d.get("quality_grade") or "",
            ofvs=tuple(
                Ofv(field_id=int(o.get("field_id") or 0), value=str(o.get("value") or ""), name=o.get("name") or "")
                for o in (d.get("ofvs") or [])
            ),
            photos=photos,
            sounds=sounds,
            linked_media=_linked_media(photos + sounds),
        )

    def field_value(self, field_id: int) -> str:
        """Value of the observation field, or "" if absent."""
        for ofv in self.ofvs:
            if ofv.field_id == field_id:
                return ofv.value
        return ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "uuid": self.uuid,
            "observed_on": self.observed_on,
            "created_at": self.created_at,
            "description": self.description,
            "taxon": {"name": self.taxon_name, "preferred_common_name": self.taxon_common_name},
            "identifications_count": self.identifications_count,
            "positional_accuracy": self.positional_accuracy,
            "quality_grade": self.quality_grade,
            "ofvs": [{"field_id": o.field_id, "name": o.name, "value": o.value} for o in self.ofvs],
            "photos": [{"id": p.id, "url": p.url} for p in self.photos],
            "sounds": [{"id": s.id, "file_url": s.url} for s in self.sounds],
        }


def _media_from_json(d: Dict[str, Any], url_key: str) -> Media:
    return Media(
        id=int(d.get("id") or 0),
        url=d.get(url_key) or "",
        original_filename=d.get("original_filename") or "",
    )


def _linked_media(media: Tuple[Media, ...]) -> Optional[Tuple[str, ...]]:
    """
    Catalog numbers from uploaded file names (ML<id>.<ext>), only when every
    attachment carries one. Older observations fall back to the description.
    """
    if not media:
        return None
    ids = []
    for m in media:
        match = _ML_FILENAME_RE.match(m.original_filename)
        if not match:
            return None
        ids.append(match.group(1))
    return tuple(ids)


def throttle(min_interval_s: float, state: Dict[str, float]) -> None:
    """
    Simple in-process throttle; iNaturalist asks for about one request per second.
    """
    last = state.get("last_ts", 0.0)
    now = time.time()
    wait = (last + min_interval_s) - now
    if wait > 0:
        time.sleep(wait)
    state["last_ts"] = time.time()


@dataclass(frozen=True)
class INatClient:
    api_token: str
    user_agent: str
    base_url: str = BASE_URL
    timeout_s: int = 180
    min_interval_s: float = 1.0
    _throttle_state: Dict[str, float] = field(default_factory=dict, compare=False, repr=False)

    def _headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Authorization": self.api_token,
            "Accept": "application/json",
        }

    def _send(self, operation: str, method: str, path: str, **kwargs: Any) -> requests.Response:
        throttle(self.min_interval_s, self._throttle_state)
        url = self.base_url.rstrip("/") + path
        logger.debug("%s %s", method, url)
        resp = requests.request(method, url, headers=self._headers(), timeout=self.timeout_s, **kwargs)
        if resp.status_code != 200:
            raise RemoteError(operation, resp.status_code, resp.text or "")
        return resp

    def download_observations(
        self,
        user_id: str,
        d1: Optional[date] = None,
        d2: Optional[date] = None,
        *fields: str,
    ) -> List[Result]:
        """
        Download all observations for user_id observed between d1 and d2 (if set),
        following pages until total_results is reached. fields selects which
        attributes the API populates.
        """
        results: List[Result] = []
        total = 0
        page = 1
        while True:
            params: Dict[str, str] = {
                "user_id": user_id,
                "page": str(page),
                "per_page": str(PER_PAGE),
            }
            if d1 is not None:
                params["d1"] = d1.strftime("%Y-%m-%d")
            if d2 is not None:
                params["d2"] = d2.strftime("%Y-%m-%d")
            if fields:
                params["fields"] = ",".join(fields)

            payload = self._send("DownloadObservations", "GET", "/observations", params=params).json()
            batch = payload.get("results") or []
            if not total:
                total = int(payload.get("total_results") or 0)
            if total == 0 or not batch:
                break
            results.extend(Result.from_json(r) for r in batch)
            logger.info("Fetched %d of %d observations", len(results), total)
            if len(results) >= total:
                break
            page += 1
        return results

    def create_observation(self, obs: Observation) -> None:
        self._send("CreateObservation", "POST", "/observations", json={"observation": obs.to_dict()})
        logger.info("Created https://www.inaturalist.org/observations/%s", obs.uuid)

    def update_observation(self, obs: Observation) -> None:
        body = {"observation": obs.to_dict(), "ignore_photos": True}
        self._send("UpdateObservation", "PUT", f"/observations/{obs.uuid}", json=body)
        logger.info("Updated https://www.inaturalist.org/observations/%s", obs.uuid)

    def delete_observation(self, obs_uuid: str) -> None:
        self._send("DeleteObservation", "DELETE", f"/observations/{obs_uuid}")
        logger.info("Deleted https://www.inaturalist.org/observations/%s", obs_uuid)

    def upload_media(self, filename: str, is_photo: bool, asset_id: str, obs_uuid: str) -> None:
        kind = "photo" if is_photo else "sound"
        dest_name = f"ML{asset_id}{os.path.splitext(filename)[1]}"
        logger.info("Uploading %s as %s", kind, dest_name)
        with open(filename, "rb") as f:
            self._send(
                f"UploadMedia({asset_id})",
                "POST",
                f"/observation_{kind}s",
                files={"file": (dest_name, f)},
                data={f"observation_{kind}[observation_id]": obs_uuid},
            )


def new_uuid() -> str:
    return str(uuid.uuid4())
