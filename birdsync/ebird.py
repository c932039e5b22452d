# birdsync:ebird.py

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
eBird side of the sync: MyEBirdData export records and Macaulay Library assets.

The export is a CSV whose rows may be shorter than its header (trailing
empty columns are dropped), so every column is read by name and a missing
column reads as "".
"""

from __future__ import annotations

import csv
import io
import logging
import mimetypes
import os
import tempfile
import zipfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Tuple

import requests

from birdsync.errors import MalformedRecordError, RemoteError, SourceFileError

logger = logging.getLogger(__name__)

# Approximate radius of a typical eBird hotspot, in metres.
POSITIONAL_ACCURACY = 500

# MyEBirdData.csv column names
SUBMISSION_ID = "Submission ID"
COMMON_NAME = "Common Name"
SCIENTIFIC_NAME = "Scientific Name"
TAXONOMIC_ORDER = "Taxonomic Order"
COUNT = "Count"
STATE_PROVINCE = "State/Province"
COUNTY = "County"
LOCATION_ID = "Location ID"
LOCATION = "Location"
LATITUDE = "Latitude"
LONGITUDE = "Longitude"
DATE = "Date"
TIME = "Time"
PROTOCOL = "Protocol"
DURATION_MIN = "Duration (Min)"
ALL_OBS_REPORTED = "All Obs Reported"
DISTANCE_TRAVELED_KM = "Distance Traveled (km)"
AREA_COVERED_HA = "Area Covered (ha)"
NUMBER_OF_OBSERVERS = "Number of Observers"
BREEDING_CODE = "Breeding Code"
OBSERVATION_DETAILS = "Observation Details"
CHECKLIST_COMMENTS = "Checklist Comments"
ML_CATALOG_NUMBERS = "ML Catalog Numbers"

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y")
TIME_FORMAT = "%I:%M %p"


@dataclass(frozen=True)
class ObservationKey:
    """
    Identifies one eBird observation as (checklist, eBird scientific name).

    eBird scientific names may differ from iNaturalist taxa, e.g.
    "Cairina moschata (Domestic type)", "Aythya marila/affinis", "Melanitta sp.",
    so they are compared verbatim.
    """

    submission_id: str
    scientific_name: str

    def valid(self) -> bool:
        return self.submission_id != "" and self.scientific_name != ""

    def __str__(self) -> str:
        return f"{self.submission_id}[{self.scientific_name}]"


@dataclass(frozen=True)
class Record:
    line: int
    submission_id: str = ""
    common_name: str = ""
    scientific_name: str = ""
    taxonomic_order: str = ""
    count: str = ""  # "X" or integer
    state_province: str = ""
    county: str = ""
    location_id: str = ""
    location: str = ""
    latitude: str = ""
    longitude: str = ""
    date: str = ""  # 2023-01-02 or 1/2/2023
    time: str = ""  # 07:00 AM
    protocol: str = ""
    duration_min: str = ""
    all_obs_reported: str = ""
    distance_traveled_km: str = ""
    area_covered_ha: str = ""
    number_of_observers: str = ""
    breeding_code: str = ""
    observation_details: str = ""
    checklist_comments: str = ""
    ml_catalog_numbers: str = ""

    def key(self) -> ObservationKey:
        return ObservationKey(self.submission_id, self.scientific_name)

    def observed(self) -> datetime:
        """Observation time; midnight when the checklist has no start time."""
        last_err: Exception | None = None
        for date_fmt in DATE_FORMATS:
            try:
                if not self.time:
                    return datetime.strptime(self.date, date_fmt)
                return datetime.strptime(f"{self.date} {self.time}", f"{date_fmt} {TIME_FORMAT}")
            except ValueError as e:
                last_err = e
        raise MalformedRecordError(self.line, f"invalid date/time {self.date!r} {self.time!r}: {last_err}")

    def asset_ids(self) -> List[str]:
        return self.ml_catalog_numbers.split()

    def column(self, name: str) -> str:
        """Value of an export column by its header name."""
        return getattr(self, _ATTR_BY_COLUMN[name])

    def float_field(self, column: str) -> float:
        raw = self.column(column)
        if raw == "":
            return 0.0
        try:
            return float(raw)
        except ValueError:
            raise MalformedRecordError(self.line, f"invalid number for {column}: {raw!r}") from None


_ATTR_BY_COLUMN: Dict[str, str] = {
    SUBMISSION_ID: "submission_id",
    COMMON_NAME: "common_name",
    SCIENTIFIC_NAME: "scientific_name",
    TAXONOMIC_ORDER: "taxonomic_order",
    COUNT: "count",
    STATE_PROVINCE: "state_province",
    COUNTY: "county",
    LOCATION_ID: "location_id",
    LOCATION: "location",
    LATITUDE: "latitude",
    LONGITUDE: "longitude",
    DATE: "date",
    TIME: "time",
    PROTOCOL: "protocol",
    DURATION_MIN: "duration_min",
    ALL_OBS_REPORTED: "all_obs_reported",
    DISTANCE_TRAVELED_KM: "distance_traveled_km",
    AREA_COVERED_HA: "area_covered_ha",
    NUMBER_OF_OBSERVERS: "number_of_observers",
    BREEDING_CODE: "breeding_code",
    OBSERVATION_DETAILS: "observation_details",
    CHECKLIST_COMMENTS: "checklist_comments",
    ML_CATALOG_NUMBERS: "ml_catalog_numbers",
}


def _read_export_text(path: Path) -> str:
    if not path.exists():
        raise SourceFileError(f"Missing eBird export: {path}")

    if path.suffix.lower() == ".zip":
        with zipfile.ZipFile(path, "r") as zf:
            csv_names = [n for n in zf.namelist() if n.lower().endswith(".csv")]
            if not csv_names:
                raise SourceFileError(f"No .csv found inside {path}")
            # pick the largest csv if multiple
            csv_names.sort(key=lambda n: zf.getinfo(n).file_size, reverse=True)
            raw = zf.read(csv_names[0])
    else:
        raw = path.read_bytes()
    return raw.decode("utf-8-sig", errors="replace")


def _detect_delimiter(first_line: str) -> str:
    if "\t" in first_line:
        return "\t"
    if ";" in first_line and "," not in first_line:
        return ";"
    return ","


def read_records(path: Path) -> Iterator[Record]:
    """
    Open the eBird export (.csv or the .zip it is delivered in) and return a
    single-pass iterator of records. File problems raise immediately, not on
    first iteration.
    """
    text = _read_export_text(Path(path))
    lines = text.splitlines()
    if not lines or not lines[0].strip():
        raise SourceFileError(f"No records found in {path}")

    reader = csv.DictReader(io.StringIO(text), delimiter=_detect_delimiter(lines[0]), restval="")
    header = [(h or "").strip() for h in (reader.fieldnames or [])]
    missing = [c for c in (SUBMISSION_ID, SCIENTIFIC_NAME, DATE) if c not in header]
    if missing:
        raise SourceFileError(f"{path} is not an eBird export: missing columns {missing}")
    logger.info("Reading eBird observations from %s", path)
    return _iter_rows(reader)


def _iter_rows(reader: csv.DictReader) -> Iterator[Record]:
    for row in reader:
        # header was line 1; quoted multi-line fields advance line_num further
        values = {(k or "").strip(): (v or "") for k, v in row.items() if k is not None}
        fields = {attr: values.get(col, "") for col, attr in _ATTR_BY_COLUMN.items()}
        yield Record(line=reader.line_num, **fields)


def _sniff_image_ext(head: bytes) -> str:
    if head.startswith(b"\xff\xd8\xff"):
        return ".jpg"
    if head.startswith(b"\x89PNG\r\n\x1a\n"):
        return ".png"
    if head[:6] in (b"GIF87a", b"GIF89a"):
        return ".gif"
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return ".webp"
    return ""


@dataclass(frozen=True)
class MLAssetFetcher:
    """
    Downloads Macaulay Library assets by catalog number (digits only).

    The catalog number doesn't say whether the asset is a photo or a sound,
    so the photo rendition is tried first and the sound rendition on 404.
    """

    base_url: str = "https://cdn.download.ams.birds.cornell.edu/api/v2/asset"
    timeout_s: int = 120

    def download(self, asset_id: str) -> Tuple[str, bool]:
        """Return (local temp file path, is_photo). The caller owns the file."""
        base = self.base_url.rstrip("/")
        url = f"{base}/{asset_id}/2400"
        resp = requests.get(url, timeout=self.timeout_s)
        is_photo = resp.status_code == 200
        if resp.status_code == 404:
            url = f"{base}/{asset_id}/mp3"
            resp = requests.get(url, timeout=self.timeout_s)
        if resp.status_code != 200:
            raise RemoteError(f"DownloadMLAsset({asset_id}) {url}", resp.status_code, resp.text or "")

        body = resp.content
        ext = ".mp3"
        if is_photo:
            ctype = (resp.headers.get("Content-Type") or "").split(";")[0].strip()
            ext = (mimetypes.guess_extension(ctype) if ctype.startswith("image/") else None) or _sniff_image_ext(body[:512])
            if not ext:
                raise RemoteError(f"DownloadMLAsset({asset_id})", None, f"unrecognized image content type {ctype!r}")

        fd, tmp_path = tempfile.mkstemp(prefix="birdsync", suffix=ext)
        with os.fdopen(fd, "wb") as f:
            f.write(body)
        logger.debug("Downloaded ML%s to %s (%d bytes, photo=%s)", asset_id, tmp_path, len(body), is_photo)
        return tmp_path, is_photo
