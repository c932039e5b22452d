# birdsync:sync.py

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
Sync eBird observations and their Macaulay Library media to iNaturalist.

1) download the user's iNaturalist observations once and index them
2) read the eBird export one record at a time
3) classify each record (see classifier.py) and act on it:
   create the observation, upload its media, then list the media in its
   description; or upload media added on eBird since the last sync

Any failure aborts the run. A rerun is safe: records created before the
failure are recognized as previously synced.

Known limitation: an observation whose eBird scientific name field is edited
on iNaturalist is no longer recognized and will be created again.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable, Iterable, List, Protocol, Tuple

from birdsync.classifier import Classification, Decision, classify
from birdsync.config import SyncOptions
from birdsync.ebird import read_records, Record
from birdsync.inat import Observation, Result, new_uuid
from birdsync.index import INDEX_FIELDS, DestinationIndex, build_index
from birdsync.observation import with_asset_lines
from birdsync.stats import RunStats

logger = logging.getLogger(__name__)


class DestinationClient(Protocol):
    def download_observations(self, user_id: str, d1=None, d2=None, *fields: str) -> List[Result]: ...

    def create_observation(self, obs: Observation) -> None: ...

    def update_observation(self, obs: Observation) -> None: ...

    def upload_media(self, filename: str, is_photo: bool, asset_id: str, obs_uuid: str) -> None: ...


class AssetFetcher(Protocol):
    def download(self, asset_id: str) -> Tuple[str, bool]: ...


_SKIP_COUNTERS = {
    Decision.TOO_EARLY: "after_skips",
    Decision.TOO_LATE: "before_skips",
    Decision.PREVIOUSLY_SYNCED: "previously_skips",
    Decision.FUZZY_DUPLICATE: "fuzzy_skips",
    Decision.UNVERIFIABLE: "verifiable_skips",
}


class Syncer:
    def __init__(
        self,
        client: DestinationClient,
        fetcher: AssetFetcher,
        index: DestinationIndex,
        options: SyncOptions,
        make_uuid: Callable[[], str] = new_uuid,
    ) -> None:
        options.validate()
        self.client = client
        self.fetcher = fetcher
        self.index = index
        self.options = options
        self.make_uuid = make_uuid
        self.stats = RunStats()

    def run(self, records: Iterable[Record]) -> RunStats:
        for rec in records:
            self.stats.total_records += 1
            self.handle(classify(rec, self.index, self.options, self.make_uuid))
        return self.stats

    def handle(self, c: Classification) -> None:
        rec = c.record
        if c.decision in (Decision.PREVIOUSLY_SYNCED, Decision.NEEDS_MEDIA):
            self.stats.previously_skips += 1
            logger.info(
                "Already synced %s (line %d) to iNaturalist: https://www.inaturalist.org/observations/%s",
                c.key, rec.line, c.match.uuid if c.match else "?",
            )
            if c.drift:
                logger.warning("Media changed for %s: %s", c.key, c.drift)
            if c.decision is Decision.NEEDS_MEDIA:
                self._add_media(c)
            return

        counter = _SKIP_COUNTERS.get(c.decision)
        if counter is not None:
            setattr(self.stats, counter, getattr(self.stats, counter) + 1)
            if c.decision is Decision.FUZZY_DUPLICATE:
                logger.info("Skipping %s (line %d): fuzzy match with %s", c.key, rec.line, ", ".join(c.fuzzy_hits))
            else:
                logger.info("Skipping %s (line %d): %s", c.key, rec.line, c.decision.value)
            return

        self._create(c)

    def _create(self, c: Classification) -> None:
        obs = c.observation
        assert obs is not None
        logger.info(
            "Syncing eBird observation %s (line %d) to iNaturalist (%d media)",
            c.key, c.record.line, len(c.asset_ids),
        )
        if not self.options.dry_run:
            self.client.create_observation(obs)
        self.stats.created_observations += 1

        self._transfer(c.asset_ids, obs.uuid)
        if c.asset_ids and not self.options.dry_run:
            self.client.update_observation(
                Observation(uuid=obs.uuid, description=with_asset_lines(obs.description, c.asset_ids))
            )

    def _add_media(self, c: Classification) -> None:
        match = c.match
        assert match is not None
        added = c.added.ids
        logger.info("Adding %d media to %s: %s", len(added), match.uuid, " ".join(added))
        self._transfer(added, match.uuid)
        if not self.options.dry_run:
            self.client.update_observation(
                Observation(uuid=match.uuid, description=with_asset_lines(match.description, added))
            )
        self.stats.updated_observations += 1

    def _transfer(self, asset_ids: List[str], obs_uuid: str) -> None:
        """Download each ML asset and attach it to the observation, in order."""
        for asset_id in asset_ids:
            filename, is_photo = self.fetcher.download(asset_id)
            try:
                if not self.options.dry_run:
                    self.client.upload_media(filename, is_photo, asset_id, obs_uuid)
            finally:
                _remove_quietly(filename)
            if is_photo:
                self.stats.uploaded_photos += 1
            else:
                self.stats.uploaded_sounds += 1


def _remove_quietly(path: str) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


def load_index(
    client: DestinationClient, user_id: str, options: SyncOptions
) -> DestinationIndex:
    d1 = options.after.date() if options.after else None
    d2 = options.before.date() if options.before else None
    logger.info("Downloading observations for %s", user_id)
    results = client.download_observations(user_id, d1, d2, *INDEX_FIELDS)
    logger.info("Downloaded %d observations", len(results))
    return build_index(results)


def sync(
    export_path: Path,
    client: DestinationClient,
    fetcher: AssetFetcher,
    user_id: str,
    options: SyncOptions,
) -> RunStats:
    """Run one full sync of export_path for user_id."""
    options.validate()
    records = read_records(export_path)
    index = load_index(client, user_id, options)
    return Syncer(client, fetcher, index, options).run(records)
