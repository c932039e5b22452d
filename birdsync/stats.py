# birdsync:stats.py

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
from dataclasses import asdict, dataclass
from typing import List


@dataclass
class RunStats:
    total_records: int = 0
    after_skips: int = 0  # observed before --after
    before_skips: int = 0  # observed after --before
    previously_skips: int = 0
    fuzzy_skips: int = 0
    verifiable_skips: int = 0
    created_observations: int = 0
    updated_observations: int = 0
    uploaded_photos: int = 0
    uploaded_sounds: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    def report_lines(self, dry_run: bool = False) -> List[str]:
        lines = [f"Processed {self.total_records} eBird records" + (" (dry run, nothing written)" if dry_run else "")]
        skips = [
            (self.after_skips, "observed before --after"),
            (self.before_skips, "observed after --before"),
            (self.previously_skips, "previously synced"),
            (self.fuzzy_skips, "fuzzy matched an existing iNaturalist observation"),
            (self.verifiable_skips, "unverifiable (no photos or sounds)"),
        ]
        for n, why in skips:
            if n:
                lines.append(f"Skipped {n} records {why}")
        lines.append(f"Created {self.created_observations} iNaturalist observations")
        lines.append(f"Updated {self.updated_observations} iNaturalist observations with new media")
        lines.append(f"Uploaded {self.uploaded_photos} photos and {self.uploaded_sounds} sounds")
        return lines


def log_report(stats: RunStats, logger: logging.Logger, dry_run: bool = False) -> None:
    for line in stats.report_lines(dry_run=dry_run):
        logger.info("%s", line)
