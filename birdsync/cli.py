# birdsync:cli.py

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

import argparse
import json
import logging
from pathlib import Path
from typing import List, Optional

import requests

from birdsync import maintenance
from birdsync.config import USER_AGENT, Config, SyncOptions, parse_bound
from birdsync.ebird import MLAssetFetcher, read_records
from birdsync.errors import ConfigError, SyncError
from birdsync.inat import INatClient
from birdsync.logging_utils import setup_logger
from birdsync.stats import log_report
from birdsync.sync import sync


def _bound(s: str):
    try:
        return parse_bound(s)
    except ConfigError as e:
        raise argparse.ArgumentTypeError(str(e)) from None


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="birdsync", description="Sync eBird observations and media to iNaturalist.")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("sync", help="Create iNaturalist observations for an eBird export")
    p.add_argument("export", type=str, help="MyEBirdData.csv or the .zip it was downloaded as")
    p.add_argument("--after", type=_bound, default=None, help="Only sync observations on or after this date/time")
    p.add_argument("--before", type=_bound, default=None, help="Only sync observations on or before this date/time")
    p.add_argument("--fuzzy", action="store_true", help="Skip records matching a hand-entered observation by date and name")
    p.add_argument("--verifiable", action="store_true", help="Skip records without photos or sounds")
    p.add_argument("--dry-run", action="store_true", help="Classify and report, but don't write to iNaturalist")
    p.set_defaults(func=_cmd_sync)

    for name, helptext, func in (
        ("dedupe", "Delete duplicate synced observations", _cmd_dedupe),
        ("purge", "Delete synced observations without photos or sounds", _cmd_purge),
        ("position", "Reset positional accuracy of synced observations", _cmd_position),
    ):
        p = sub.add_parser(name, help=helptext)
        p.add_argument("--apply", action="store_true", help="Make changes (default is a dry run)")
        p.set_defaults(func=func)

    p = sub.add_parser("repair", help="Fill in missing eBird scientific names")
    p.add_argument("export", type=str, help="MyEBirdData.csv or .zip")
    p.add_argument("--apply", action="store_true", help="Make changes (default is a dry run)")
    p.set_defaults(func=_cmd_repair)

    p = sub.add_parser("dump", help="Print downloaded observations as JSON")
    p.set_defaults(func=_cmd_dump)
    return ap


def _cmd_sync(args: argparse.Namespace, cfg: Config, client: INatClient, logger: logging.Logger) -> int:
    options = SyncOptions(
        after=args.after,
        before=args.before,
        fuzzy=args.fuzzy,
        verifiable=args.verifiable,
        dry_run=args.dry_run,
    )
    options.validate()
    fetcher = MLAssetFetcher(base_url=cfg.ml_asset_base_url)
    stats = sync(Path(args.export).expanduser().resolve(), client, fetcher, cfg.user_id, options)
    log_report(stats, logger, dry_run=options.dry_run)
    return 0


def _cmd_dedupe(args, cfg, client, logger) -> int:
    results = client.download_observations(cfg.user_id, None, None, *maintenance.DEDUPE_FIELDS)
    logger.info("Downloaded %d observations", len(results))
    n = maintenance.apply_dedupe(client, maintenance.plan_dedupe(results), args.apply)
    logger.info("%s %d duplicates", "Deleted" if args.apply else "Would delete", n)
    return 0


def _cmd_purge(args, cfg, client, logger) -> int:
    results = client.download_observations(cfg.user_id, None, None, *maintenance.PURGE_FIELDS)
    n = maintenance.apply_purge(client, maintenance.plan_purge(results), args.apply)
    logger.info("%s %d observations without media", "Deleted" if args.apply else "Would delete", n)
    return 0


def _cmd_position(args, cfg, client, logger) -> int:
    results = client.download_observations(cfg.user_id, None, None, *maintenance.POSITION_FIELDS)
    n = maintenance.apply_position(client, maintenance.plan_position(results), args.apply)
    logger.info("%s %d observations", "Updated" if args.apply else "Would update", n)
    return 0


def _cmd_repair(args, cfg, client, logger) -> int:
    names = maintenance.checklist_names(read_records(Path(args.export).expanduser().resolve()))
    logger.info("Read %d eBird checklists", len(names))
    results = client.download_observations(cfg.user_id, None, None, *maintenance.REPAIR_FIELDS)
    repairs, unknown = maintenance.plan_repair(results, names)
    n = maintenance.apply_repair(client, repairs, unknown, args.apply)
    logger.info("%s %d observations, %d unrepairable", "Repaired" if args.apply else "Would repair", n, len(unknown))
    return 0


def _cmd_dump(args, cfg, client, logger) -> int:
    for r in client.download_observations(cfg.user_id, None, None, *maintenance.DUMP_FIELDS):
        print(json.dumps(r.to_dict(), ensure_ascii=False, indent=2))
    return 0


def main(argv: Optional[List[str]] = None, repo_root: Optional[Path] = None) -> int:
    args = build_parser().parse_args(argv)
    cfg = Config(repo_root=repo_root or Path.cwd())
    logger = setup_logger("birdsync", cfg.logs_dir, cfg.log_level, cfg.log_to_console)

    try:
        cfg.require_credentials()
    except ConfigError as e:
        logger.error("%s", e)
        return 2

    client = INatClient(api_token=cfg.api_token, user_agent=USER_AGENT, base_url=cfg.base_url)
    try:
        return args.func(args, cfg, client, logger)
    except ConfigError as e:
        logger.error("%s", e)
        return 2
    except (SyncError, requests.RequestException) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
