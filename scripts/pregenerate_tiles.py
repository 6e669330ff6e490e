#!/usr/bin/env python3
# scripts/pregenerate_tiles.py

import argparse
import json
import logging
import sys
from pathlib import Path

# Add project root to sys.path for imports
HERE = Path(__file__).resolve().parent
REPO = HERE.parent
sys.path.insert(0, str(REPO))

from dishtile.config import Config
from dishtile.errors import ConfigurationError, DishTileError
from dishtile.services.container import build_services
from dishtile.services.metrics import METRICS
from dishtile.services.repository import iter_all_dishes
from dishtile.services.tile_cache import ARTIFACTS_PER_DISH
from dishtile.services.tile_service import summarize

log = logging.getLogger("pregenerate_tiles")


class TilePregenerator:
    """Out-of-band tile jobs: batch generation, forced regeneration and coverage checks."""

    def __init__(self, services, page_size=100):
        self.services = services
        self.page_size = int(page_size)

    def _dishes(self):
        return iter_all_dishes(self.services.repository, page_size=self.page_size)

    def generate_all(self, force=False):
        """Generate (or with ``force`` delete and regenerate) tiles for every dish.

        Returns:
            Dict of counts by status.
        """
        log.info("[pregenerate] %s tiles for all dishes...", "Force regenerating" if force else "Generating")
        reports = self.services.tiles.generate_batch(self._dishes(), force=force)
        summary = summarize(reports)
        log.info("[pregenerate] Done: %s", summary)
        return summary

    def generate_one(self, dish_id, force=False):
        dish = self.services.repository.get_dish_by_id(dish_id)
        report = self.services.tiles.generate_for_dish(dish, force=force)
        log.info("[pregenerate] Dish %s: %s %s", dish.id, report.status, report.reason)
        return report

    def coverage(self):
        """Per-dish count of stored tile objects; complete means exactly the twelve expected."""
        dish_ids = [d.id for d in self._dishes()]
        counts = self.services.tiles.coverage(dish_ids)
        complete = sum(1 for c in counts.values() if c == ARTIFACTS_PER_DISH)
        log.info("[pregenerate] Coverage: %d/%d dishes complete", complete, len(dish_ids))
        return {"complete": complete, "total": len(dish_ids), "dishes": counts}


def _parser():
    parser = argparse.ArgumentParser(description="Pre-generate dish tiles into the tile store.")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("generate", help="generate missing tiles for every dish")
    sub.add_parser("force-regenerate", help="delete and regenerate tiles for every dish")
    one = sub.add_parser("dish", help="generate tiles for one dish")
    one.add_argument("dish_id", type=int)
    one.add_argument("--force", action="store_true", help="delete existing tiles first")
    sub.add_parser("coverage", help="report stored tile counts per dish")
    return parser


def main(argv=None):
    args = _parser().parse_args(argv)

    try:
        cfg = Config()
        cfg.validate()
    except ConfigurationError as e:
        print("Error loading config: %s" % e)
        sys.exit(2)

    if not logging.getLogger().handlers:
        logging.basicConfig(level=cfg.LOG_LEVEL, format="%(levelname)s %(name)s: %(message)s")

    job = TilePregenerator(build_services(cfg), page_size=cfg.TILE_LIST_PAGE_SIZE)
    ok = True
    try:
        if args.command == "generate":
            summary = job.generate_all()
            ok = summary["failed"] == 0 and summary["partial"] == 0
        elif args.command == "force-regenerate":
            summary = job.generate_all(force=True)
            ok = summary["failed"] == 0 and summary["partial"] == 0
        elif args.command == "dish":
            report = job.generate_one(args.dish_id, force=args.force)
            summary = report.to_dict()
            ok = report.status in ("generated", "skipped")
        else:
            summary = job.coverage()
            ok = summary["complete"] == summary["total"]
    except DishTileError as e:
        log.error("[pregenerate] %s", e)
        METRICS.increment("pregenerate.error")
        sys.exit(1)

    print(json.dumps(summary, indent=2, default=str))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
