# dishtile/services/tile_service.py

import logging
from collections import namedtuple
from urllib.parse import urlparse

from ..errors import DishTileError, NotFoundError, StoreError
from .codec import BLURRED, REGULAR, encode_tile_pair, prepare_base, render_tile, validate_fidelity
from .geometry import TILE_COUNT, validate_tile_index
from .metrics import METRICS
from .tile_cache import tile_key

log = logging.getLogger(__name__)

SOURCE_STORE = "store"
SOURCE_GENERATED = "generated"

TileResult = namedtuple("TileResult", ("data", "source", "key"))


class DishTileReport:
    """Outcome of generating the tiles of one dish."""
    __slots__ = ('dish_id', 'status', 'reason', 'generated', 'failed')

    def __init__(self, dish_id):
        self.dish_id = dish_id
        self.status = "pending"
        self.reason = ""
        self.generated = []
        self.failed = {}

    def skip(self, reason):
        self.status = "skipped"
        self.reason = reason
        return self

    def fail(self, reason):
        self.status = "failed"
        self.reason = reason
        return self

    def finish(self):
        if not self.failed:
            self.status = "generated"
        elif self.generated:
            self.status = "partial"
        else:
            self.status = "failed"
        return self

    def to_dict(self):
        return {
            "dish_id": self.dish_id,
            "status": self.status,
            "reason": self.reason,
            "generated": list(self.generated),
            "failed": dict(self.failed),
        }

    def __repr__(self):
        return "<DishTileReport dish=%s status=%s>" % (self.dish_id, self.status)


class TileService:
    """
    Serves and pre-generates dish tiles.

    Serving tries the tile store first and falls back to rendering the tile
    from the dish's source photo. Pre-generation renders all six indices of a
    dish in order and uploads both fidelities of each. Both paths crop with
    the same geometry functions.

    Args:
        cache: TileCache over the tile object store.
        repository: dish repository (``get_dish_by_id``).
        fetcher: ImageFetcher for source photos.
        write_back: store on-demand tiles so later requests hit the store.
        skip_source_hosts: hosts whose images are never fetched as a source.
    """

    def __init__(self, cache, repository, fetcher, write_back=False, skip_source_hosts=()):
        self.cache = cache
        self.repository = repository
        self.fetcher = fetcher
        self.write_back = bool(write_back)
        self.skip_source_hosts = {h.strip().lower() for h in skip_source_hosts or () if h and h.strip()}

    # ---- Source policy ----

    def is_store_sourced(self, uri):
        """True when ``uri`` already points into the tile store (or a host configured as off-limits)."""
        uri = str(uri or "").strip()
        if not uri:
            return False
        prefix = self.cache.public_prefix()
        if prefix and uri.startswith(prefix):
            return True
        host = (urlparse(uri).hostname or "").lower()
        return any(host == h or host.endswith("." + h) for h in self.skip_source_hosts)

    # ---- Serving ----

    def fetch_tile(self, dish_id, tile_index, fidelity=REGULAR):
        """
        Return a TileResult for one tile.

        Raises:
            InvalidRequestError: bad index or fidelity.
            NotFoundError: dish, source image or tile missing.
            DecodeError: source image could not be decoded.
        """
        dish_id = int(dish_id)
        tile_index = validate_tile_index(tile_index)
        fidelity = validate_fidelity(fidelity)
        key = tile_key(dish_id, fidelity, tile_index)

        try:
            data = self.cache.get(dish_id, fidelity, tile_index)
            METRICS.increment("tiles.store_hit")
            log.info("tiles: serving stored tile %s", key)
            return TileResult(data, SOURCE_STORE, key)
        except NotFoundError:
            METRICS.increment("tiles.store_miss")
            log.info("tiles: %s not stored, rendering on demand", key)
        except StoreError as exc:
            # Store read failures fall through to on-demand rendering
            METRICS.increment("tiles.store_error")
            log.warning("tiles: store read failed for %s, rendering on demand: %s", key, exc)

        dish = self.repository.get_dish_by_id(dish_id)
        if not dish.image_url:
            raise NotFoundError("no image available for dish %d" % dish_id)
        if self.is_store_sourced(dish.image_url):
            METRICS.increment("tiles.on_demand_skipped")
            raise NotFoundError("skipped: source for dish %d is store-hosted and tile %s is missing" % (dish_id, key))

        source = self.fetcher.fetch(dish.image_url)
        with METRICS.timer("tiles.render"):
            data = render_tile(source, tile_index, fidelity)
        METRICS.increment("tiles.generated_on_demand")

        if self.write_back:
            try:
                self.cache.put(dish_id, fidelity, tile_index, data)
            except StoreError as exc:
                log.warning("tiles: write-back failed for %s: %s", key, exc)
        return TileResult(data, SOURCE_GENERATED, key)

    # ---- Pre-generation ----

    def generate_for_dish(self, dish, force=False):
        """
        Render and upload all tiles of ``dish``.

        Already-complete dishes are skipped unless ``force`` is set, in which
        case every existing artifact is removed first. A failed index is
        recorded and the loop moves on to the next one.
        """
        report = DishTileReport(dish.id)
        if not dish.image_url:
            log.warning("tiles: skipping dish %s (%s) - no image url", dish.id, dish.name)
            return report.skip("no image url")
        if not force and self.cache.has(dish.id):
            log.info("tiles: skipping dish %s (%s) - tiles already exist", dish.id, dish.name)
            return report.skip("tiles already exist")
        if self.is_store_sourced(dish.image_url):
            log.warning("tiles: skipping dish %s (%s) - source is store-hosted", dish.id, dish.name)
            return report.skip("source is store-hosted")

        if force:
            self.cache.clear(dish.id)

        try:
            source = self.fetcher.fetch(dish.image_url)
            base = prepare_base(source)
        except DishTileError as exc:
            log.error("tiles: dish %s source failed: %s", dish.id, exc)
            METRICS.increment("tiles.dish_error")
            return report.fail(str(exc))

        for tile_index in range(TILE_COUNT):
            try:
                self._generate_pair(dish.id, base, tile_index)
                report.generated.append(tile_index)
            except DishTileError as exc:
                report.failed[tile_index] = str(exc)
                METRICS.increment("tiles.tile_error")
                log.error("tiles: dish %s tile %d failed: %s", dish.id, tile_index, exc)

        report.finish()
        METRICS.increment("tiles.dish_%s" % report.status)
        return report

    def _generate_pair(self, dish_id, base, tile_index):
        with METRICS.timer("tiles.encode"):
            regular, blurred = encode_tile_pair(base, tile_index)
        log.info("tiles: dish %s tile %d sizes: regular=%d bytes, blurred=%d bytes",
                 dish_id, tile_index, len(regular), len(blurred))
        if len(blurred) >= len(regular):
            log.warning("tiles: dish %s tile %d blurred tile is not smaller than regular", dish_id, tile_index)

        self.cache.put(dish_id, REGULAR, tile_index, regular)
        try:
            self.cache.put(dish_id, BLURRED, tile_index, blurred)
        except StoreError:
            # Keep the pair all-or-nothing
            try:
                self.cache.store.remove([tile_key(dish_id, REGULAR, tile_index)])
            except StoreError as exc:
                log.warning("tiles: could not roll back regular tile %d of dish %s: %s", tile_index, dish_id, exc)
            raise
        METRICS.increment("tiles.generated")

    def generate_batch(self, dishes, force=False):
        """
        Generate tiles for every dish in ``dishes``, one at a time.

        Returns:
            List of DishTileReport, one per dish. A failing dish never stops the batch.
        """
        reports = []
        for dish in dishes:
            try:
                report = self.generate_for_dish(dish, force=force)
            except Exception as exc:
                log.exception("tiles: dish %s aborted: %s", getattr(dish, "id", "?"), exc)
                METRICS.increment("tiles.dish_error")
                report = DishTileReport(getattr(dish, "id", None)).fail(str(exc))
            log.info("tiles: dish %s -> %s %s", report.dish_id, report.status, report.reason)
            reports.append(report)
        return reports

    def coverage(self, dish_ids):
        """Map each dish id to the number of tile objects stored under its prefix."""
        result = {}
        for dish_id in dish_ids:
            try:
                result[dish_id] = len(self.cache.inventory(dish_id))
            except StoreError as exc:
                log.error("tiles: coverage check failed for dish %s: %s", dish_id, exc)
                result[dish_id] = None
        return result


def summarize(reports):
    """Count reports by status."""
    summary = {"generated": 0, "partial": 0, "skipped": 0, "failed": 0}
    for r in reports:
        summary[r.status] = summary.get(r.status, 0) + 1
    return summary
