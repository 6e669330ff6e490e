# dishtile/services/tile_cache.py

import logging

from .codec import FIDELITIES, validate_fidelity
from .geometry import TILE_COUNT, validate_tile_index
from .store import DEFAULT_PAGE_SIZE

log = logging.getLogger(__name__)

TILE_ROOT = "tiles"
TILE_CONTENT_TYPE = "image/jpeg"
ARTIFACTS_PER_DISH = TILE_COUNT * len(FIDELITIES)


def dish_prefix(dish_id):
    return "%s/%d/" % (TILE_ROOT, int(dish_id))


def tile_key(dish_id, fidelity, tile_index):
    """``tiles/{dishId}/{fidelity}-{tileIndex}.jpg``, the one naming rule for tile artifacts."""
    return "%s%s-%d.jpg" % (dish_prefix(dish_id), validate_fidelity(fidelity), validate_tile_index(tile_index))


def expected_keys(dish_id):
    return [tile_key(dish_id, f, i) for f in FIDELITIES for i in range(TILE_COUNT)]


class TileCache:
    """Tile artifacts keyed by (dish, fidelity, index) on top of an ObjectStore."""

    def __init__(self, store, page_size=DEFAULT_PAGE_SIZE):
        self.store = store
        self.page_size = int(page_size)

    def get(self, dish_id, fidelity, tile_index):
        """Return the stored JPEG bytes. Raises NotFoundError or StoreError."""
        return self.store.download(tile_key(dish_id, fidelity, tile_index))

    def put(self, dish_id, fidelity, tile_index, data):
        key = tile_key(dish_id, fidelity, tile_index)
        self.store.upload(key, data, content_type=TILE_CONTENT_TYPE, upsert=True)
        return key

    def inventory(self, dish_id):
        """Every key currently stored under the dish prefix."""
        return self.store.list_all(dish_prefix(dish_id), page_size=self.page_size)

    def missing(self, dish_id):
        """Expected artifact keys not yet present in the store."""
        present = set(self.inventory(dish_id))
        return [k for k in expected_keys(dish_id) if k not in present]

    def has(self, dish_id):
        """True when all twelve artifacts (six per fidelity) exist."""
        return not self.missing(dish_id)

    def clear(self, dish_id):
        """Remove everything under the dish prefix. Returns the number of keys removed."""
        keys = self.inventory(dish_id)
        if not keys:
            return 0
        removed = self.store.remove(keys)
        log.info("tile_cache: removed %d objects for dish %s", len(keys), dish_id)
        return removed

    def public_prefix(self):
        """Public URL under which every tile of every dish lives, or None."""
        base = self.store.public_base()
        return base + TILE_ROOT + "/" if base else None
