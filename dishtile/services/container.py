# dishtile/services/container.py

import logging

from .images import ImageFetcher
from .repository import SupabaseDishRepository, YamlDishRepository
from .store import LocalObjectStore, SupabaseObjectStore
from .tile_cache import TileCache
from .tile_service import TileService

log = logging.getLogger(__name__)


class Services:
    """
    Process-wide collaborators, built once at startup and reused until exit.

    Nothing here is a module global: the app factory and the scripts each
    build one and pass it down. Tests build their own with fakes.
    """
    __slots__ = ("store", "repository", "fetcher", "tiles")

    def __init__(self, store, repository, fetcher, tiles):
        self.store = store
        self.repository = repository
        self.fetcher = fetcher
        self.tiles = tiles

    @classmethod
    def assemble(cls, store, repository, fetcher, write_back=False, skip_source_hosts=(), page_size=100):
        cache = TileCache(store, page_size=page_size)
        tiles = TileService(cache, repository, fetcher, write_back=write_back, skip_source_hosts=skip_source_hosts)
        return cls(store, repository, fetcher, tiles)


def build_services(config):
    """Construct the collaborators selected by ``config`` (call ``config.validate()`` first)."""
    if config.STORAGE_BACKEND == "supabase":
        store = SupabaseObjectStore(
            url=config.SUPABASE_URL,
            service_key=config.SUPABASE_SERVICE_ROLE_KEY,
            bucket=config.TILE_BUCKET,
        )
        repository = SupabaseDishRepository(
            url=config.SUPABASE_URL,
            service_key=config.SUPABASE_SERVICE_ROLE_KEY,
            table=config.DISHES_TABLE,
        )
    else:
        store = LocalObjectStore(config.TILE_STORE_DIR, public_base_url=config.TILE_STORE_PUBLIC_URL or None)
        repository = YamlDishRepository(config.DISHES_YAML)

    fetcher = ImageFetcher(timeout=config.IMAGE_FETCH_TIMEOUT)
    log.info("services: using %s backend", config.STORAGE_BACKEND)
    return Services.assemble(
        store,
        repository,
        fetcher,
        write_back=config.TILE_WRITE_BACK,
        skip_source_hosts=config.SKIP_SOURCE_HOSTS,
        page_size=config.TILE_LIST_PAGE_SIZE,
    )
