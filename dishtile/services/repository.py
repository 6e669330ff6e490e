# dishtile/services/repository.py

import logging
import os

import requests
import yaml

from ..errors import NotFoundError, StoreError
from .dishes import Dish, coerce_dish_list

log = logging.getLogger(__name__)


class YamlDishRepository:
    """
    Read-only dish repository backed by a YAML list of dish records.

    The file is re-read when its modification time changes, so edits show up
    without a restart.
    """

    def __init__(self, path):
        self.path = path
        self._mtime = None
        self._dishes = []

    def _load(self):
        if not os.path.isfile(self.path):
            log.warning("repository: dishes file not found: %s", self.path)
            self._mtime, self._dishes = None, []
            return self._dishes
        mtime = os.path.getmtime(self.path)
        if mtime == self._mtime:
            return self._dishes
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or []
        except (OSError, yaml.YAMLError) as exc:
            raise StoreError("could not read dishes from %s: %s" % (self.path, exc))
        if isinstance(data, dict):
            data = data.get('dishes') or []
        self._dishes = coerce_dish_list(data)
        self._mtime = mtime
        log.info("repository: loaded %d dishes from %s", len(self._dishes), self.path)
        return self._dishes

    def get_dish_by_id(self, dish_id):
        dish_id = int(dish_id)
        for dish in self._load():
            if dish.id == dish_id:
                return dish
        raise NotFoundError("dish not found: %s" % dish_id)

    def get_dish_for_date(self, iso_date):
        for dish in self._load():
            if dish.release_date == iso_date:
                return dish
        raise NotFoundError("no dish scheduled for %s" % iso_date)

    def list_dishes(self, limit=100, offset=0):
        start = max(0, int(offset))
        return self._load()[start:start + int(limit)]


class SupabaseDishRepository:
    """Read-only dish repository over the Supabase PostgREST endpoint."""

    def __init__(self, url, service_key, table='dishes', timeout=20, session=None):
        self.base_url = str(url or '').rstrip('/')
        self.service_key = str(service_key or '')
        self.table = str(table)
        self.timeout = int(timeout)
        self.session = session or requests.Session()

    def _query(self, params):
        headers = {
            'apikey': self.service_key,
            'Authorization': 'Bearer %s' % self.service_key,
            'Accept': 'application/json',
        }
        url = '%s/rest/v1/%s' % (self.base_url, self.table)
        try:
            resp = self.session.get(url, params=params, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            rows = resp.json() or []
        except (requests.RequestException, ValueError) as exc:
            raise StoreError("dish query failed: %s" % exc)
        return coerce_dish_list(rows)

    def get_dish_by_id(self, dish_id):
        rows = self._query({'select': '*', 'id': 'eq.%d' % int(dish_id), 'limit': 1})
        if not rows:
            raise NotFoundError("dish not found: %s" % dish_id)
        return rows[0]

    def get_dish_for_date(self, iso_date):
        rows = self._query({'select': '*', 'release_date': 'eq.%s' % iso_date, 'limit': 1})
        if not rows:
            raise NotFoundError("no dish scheduled for %s" % iso_date)
        return rows[0]

    def list_dishes(self, limit=100, offset=0):
        return self._query({
            'select': 'id,name,image_url',
            'order': 'id.asc',
            'limit': int(limit),
            'offset': int(offset),
        })


def iter_all_dishes(repository, page_size=100):
    """Yield every dish, one bounded page at a time."""
    offset = 0
    while True:
        page = repository.list_dishes(limit=page_size, offset=offset)
        for dish in page:
            yield dish
        if len(page) < page_size:
            return
        offset += page_size


__all__ = ('Dish', 'YamlDishRepository', 'SupabaseDishRepository', 'iter_all_dishes')
