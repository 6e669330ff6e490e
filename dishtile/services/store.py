# dishtile/services/store.py

import logging
import os
from pathlib import Path
from tempfile import NamedTemporaryFile
from urllib.parse import quote

import requests

from ..errors import NotFoundError, StoreError

log = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


def _clean_key(key):
    k = str(key or "").strip().lstrip("/")
    if not k or any(part in ("", ".", "..") for part in k.split("/")):
        raise StoreError("invalid object key: %r" % (key,), key=key)
    return k


class ObjectStore:
    """
    Key/value blob store used for tile artifacts.

    Keys are slash separated paths. ``upload`` always overwrites. ``list``
    takes an explicit page window; callers that want every key use
    ``list_all``, which walks pages of ``page_size`` until a short page.
    """

    def upload(self, key, data, content_type="application/octet-stream", upsert=True):
        raise NotImplementedError

    def download(self, key):
        raise NotImplementedError

    def list(self, prefix, limit=DEFAULT_PAGE_SIZE, offset=0):
        raise NotImplementedError

    def remove(self, keys):
        raise NotImplementedError

    def public_base(self):
        """Public URL prefix of the whole store, or None when objects are not publicly served."""
        return None

    def public_url(self, key):
        base = self.public_base()
        return base + _clean_key(key) if base else None

    def list_all(self, prefix, page_size=DEFAULT_PAGE_SIZE, max_pages=1000):
        page_size = max(1, int(page_size))
        keys = []
        for page in range(int(max_pages)):
            batch = self.list(prefix, limit=page_size, offset=page * page_size)
            keys.extend(batch)
            if len(batch) < page_size:
                return keys
        log.warning("store: list_all(%s) stopped after %d pages", prefix, max_pages)
        return keys


class LocalObjectStore(ObjectStore):
    """Filesystem-backed store rooted at a directory; writes are atomic."""

    def __init__(self, root, public_base_url=None):
        self.root = Path(root)
        self.public_base_url = (public_base_url or "").rstrip("/") or None

    def _path(self, key):
        return self.root.joinpath(*_clean_key(key).split("/"))

    def upload(self, key, data, content_type="application/octet-stream", upsert=True):
        path = self._path(key)
        if not upsert and path.exists():
            raise StoreError("object already exists: %s" % key, key=key)
        tmp_path = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Dot prefix keeps in-flight files out of list()
            with NamedTemporaryFile("wb", delete=False, dir=path.parent, prefix=".upload-") as tmp:
                tmp_path = tmp.name
                tmp.write(data)
            os.replace(tmp_path, path)
        except OSError as exc:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
            raise StoreError("upload failed for %s: %s" % (key, exc), key=key)
        return True

    def download(self, key):
        path = self._path(key)
        if not path.is_file():
            raise NotFoundError("object not found: %s" % key)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StoreError("download failed for %s: %s" % (key, exc), key=key)

    def list(self, prefix, limit=DEFAULT_PAGE_SIZE, offset=0):
        prefix = str(prefix or "").lstrip("/")
        if not self.root.is_dir():
            return []
        try:
            keys = sorted(
                p.relative_to(self.root).as_posix()
                for p in self.root.rglob("*")
                if p.is_file() and not p.name.startswith(".")
            )
        except OSError as exc:
            raise StoreError("list failed for %s: %s" % (prefix, exc))
        matching = [k for k in keys if k.startswith(prefix)]
        start = max(0, int(offset))
        return matching[start:start + int(limit)]

    def remove(self, keys):
        removed = 0
        for key in keys or []:
            path = self._path(key)
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                raise StoreError("remove failed for %s: %s" % (key, exc), key=key)
        return removed

    def public_base(self):
        return self.public_base_url + "/" if self.public_base_url else None


class SupabaseObjectStore(ObjectStore):
    """Supabase Storage bucket accessed through its REST API."""

    def __init__(self, url, service_key, bucket, timeout=20, session=None):
        self.base_url = str(url or "").rstrip("/")
        self.service_key = str(service_key or "")
        self.bucket = str(bucket)
        self.timeout = int(timeout)
        self.session = session or requests.Session()

    def _headers(self, extra=None):
        headers = {
            "apikey": self.service_key,
            "Authorization": "Bearer %s" % self.service_key,
        }
        if extra:
            headers.update(extra)
        return headers

    def _object_url(self, key):
        return "%s/storage/v1/object/%s/%s" % (self.base_url, self.bucket, quote(_clean_key(key)))

    def upload(self, key, data, content_type="application/octet-stream", upsert=True):
        headers = self._headers({
            "Content-Type": content_type,
            "x-upsert": "true" if upsert else "false",
        })
        try:
            resp = self.session.post(self._object_url(key), data=data, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StoreError("upload failed for %s: %s" % (key, exc), key=key)
        if resp.status_code >= 400:
            raise StoreError("upload failed for %s: HTTP %d %s" % (key, resp.status_code, resp.text[:200]), key=key)
        return True

    def download(self, key):
        try:
            resp = self.session.get(self._object_url(key), headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise StoreError("download failed for %s: %s" % (key, exc), key=key)
        # Storage answers a missing object with 400 or 404 depending on version
        if resp.status_code in (400, 404):
            raise NotFoundError("object not found: %s" % key)
        if resp.status_code >= 400:
            raise StoreError("download failed for %s: HTTP %d" % (key, resp.status_code), key=key)
        return resp.content

    def list(self, prefix, limit=DEFAULT_PAGE_SIZE, offset=0):
        folder = str(prefix or "").strip("/")
        body = {
            "prefix": folder,
            "limit": int(limit),
            "offset": int(offset),
            "sortBy": {"column": "name", "order": "asc"},
        }
        url = "%s/storage/v1/object/list/%s" % (self.base_url, self.bucket)
        try:
            resp = self.session.post(url, json=body, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
            entries = resp.json() or []
        except (requests.RequestException, ValueError) as exc:
            raise StoreError("list failed for %s: %s" % (folder, exc))
        keys = []
        for entry in entries:
            name = entry.get("name")
            # Folder placeholders carry no id
            if not name or entry.get("id") is None:
                continue
            keys.append("%s/%s" % (folder, name) if folder else name)
        return keys

    def remove(self, keys):
        keys = [_clean_key(k) for k in keys or []]
        if not keys:
            return 0
        url = "%s/storage/v1/object/%s" % (self.base_url, self.bucket)
        try:
            resp = self.session.delete(url, json={"prefixes": keys}, headers=self._headers(), timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise StoreError("remove failed for %d objects: %s" % (len(keys), exc))
        return len(keys)

    def public_base(self):
        return "%s/storage/v1/object/public/%s/" % (self.base_url, self.bucket)
