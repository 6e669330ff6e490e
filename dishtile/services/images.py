# dishtile/services/images.py

import logging
from pathlib import Path
from urllib.parse import unquote, urlparse

import requests

from ..errors import NotFoundError
from .metrics import METRICS

log = logging.getLogger(__name__)


class ImageFetcher:
    """Fetches source photos by URI: http(s) over the network, file:// or bare paths from disk."""

    def __init__(self, timeout=20, user_agent='DishTile/1.0', max_bytes=25 * 1024 * 1024):
        self.timeout = int(timeout)
        self.user_agent = str(user_agent)
        self.max_bytes = int(max_bytes)

    def fetch(self, uri):
        """
        Return the raw bytes behind ``uri``.

        Raises:
            NotFoundError: when the URI is empty, unreachable, answers with a
                non-2xx status, or exceeds ``max_bytes``.
        """
        uri = str(uri or '').strip()
        if not uri:
            raise NotFoundError("no image available")
        parsed = urlparse(uri)
        if parsed.scheme in ('http', 'https'):
            return self._fetch_http(uri)
        if parsed.scheme in ('', 'file'):
            return self._read_file(unquote(parsed.path) if parsed.scheme == 'file' else uri)
        raise NotFoundError("unsupported image uri: %s" % uri)

    def _fetch_http(self, uri):
        headers = {'User-Agent': self.user_agent, 'Accept': 'image/*'}
        try:
            with METRICS.timer('images.fetch'):
                resp = requests.get(uri, headers=headers, timeout=self.timeout, stream=True)
                try:
                    if not resp.ok:
                        METRICS.increment('images.fetch_error')
                        log.error("images: %s answered HTTP %d", uri, resp.status_code)
                        raise NotFoundError("image not accessible: %s" % uri)
                    data = self._read_limited(uri, resp)
                finally:
                    resp.close()
        except requests.RequestException as exc:
            METRICS.increment('images.fetch_error')
            log.error("images: fetch error for %s: %s", uri, exc)
            raise NotFoundError("image not accessible: %s" % uri)
        METRICS.increment('images.fetch_ok')
        return data

    def _read_limited(self, uri, resp):
        """Read the streamed body, giving up as soon as it passes ``max_bytes``."""
        buf = bytearray()
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            buf.extend(chunk)
            self._check_size(uri, buf)
        return bytes(buf)

    def _read_file(self, path):
        p = Path(path)
        if not p.is_file():
            raise NotFoundError("image not found: %s" % path)
        data = p.read_bytes()
        self._check_size(path, data)
        return data

    def _check_size(self, uri, data):
        if len(data) > self.max_bytes:
            raise NotFoundError("image too large (%d bytes): %s" % (len(data), uri))
