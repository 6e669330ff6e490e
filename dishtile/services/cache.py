# dishtile/services/cache.py

import hashlib
import logging
from datetime import datetime, timezone
from email.utils import format_datetime

from .obfuscation import next_utc_midnight

log = logging.getLogger(__name__)


def _rfc7231(dt):
    """
    Format a datetime in RFC 7231 (HTTP-date) format, always GMT.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    return format_datetime(dt, usegmt=True)


class CacheManager:
    """
    HTTP caching policy for tiles and the daily answer.
    - Strong SHA-256 ETags over response bytes
    - If-None-Match evaluation for 304 responses
    - Cache-Control values: immutable for stored tiles, short for on-demand
      tiles, and "until the next UTC midnight" for the daily answer
    """

    def __init__(self, stored_ttl=2592000, fallback_ttl=86400):
        self.stored_ttl = int(stored_ttl)
        self.fallback_ttl = int(fallback_ttl)

    @staticmethod
    def generate_etag(content, weak=False):
        """
        Generate a hex SHA-256 ETag for the given content.

        Args:
            content: bytes or str
            weak: if True, mark as weak validator (prefix 'W/').

        Returns:
            Quoted ETag string, optionally prefixed with 'W/'.
        """
        if isinstance(content, str):
            content = content.encode('utf-8')
        if not isinstance(content, bytes):
            raise ValueError('Content must be bytes or string')

        tag = '"%s"' % hashlib.sha256(content).hexdigest()
        return ('W/' + tag) if weak else tag

    @staticmethod
    def check_not_modified(if_none_match, current_etag):
        """
        True if the raw If-None-Match header matches ``current_etag`` (or is "*").

        Comparison is weak: the W/ prefix and quotes are ignored on both sides.
        """
        if not if_none_match or not current_etag:
            return False

        def _bare(tag):
            tag = tag.strip()
            if tag.startswith('W/'):
                tag = tag[2:]
            return tag.strip('"')

        wanted = _bare(str(current_etag))
        for tok in str(if_none_match).split(','):
            tok = _bare(tok)
            if tok == '*' or tok == wanted:
                return True
        return False

    def tile_cache_control(self, from_store):
        """Stored tiles never change; on-demand tiles may later be replaced by stored ones."""
        if from_store:
            return "public, max-age=%d, immutable" % self.stored_ttl
        return "public, max-age=%d" % self.fallback_ttl

    @staticmethod
    def until_next_day(now=None):
        """
        Cache headers for content that changes at the UTC day boundary.

        Returns:
            (cache_control, expires_http_date)
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        midnight = next_utc_midnight(now)
        seconds = max(0, int((midnight - now).total_seconds()))
        cache_control = "public, s-maxage=%d, stale-while-revalidate=60" % seconds
        return cache_control, _rfc7231(midnight)
