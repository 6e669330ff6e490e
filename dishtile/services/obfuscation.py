# dishtile/services/obfuscation.py

"""
Answer obfuscation.

This is NOT encryption. The payload is wrapped with the day's salt, serialized
to JSON and base64 encoded, so the answer does not show up in plain text when
someone glances at network traffic. Anyone who reads this module can reverse
it: the salt is derived from the public calendar date and nothing is secret.
Do not put anything here that needs real confidentiality.
"""

import base64
import binascii
import json
import logging
from datetime import datetime, time, timedelta, timezone

from ..errors import DecodeError, InvalidRequestError, SaltMismatchError

log = logging.getLogger(__name__)

DEFAULT_SALT_PREFIX = "fft"


def utc_today(now=None):
    """Calendar date at the UTC day boundary; naive datetimes are taken as UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).date()


def next_utc_midnight(now=None):
    return datetime.combine(utc_today(now) + timedelta(days=1), time(0, 0), tzinfo=timezone.utc)


def daily_salt(now=None, prefix=DEFAULT_SALT_PREFIX):
    """``{prefix}-YYYY-MM-DD`` for the current UTC date, e.g. ``fft-2025-05-28``."""
    return "%s-%s" % (prefix, utc_today(now).isoformat())


def obfuscate(data, salt):
    """
    Wrap ``data`` with ``salt`` and encode it as base64 text.

    Raises:
        InvalidRequestError: if ``data`` is not JSON serializable.
    """
    envelope = {"_salt": str(salt), "_data": data}
    try:
        text = json.dumps(envelope, ensure_ascii=False, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as exc:
        raise InvalidRequestError("payload is not JSON serializable: %s" % exc)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def deobfuscate(blob, salt):
    """
    Reverse ``obfuscate``.

    Raises:
        DecodeError: the blob is not base64, not UTF-8, not JSON, or not an envelope.
        SaltMismatchError: the blob was made with a different salt.
    """
    try:
        raw = base64.b64decode(str(blob or "").encode("ascii"), validate=True)
        envelope = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise DecodeError("malformed obfuscated payload: %s" % exc)

    if not isinstance(envelope, dict) or "_salt" not in envelope or "_data" not in envelope:
        raise DecodeError("malformed obfuscated payload: missing envelope fields")
    if envelope["_salt"] != salt:
        raise SaltMismatchError("payload salt %r does not match %r" % (envelope["_salt"], salt))
    return envelope["_data"]


def try_deobfuscate(blob, salt):
    """``deobfuscate`` that returns None for a stale, foreign or malformed payload."""
    try:
        return deobfuscate(blob, salt)
    except SaltMismatchError as exc:
        log.info("obfuscation: stale payload: %s", exc)
    except DecodeError as exc:
        log.warning("obfuscation: %s", exc)
    return None
