# dishtile/services/envelope.py

import logging
import secrets

from .dishes import Dish
from .metrics import METRICS
from .obfuscation import daily_salt, obfuscate, try_deobfuscate, utc_today

log = logging.getLogger(__name__)


def build_answer_envelope(dish, salt):
    """
    Client-safe form of ``dish``: public fields in the clear, everything else
    inside ``_encrypted`` (obfuscated with ``salt``, not encrypted).
    """
    envelope = dish.public_fields()
    envelope["_encrypted"] = obfuscate(dish.sensitive_fields(), salt)
    envelope["_salt"] = salt
    # Filler so responses differ byte-for-byte between requests
    envelope["_checksum"] = secrets.token_hex(4)
    return envelope


def todays_envelopes(repository, now=None, salt_prefix="fft"):
    """
    The body of the daily answer endpoint: a one-element list.

    Raises:
        NotFoundError: no dish is scheduled for today's UTC date.
    """
    today = utc_today(now).isoformat()
    dish = repository.get_dish_for_date(today)
    envelope = build_answer_envelope(dish, daily_salt(now, prefix=salt_prefix))
    METRICS.increment("envelopes.built")
    log.info("envelope: built answer envelope for dish %s on %s", dish.id, today)
    return [envelope]


def open_answer_envelope(envelope, salt=None):
    """
    Client-side reconstruction of the full dish from an envelope.

    Uses the envelope's own ``_salt`` unless ``salt`` is given. Returns None
    when the payload is stale, foreign or malformed; the caller should refetch.
    """
    if not isinstance(envelope, dict) or "_encrypted" not in envelope:
        return None
    sensitive = try_deobfuscate(envelope["_encrypted"], salt if salt is not None else envelope.get("_salt"))
    if not isinstance(sensitive, dict):
        return None
    try:
        return Dish.from_parts(envelope, sensitive)
    except (TypeError, ValueError) as exc:
        log.warning("envelope: could not rebuild dish: %s", exc)
        return None
