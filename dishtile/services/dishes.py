# dishtile/services/dishes.py

import logging
from datetime import date, datetime

log = logging.getLogger(__name__)


def _as_str(value, max_len=None, default=''):
    s = '' if value is None else str(value)
    if max_len is not None and len(s) > max_len:
        return s[:max_len]
    return s if s else default


def _str_list(values):
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        return []
    return [str(v) for v in values if v is not None and str(v).strip()]


def _as_number(value):
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return int(f) if f.is_integer() else f


def _as_date(value):
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return _as_str(value, 10)


def _coordinates(value, lat=None, lng=None):
    """Accept {lat, lng}, [lat, lng] or separate latitude/longitude columns."""
    if isinstance(value, dict):
        lat = value.get('lat', lat)
        lng = value.get('lng', value.get('lon', lng))
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        lat, lng = value
    lat = _as_number(lat)
    lng = _as_number(lng)
    if lat is None or lng is None:
        return None
    return {'lat': lat, 'lng': lng}


def _recipe(value):
    value = value if isinstance(value, dict) else {}
    return {
        'ingredients': _str_list(value.get('ingredients')),
        'instructions': _str_list(value.get('instructions')),
    }


class Dish:
    """
    One dish record as the pipelines see it.

    The fields split in two groups:
    - public: ``id``, ``tags``, ``region``; safe to send as-is
    - sensitive: everything that would give the answer away; only ever sent
      inside an obfuscated envelope

    Records are read-only here. Field names follow the database columns;
    ``sensitive_fields`` and ``public_fields`` produce the camelCase client shape.
    """
    __slots__ = (
        'id', 'name', 'country', 'acceptable_guesses', 'ingredients', 'recipe',
        'protein_per_serving', 'image_url', 'coordinates', 'release_date',
        'blurb', 'tags', 'region',
    )

    def __init__(self, id, name, country, image_url=None, acceptable_guesses=None,
                 ingredients=None, recipe=None, protein_per_serving=None,
                 coordinates=None, release_date=None, blurb=None, tags=None, region=None):
        self.id = int(id) if id is not None and str(id).strip() != '' else None
        self.name = _as_str(name, 255)
        self.country = _as_str(country, 255)
        self.image_url = _as_str(image_url, 2048) or None
        self.acceptable_guesses = _str_list(acceptable_guesses)
        self.ingredients = _str_list(ingredients)
        self.recipe = _recipe(recipe)
        self.protein_per_serving = _as_number(protein_per_serving)
        self.coordinates = _coordinates(coordinates)
        self.release_date = _as_date(release_date)
        self.blurb = _as_str(blurb, 4096)
        self.tags = _str_list(tags)
        self.region = _as_str(region, 255) or None

    @classmethod
    def from_record(cls, record):
        """Build from a database row (snake_case) or a client dict (camelCase)."""
        if record is None:
            raise ValueError("Dish.from_record received None")
        get = record.get
        return cls(
            id=get('id'),
            name=get('name', ''),
            country=get('country', ''),
            image_url=get('image_url', get('imageUrl')),
            acceptable_guesses=get('acceptable_guesses', get('acceptableGuesses')),
            ingredients=get('ingredients'),
            recipe=get('recipe'),
            protein_per_serving=get('protein_per_serving', get('proteinPerServing')),
            coordinates=_coordinates(get('coordinates'), get('latitude'), get('longitude')),
            release_date=get('release_date', get('releaseDate')),
            blurb=get('blurb'),
            tags=get('tags'),
            region=get('region'),
        )

    @classmethod
    def from_parts(cls, public, sensitive):
        """Rebuild a full dish from envelope public fields plus opened sensitive fields."""
        merged = dict(sensitive or {})
        for key in ('id', 'tags', 'region'):
            if key in (public or {}):
                merged[key] = public[key]
        return cls.from_record(merged)

    def sensitive_fields(self):
        return {
            'name': self.name,
            'country': self.country,
            'acceptableGuesses': list(self.acceptable_guesses),
            'proteinPerServing': self.protein_per_serving,
            'ingredients': list(self.ingredients),
            'recipe': {
                'ingredients': list(self.recipe['ingredients']),
                'instructions': list(self.recipe['instructions']),
            },
            'blurb': self.blurb,
            'imageUrl': self.image_url,
            'releaseDate': self.release_date,
            'coordinates': dict(self.coordinates) if self.coordinates else None,
        }

    def public_fields(self):
        return {'id': self.id, 'tags': list(self.tags), 'region': self.region}

    def to_dict(self):
        out = self.public_fields()
        out.update(self.sensitive_fields())
        return out

    def __repr__(self):
        return "<Dish id=%s name=%s>" % (self.id, self.name)

    def __eq__(self, other):
        if not isinstance(other, Dish):
            return NotImplemented
        return self.to_dict() == other.to_dict()


def normalize_guess(guess):
    return str(guess or '').strip().lower()


def is_guess_correct(guess, dish):
    """True if ``guess`` matches the dish name or one of its acceptable guesses."""
    normalized = normalize_guess(guess)
    if not normalized:
        return False
    answers = [normalize_guess(dish.name)] + [normalize_guess(g) for g in dish.acceptable_guesses]
    return normalized in answers


def coerce_dish_list(records):
    """
    Convert an iterable of dicts into Dish objects, sorted by id.
    Records without an id or a name are skipped with an error logged.
    """
    result = []
    for idx, record in enumerate(records or []):
        try:
            dish = record if isinstance(record, Dish) else Dish.from_record(record)
            if dish.id is None or not dish.name:
                log.warning("Dropping dish record with no id or name at index %s", idx)
                continue
            result.append(dish)
        except (TypeError, ValueError, AttributeError) as exc:
            log.error("Error coercing dish record at index %s: %s", idx, exc)
            continue
    result.sort(key=lambda d: d.id)
    return result
