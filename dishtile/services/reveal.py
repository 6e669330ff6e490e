# dishtile/services/reveal.py

import logging
import random

from .dishes import is_guess_correct, normalize_guess
from .geometry import TILE_COUNT

log = logging.getLogger(__name__)

INITIAL_INGREDIENT_HINTS = 1

IN_PROGRESS = "in_progress"
WON = "won"
GAVE_UP = "gave_up"


class RevealState:
    """
    Per-session progressive disclosure of one dish.

    Tiles only ever go from hidden to revealed. An incorrect guess reveals one
    random hidden tile and one more ingredient hint; winning or giving up
    reveals every tile and every ingredient and ends the session.

    Args:
        ingredient_count: length of the dish's ingredient list; bounds the hint counter.
        rng: a ``random.Random`` for tile selection (seed it in tests).
    """
    __slots__ = ('tiles', 'revealed_ingredients', 'ingredient_count', 'guesses', 'outcome', '_rng')

    def __init__(self, ingredient_count=0, rng=None):
        self.ingredient_count = max(0, int(ingredient_count))
        self.tiles = [False] * TILE_COUNT
        self.revealed_ingredients = min(INITIAL_INGREDIENT_HINTS, self.ingredient_count)
        self.guesses = []
        self.outcome = IN_PROGRESS
        self._rng = rng or random.Random()

    @classmethod
    def for_dish(cls, dish, rng=None):
        return cls(ingredient_count=len(dish.ingredients), rng=rng)

    # ---- Queries ----

    @property
    def revealed_count(self):
        return sum(1 for t in self.tiles if t)

    @property
    def hidden_indices(self):
        return [i for i, t in enumerate(self.tiles) if not t]

    @property
    def is_finished(self):
        return self.outcome != IN_PROGRESS

    @property
    def incorrect_guesses(self):
        return len(self.guesses) - (1 if self.outcome == WON else 0)

    # ---- Transitions ----

    def reveal_random_tile(self):
        """Reveal one hidden tile chosen uniformly at random. Returns its index, or None if none are hidden."""
        hidden = self.hidden_indices
        if not hidden:
            return None
        index = self._rng.choice(hidden)
        self.tiles[index] = True
        return index

    def reveal_all_tiles(self):
        self.tiles = [True] * TILE_COUNT

    def reveal_next_ingredient(self):
        """Show one more ingredient hint, up to the ingredient count. Returns the new count."""
        if self.revealed_ingredients < self.ingredient_count:
            self.revealed_ingredients += 1
        return self.revealed_ingredients

    def reveal_all_ingredients(self):
        self.revealed_ingredients = self.ingredient_count

    def guess(self, guess, dish):
        """
        Apply one guess against ``dish``.

        Returns:
            True when the guess is correct. Empty, repeated and post-game
            guesses change nothing and return False.
        """
        normalized = normalize_guess(guess)
        if self.is_finished or not normalized or normalized in self.guesses:
            return False
        self.guesses.append(normalized)

        if is_guess_correct(normalized, dish):
            self._finish(WON)
            return True

        index = self.reveal_random_tile()
        self.reveal_next_ingredient()
        log.debug("reveal: wrong guess %r revealed tile %s", normalized, index)
        return False

    def give_up(self):
        if not self.is_finished:
            self._finish(GAVE_UP)

    def _finish(self, outcome):
        self.outcome = outcome
        self.reveal_all_tiles()
        self.reveal_all_ingredients()

    # ---- Persistence ----

    def to_dict(self):
        return {
            "revealedTiles": list(self.tiles),
            "revealedIngredients": self.revealed_ingredients,
            "ingredientCount": self.ingredient_count,
            "guesses": list(self.guesses),
            "outcome": self.outcome,
        }

    @classmethod
    def from_dict(cls, data, rng=None):
        """Restore a saved session; malformed fields fall back to a fresh session's values."""
        data = data or {}
        try:
            ingredient_count = int(data.get("ingredientCount", 0))
        except (TypeError, ValueError):
            log.warning("reveal: discarding malformed ingredient count %r", data.get("ingredientCount"))
            ingredient_count = 0
        state = cls(ingredient_count=ingredient_count, rng=rng)
        tiles = data.get("revealedTiles")
        if isinstance(tiles, list) and len(tiles) == TILE_COUNT:
            state.tiles = [bool(t) for t in tiles]
        else:
            log.warning("reveal: discarding malformed tile state %r", tiles)
        try:
            revealed = int(data.get("revealedIngredients", state.revealed_ingredients))
        except (TypeError, ValueError):
            revealed = state.revealed_ingredients
        state.revealed_ingredients = max(0, min(revealed, state.ingredient_count))
        state.guesses = [normalize_guess(g) for g in data.get("guesses") or [] if normalize_guess(g)]
        outcome = data.get("outcome", IN_PROGRESS)
        state.outcome = outcome if outcome in (IN_PROGRESS, WON, GAVE_UP) else IN_PROGRESS
        return state

    def __repr__(self):
        return "<RevealState tiles=%d/%d ingredients=%d/%d outcome=%s>" % (
            self.revealed_count, TILE_COUNT, self.revealed_ingredients, self.ingredient_count, self.outcome)
