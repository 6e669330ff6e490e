# test/test_reveal.py

import random
import unittest

from dishtile.services.dishes import Dish, is_guess_correct, normalize_guess
from dishtile.services.reveal import GAVE_UP, IN_PROGRESS, WON, RevealState


class TestRevealState(unittest.TestCase):
    def setUp(self):
        self.dish = Dish(
            id=1,
            name="Pad Thai",
            country="Thailand",
            acceptable_guesses=["phad thai", "pad thai"],
            ingredients=["rice noodles", "tamarind", "fish sauce", "peanuts"],
        )
        self.state = RevealState.for_dish(self.dish, rng=random.Random(42))

    def test_initial_state(self):
        self.assertEqual(self.state.tiles, [False] * 6)
        self.assertEqual(self.state.revealed_ingredients, 1)
        self.assertEqual(self.state.guesses, [])
        self.assertEqual(self.state.outcome, IN_PROGRESS)

    def test_reveal_random_tile_is_monotonic(self):
        revealed = []
        for n in range(1, 7):
            before = list(self.state.tiles)
            index = self.state.reveal_random_tile()
            self.assertNotIn(index, revealed)
            revealed.append(index)
            self.assertEqual(self.state.revealed_count, n)
            for i, was in enumerate(before):
                if was:
                    self.assertTrue(self.state.tiles[i])
        self.assertEqual(sorted(revealed), [0, 1, 2, 3, 4, 5])
        self.assertIsNone(self.state.reveal_random_tile())
        self.assertEqual(len(self.state.tiles), 6)

    def test_reveal_all_tiles(self):
        self.state.reveal_random_tile()
        self.state.reveal_all_tiles()
        self.assertEqual(self.state.tiles, [True] * 6)

    def test_ingredient_hints_are_bounded(self):
        for _ in range(10):
            self.state.reveal_next_ingredient()
        self.assertEqual(self.state.revealed_ingredients, 4)

    def test_wrong_guess_reveals_one_tile_and_one_ingredient(self):
        self.assertFalse(self.state.guess("Green Curry", self.dish))
        self.assertEqual(self.state.revealed_count, 1)
        self.assertEqual(self.state.revealed_ingredients, 2)
        self.assertEqual(self.state.guesses, ["green curry"])

    def test_duplicate_and_empty_guesses_are_ignored(self):
        self.state.guess("Green Curry", self.dish)
        self.assertFalse(self.state.guess("  green curry ", self.dish))
        self.assertFalse(self.state.guess("   ", self.dish))
        self.assertEqual(self.state.revealed_count, 1)
        self.assertEqual(len(self.state.guesses), 1)

    def test_revealed_tiles_bounded_by_incorrect_guesses(self):
        for g in ("laksa", "pho", "ramen"):
            self.state.guess(g, self.dish)
            self.assertLessEqual(self.state.revealed_count, self.state.incorrect_guesses)
        self.assertEqual(self.state.revealed_count, 3)

    def test_correct_guess_reveals_everything(self):
        self.state.guess("laksa", self.dish)
        self.assertTrue(self.state.guess("PHAD THAI", self.dish))
        self.assertEqual(self.state.outcome, WON)
        self.assertEqual(self.state.tiles, [True] * 6)
        self.assertEqual(self.state.revealed_ingredients, 4)
        self.assertEqual(self.state.incorrect_guesses, 1)
        self.assertFalse(self.state.guess("pho", self.dish))

    def test_give_up_reveals_everything(self):
        self.state.give_up()
        self.assertEqual(self.state.outcome, GAVE_UP)
        self.assertEqual(self.state.tiles, [True] * 6)
        self.assertEqual(self.state.revealed_ingredients, 4)
        self.assertTrue(self.state.is_finished)

    def test_round_trip_through_dict(self):
        self.state.guess("laksa", self.dish)
        restored = RevealState.from_dict(self.state.to_dict())
        self.assertEqual(restored.tiles, self.state.tiles)
        self.assertEqual(restored.revealed_ingredients, 2)
        self.assertEqual(restored.guesses, ["laksa"])

    def test_from_dict_rejects_malformed_tiles(self):
        restored = RevealState.from_dict({"revealedTiles": [True, True], "ingredientCount": 2, "revealedIngredients": 9})
        self.assertEqual(restored.tiles, [False] * 6)
        self.assertEqual(restored.revealed_ingredients, 2)

    def test_from_dict_tolerates_bad_ingredient_count(self):
        for count in ("abc", None, [3]):
            restored = RevealState.from_dict({"revealedTiles": [True] + [False] * 5, "ingredientCount": count,
                                              "revealedIngredients": 2, "guesses": ["laksa"]})
            self.assertEqual(restored.ingredient_count, 0)
            self.assertEqual(restored.revealed_ingredients, 0)
            self.assertEqual(restored.revealed_count, 1)
            self.assertEqual(restored.guesses, ["laksa"])

    def test_dish_without_ingredients(self):
        state = RevealState(ingredient_count=0)
        self.assertEqual(state.revealed_ingredients, 0)
        state.reveal_next_ingredient()
        self.assertEqual(state.revealed_ingredients, 0)


class TestGuessMatching(unittest.TestCase):
    def test_normalize(self):
        self.assertEqual(normalize_guess("  Pad Thai "), "pad thai")
        self.assertEqual(normalize_guess(None), "")

    def test_is_guess_correct(self):
        dish = Dish(id=1, name="Jollof Rice", country="Nigeria", acceptable_guesses=["jollof"])
        self.assertTrue(is_guess_correct("JOLLOF", dish))
        self.assertTrue(is_guess_correct("jollof rice", dish))
        self.assertFalse(is_guess_correct("fried rice", dish))
        self.assertFalse(is_guess_correct("", dish))


if __name__ == '__main__':
    unittest.main()
