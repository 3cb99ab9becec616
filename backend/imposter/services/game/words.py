import json
import random
from typing import Dict, List, Tuple

from flask import current_app


class WordSupplier:
    """Picks the secret word (and its category) for a new round."""

    def __init__(self, categories: Dict[str, List[str]], rng=None):
        self.categories = {name: list(words) for name, words in categories.items() if words}
        if not self.categories:
            raise ValueError('Word list is empty')
        self._rng = rng or random.SystemRandom()

    @classmethod
    def from_file(cls, path: str) -> 'WordSupplier':
        with open(path, encoding='utf-8') as fh:
            return cls(json.load(fh))

    def next_word(self) -> Tuple[str, str]:
        pairs = [(word, category) for category, words in self.categories.items() for word in words]
        return self._rng.choice(pairs)


def get_word_supplier() -> WordSupplier:
    return current_app.extensions['imposter.words']
