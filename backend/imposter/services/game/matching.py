"""Tolerant comparison of the imposter's guess with the secret word."""
import re
from difflib import SequenceMatcher

SIMILARITY_THRESHOLD = 0.8
SHORT_WORD_LENGTH = 3

_non_word = re.compile(r'[^\w\s]')
_spaces = re.compile(r'\s+')


def normalize(value: str) -> str:
    value = _non_word.sub(' ', (value or '').lower())
    return _spaces.sub(' ', value).strip()


def fuzzy_match(guess, word) -> bool:
    guess, word = normalize(guess), normalize(word)
    if not guess or not word:
        return False
    if guess == word:
        return True
    # Short words leave no room for typos
    if len(word) <= SHORT_WORD_LENGTH or len(guess) <= SHORT_WORD_LENGTH:
        return False
    candidates = ((guess, word), (guess.replace(' ', ''), word.replace(' ', '')))
    return any(SequenceMatcher(None, a, b).ratio() >= SIMILARITY_THRESHOLD for a, b in candidates)
