from pathlib import Path
from typing import Iterable, Optional, Tuple

DEFAULT_WORD_LIST = Path(__file__).resolve().parents[2] / 'data' / 'animals.txt'


class WordList:
    """Case-insensitive word set used to accept or reject a move."""

    def __init__(self, words: Iterable[str]):
        self._words = {w.strip().lower() for w in words if w and w.strip()}

    def __contains__(self, word):
        return normalize(word) in self._words

    def __len__(self):
        return len(self._words)

    def check(self, word: str, required_start_letter: Optional[str] = None) -> Tuple[bool, str]:
        if not word or not isinstance(word, str) or not word.strip():
            return False, 'Word required'
        formatted = normalize(word)
        if formatted not in self._words:
            return False, 'Word not in list'
        if required_start_letter and formatted[0] != required_start_letter.lower():
            return False, f'Word must start with "{required_start_letter.upper()}"'
        return True, ''


def normalize(word: str) -> str:
    return (word or '').strip().lower()


def load_word_list(path=None) -> WordList:
    source = Path(path) if path else DEFAULT_WORD_LIST
    with source.open(encoding='utf-8') as fh:
        return WordList(fh.read().splitlines())
