"""Word list behind handle indices.

The registry only stores and validates indices; turning them into words is
done here, on the collaborator side, against a list whose hash and length
were committed when the registry was built.
"""

from pathlib import Path

from eth_utils import keccak

from .exceptions import InvalidHandle


class Vocabulary:
    """Ordered, hash-committed word list."""

    def __init__(self, words: list[str]):
        if not words:
            raise ValueError("Vocabulary must contain at least one word")
        if len(words) > 0x10000:
            raise ValueError("Vocabulary cannot exceed 65536 words")
        if len(set(words)) != len(words):
            raise ValueError("Vocabulary words must be unique")
        self.words = list(words)
        self._index = {word: i for i, word in enumerate(self.words)}

    @classmethod
    def from_file(cls, path: str | Path) -> "Vocabulary":
        """Load one word per line, ignoring blank lines."""
        text = Path(path).read_text(encoding="utf-8")
        return cls([line.strip() for line in text.splitlines() if line.strip()])

    def __len__(self) -> int:
        return len(self.words)

    @property
    def commitment(self) -> bytes:
        """keccak256 of the newline-joined word list."""
        return keccak(text="\n".join(self.words))

    def word(self, index: int) -> str:
        return self.words[index]

    def format(self, indices: list[int], sep: str = "-") -> str:
        return sep.join(self.words[i] for i in indices)

    def parse(self, phrase: str, sep: str = "-") -> list[int]:
        """Map a formatted phrase back to word indices.

        Raises:
            InvalidHandle: A word is not in the vocabulary
        """
        indices = []
        for word in phrase.strip().split(sep):
            if word not in self._index:
                raise InvalidHandle(f"Unknown word: {word!r}")
            indices.append(self._index[word])
        return indices
