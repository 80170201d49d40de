import logging
import re
from pathlib import Path
from typing import Iterable, Optional, Union

logger = logging.getLogger("sensitive_filter")

REPLACEMENT = "***"


class SensitiveFilter:
    """Masks forbidden words in user-submitted text."""

    def __init__(self, words: Iterable[str] = ()):
        cleaned = {w.strip() for w in words if w and w.strip()}
        # Longest first so "foobar" wins over "foo"
        ordered = sorted(cleaned, key=len, reverse=True)
        self.words = ordered
        self._pattern: Optional[re.Pattern] = (
            re.compile("|".join(re.escape(w) for w in ordered), re.IGNORECASE) if ordered else None
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "SensitiveFilter":
        path = Path(path)
        if not path.exists():
            logger.warning(f"Sensitive word list {path} not found, filter is empty")
            return cls()
        words = []
        for line in path.read_text(encoding="utf-8").splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            words.append(line)
        logger.info(f"Loaded {len(words)} sensitive words from {path}")
        return cls(words)

    def filter(self, text: Optional[str]) -> Optional[str]:
        if not text or self._pattern is None:
            return text
        return self._pattern.sub(REPLACEMENT, text)
