from __future__ import annotations

import re


class Tokenizer:
    """Whitespace tokenizer used by the hash vectorizer.

    Rules, applied in order:
      1) split on ASCII whitespace (space, tab, newline, vertical tab, form feed, carriage return)
      2) drop every character that is not an ASCII letter or digit
      3) lowercase
      4) drop tokens that end up empty

    Only ASCII counts as alphanumeric, so accented letters and other non-ASCII
    characters are removed rather than folded. Stored and query text must go
    through exactly these rules or their vectors stop lining up.
    """

    SPLIT_RE = re.compile(r"[ \t\n\v\f\r]+")
    STRIP_RE = re.compile(r"[^A-Za-z0-9]+")

    def tokenize(self, text: str) -> list[str]:
        out: list[str] = []
        for raw in self.SPLIT_RE.split(text):
            token = self.STRIP_RE.sub("", raw).lower()
            if token:
                out.append(token)
        return out


_DEFAULT = Tokenizer()


def tokenize(text: str) -> list[str]:
    return _DEFAULT.tokenize(text)


__all__ = ["Tokenizer", "tokenize"]
