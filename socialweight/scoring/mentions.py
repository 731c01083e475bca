"""
Mention tokenizer + matcher.

Grammar (case-insensitive):

    mention  := boundary ( "@" handle | "/u/" handle | "/u/" user_id )
    handle   := word-char ( word-char | "." | "-" )*   (trailing "." / "-" dropped)
    boundary := for "@": start of text, or any char that is not a word char, "/" or "@"
                for "/u/": none, so profile links inside URLs count

Word chars are Unicode letters, digits and "_", so "@josé" and "@дмитрий" are
whole handles. Text and handles are NFC-normalized before matching.

A token ends at the first character outside the handle alphabet, so
"@alice2" is the token "alice2" and never matches "alice", while "@alice,"
and "(@alice)" do. "bob@alice.com" is not a mention.
"""
import re
import unicodedata
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Set

_TOKEN = re.compile(r"((?<![\w@/])@|/u/)(\w[\w.\-]*)", re.IGNORECASE)


def _normalize(value: str) -> str:
    return unicodedata.normalize('NFC', value).lower()


@dataclass(frozen=True)
class Mention:
    prefix: str   # "@" or "/u/"
    value: str    # lowercased handle or id

    def __str__(self):
        return f'{self.prefix}{self.value}'


def extract_mentions(text: Optional[str]) -> Set[Mention]:
    """Return the distinct mention tokens in a piece of text."""
    if not text:
        return set()
    found = set()
    for match in _TOKEN.finditer(unicodedata.normalize('NFC', text)):
        value = match.group(2).rstrip('.-').lower()
        if value:
            found.add(Mention(match.group(1).lower(), value))
    return found


def patterns_for(username: Optional[str], user_id: Optional[str] = None) -> Set[Mention]:
    """All the ways a user can be mentioned: @handle, /u/handle, /u/id."""
    patterns = set()
    handle = _normalize((username or '').strip())
    if handle:
        patterns.add(Mention('@', handle))
        patterns.add(Mention('/u/', handle))
    if user_id:
        patterns.add(Mention('/u/', _normalize(str(user_id).strip())))
    return patterns


class MentionMatcher:
    """Answers "does this text mention X?" for one target or a set of targets."""

    def __init__(self, targets: Dict[str, Iterable[Mention]]):
        self._index: Dict[Mention, Set[str]] = {}
        for key, patterns in targets.items():
            for pattern in patterns:
                self._index.setdefault(pattern, set()).add(key)

    @classmethod
    def for_user(cls, user_id: str, username: Optional[str]) -> 'MentionMatcher':
        return cls({user_id: patterns_for(username, user_id)})

    @property
    def empty(self) -> bool:
        return not self._index

    def mentioned(self, text: Optional[str]) -> Set[str]:
        """Keys of every target mentioned in the text."""
        hits: Set[str] = set()
        for token in extract_mentions(text):
            hits |= self._index.get(token, set())
        return hits

    def matches(self, text: Optional[str]) -> bool:
        return bool(self.mentioned(text))

