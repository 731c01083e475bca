"""
Connection detector: symmetric connections from mutual mentions.

A and B are connected when A mentions B in at least one post and B mentions A
in at least one post. Strength = min(posts where A mentions B, posts where B
mentions A). For each connected user the first unit is a "first connection",
the rest are "repeat connections".

Users without a username take no part in connections, in either direction,
which keeps connections(A, B) == connections(B, A).
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Set

from socialweight.scoring.mentions import MentionMatcher, patterns_for

logger = logging.getLogger('scoring.connections')


@dataclass
class ConnectionStats:
    first: int = 0
    repeat: int = 0
    they_mention: int = 0     # distinct users who mention the scored user
    i_mention: int = 0        # of those, how many the scored user mentions back
    per_user: Dict[str, int] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return self.first + self.repeat

    def points(self, first_weight: float, repeat_weight: float) -> float:
        return self.first * first_weight + self.repeat * repeat_weight


def detect_connections(
    user_id: str,
    username: str,
    items: Iterable[Dict[str, Any]],
    resolve_handles: Callable[[List[str]], Dict[str, str]],
) -> ConnectionStats:
    """
    Count mutual-mention connections for one user.

    Args:
        user_id:         The scored user.
        username:        Their handle; without one the result is empty.
        items:           Recent content window as {'id', 'author_id', 'body'} dicts.
        resolve_handles: user ids → {user_id: username}, for the mentioning authors.
    """
    stats = ConnectionStats()
    if not username or not username.strip():
        logger.debug("User %s has no handle, skipping connections", user_id)
        return stats

    items = list(items)
    me = MentionMatcher.for_user(user_id, username)

    # Who mentions me, and where
    they_mentioned_me: Dict[str, Set[Any]] = {}
    my_items = []
    for item in items:
        author = item.get('author_id')
        if not author:
            continue
        if author == user_id:
            my_items.append(item)
            continue
        if me.matches(item.get('body')):
            they_mentioned_me.setdefault(author, set()).add(item['id'])

    stats.they_mention = len(they_mentioned_me)
    if not they_mentioned_me:
        return stats

    handles = resolve_handles(sorted(they_mentioned_me))
    others = MentionMatcher({
        uid: patterns_for(handle, uid)
        for uid, handle in handles.items()
        if uid in they_mentioned_me and handle and handle.strip()
    })
    if others.empty:
        return stats

    # Where I mention each of them
    i_mentioned_them: Dict[str, Set[Any]] = {}
    for item in my_items:
        for uid in others.mentioned(item.get('body')):
            i_mentioned_them.setdefault(uid, set()).add(item['id'])

    stats.i_mention = len(i_mentioned_them)
    for uid, mine in i_mentioned_them.items():
        theirs = they_mentioned_me.get(uid, set())
        strength = min(len(theirs), len(mine))
        if strength <= 0:
            continue
        stats.per_user[uid] = strength
        stats.first += 1
        stats.repeat += strength - 1

    return stats
