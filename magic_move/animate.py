"""
Token-diff animation between two step layouts.

Tokens are identified by ``(text, occurrence_index)`` where the occurrence
index is the rank of that exact text within its own layout: the first ``foo``
is occurrence 0, the second ``foo`` occurrence 1, and so on. Identical
literals in hand-edited snippets usually denote the same element, so this
cheap content-based key is what decides which tokens glide and which fade.
"""
from typing import Dict, List, Sequence, Tuple

from .models import AnimatedToken, Layout, PositionedToken

TokenKey = Tuple[str, int]


def occurrence_keys(tokens: Sequence[PositionedToken]) -> List[TokenKey]:
    """Key every token by its text and its rank among tokens with that text."""
    seen: Dict[str, int] = {}
    keys = []
    for token in tokens:
        index = seen.get(token.text, 0)
        seen[token.text] = index + 1
        keys.append((token.text, index))
    return keys


def _lerp(a: float, b: float, t: float) -> float:
    # Endpoints are returned untouched so boundary frames never drift.
    if t <= 0 or a == b:
        return a
    if t >= 1:
        return b
    return a + (b - a) * t


def animate_layouts(from_layout: Layout, to_layout: Layout, progress: float) -> List[AnimatedToken]:
    """
    Interpolated tokens between two adjacent steps.

    * matched tokens move from their source to their destination position and
      take the destination colour as soon as ``progress > 0``
    * source-only tokens fade out in place
    * destination-only tokens fade in in place

    Source tokens come first (in source order), followed by the
    destination-only tokens (in destination order).
    """
    p = min(1.0, max(0.0, float(progress)))

    to_by_key = dict(zip(occurrence_keys(to_layout.tokens), to_layout.tokens))
    matched = set()
    animated: List[AnimatedToken] = []

    for key, src in zip(occurrence_keys(from_layout.tokens), from_layout.tokens):
        dst = to_by_key.get(key)
        if dst is None:
            animated.append(AnimatedToken(src.text, src.color, src.x, src.y, 1.0 - p))
            continue
        matched.add(key)
        animated.append(AnimatedToken(
            text=src.text,
            color=dst.color if p > 0 else src.color,
            x=_lerp(src.x, dst.x, p),
            y=_lerp(src.y, dst.y, p),
            opacity=1.0,
        ))

    for key, dst in to_by_key.items():
        if key not in matched:
            animated.append(AnimatedToken(dst.text, dst.color, dst.x, dst.y, p))

    return animated
