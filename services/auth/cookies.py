"""Cookie bookkeeping for the broker's web login flow.

The broker answers each step with one or more `Set-Cookie` headers, and the
next step must replay them as a single `Cookie` header. Cookies are carried
explicitly between steps rather than through an HTTP client's jar so that no
state leaks between accounts or attempts.
"""

import re
from typing import Iterable, Iterator, List, Optional, Tuple

# A comma starts a new cookie only when followed by `name=`; commas inside
# attribute values such as `Expires=Wed, 21 Oct 2026 07:28:00 GMT` do not.
_COOKIE_BOUNDARY = re.compile(r",(?=\s*[\w.\-]+=)")


class CookieJar:
    """Immutable ordered collection of (name, value) pairs."""

    __slots__ = ("_pairs",)

    def __init__(self, pairs: Iterable[Tuple[str, str]] = ()):
        ordered: List[Tuple[str, str]] = []
        for name, value in pairs:
            ordered = _upsert(ordered, name, value)
        self._pairs: Tuple[Tuple[str, str], ...] = tuple(ordered)

    @classmethod
    def from_set_cookie(cls, *raw_values: str) -> "CookieJar":
        """Parse one or more raw `Set-Cookie` values (possibly comma-joined)."""
        pairs = []
        for raw in raw_values:
            if not raw:
                continue
            for fragment in _COOKIE_BOUNDARY.split(raw):
                pair = fragment.split(";", 1)[0].strip()
                if not pair or "=" not in pair:
                    continue
                name, value = pair.split("=", 1)
                name = name.strip()
                if name:
                    pairs.append((name, value.strip()))
        return cls(pairs)

    def merge(self, other: "CookieJar") -> "CookieJar":
        """New jar with `other` applied on top; replaced names keep their position."""
        return CookieJar(list(self._pairs) + list(other._pairs))

    def get(self, name: str) -> Optional[str]:
        for key, value in self._pairs:
            if key == name:
                return value
        return None

    def names(self) -> List[str]:
        return [name for name, _ in self._pairs]

    def header(self) -> str:
        """Render as a `Cookie` request header value."""
        return "; ".join(f"{name}={value}" for name, value in self._pairs)

    def __iter__(self) -> Iterator[Tuple[str, str]]:
        return iter(self._pairs)

    def __len__(self) -> int:
        return len(self._pairs)

    def __bool__(self) -> bool:
        return bool(self._pairs)

    def __eq__(self, other) -> bool:
        if not isinstance(other, CookieJar):
            return NotImplemented
        return self._pairs == other._pairs

    def __repr__(self) -> str:
        return f"CookieJar(names={self.names()!r})"


def _upsert(pairs: List[Tuple[str, str]], name: str, value: str) -> List[Tuple[str, str]]:
    for index, (key, _) in enumerate(pairs):
        if key == name:
            pairs[index] = (name, value)
            return pairs
    pairs.append((name, value))
    return pairs


def set_cookie_to_cookie_header(*raw_values: str) -> str:
    """Convert raw `Set-Cookie` values to a `Cookie` header in one call."""
    return CookieJar.from_set_cookie(*raw_values).header()


def join_set_cookie(*raw_values: str) -> str:
    """Comma-join raw `Set-Cookie` batches into a single blob."""
    return ", ".join(value for value in raw_values if value)
