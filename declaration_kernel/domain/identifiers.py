"""Declaration identifiers: 12-digit references the registry echoes back."""

from __future__ import annotations

import secrets
from typing import Callable, Collection

DECLARATION_ID_LENGTH = 12

_MAX_DRAWS = 100


def random_declaration_id() -> str:
    return "".join(secrets.choice("0123456789") for _ in range(DECLARATION_ID_LENGTH))


class DeclarationIdGenerator:
    """
    Mints fresh declaration ids.

    Contract:
        ``next_id(avoid)`` never returns an id contained in ``avoid`` nor one
        it returned earlier.  ``source`` is injectable so tests can make the
        sequence deterministic.
    """

    def __init__(self, source: Callable[[], str] = random_declaration_id):
        self._source = source
        self._issued: set[str] = set()

    def next_id(self, avoid: Collection[str] = ()) -> str:
        for _ in range(_MAX_DRAWS):
            candidate = self._source()
            if candidate in avoid or candidate in self._issued:
                continue
            if len(candidate) != DECLARATION_ID_LENGTH:
                raise ValueError(
                    f"Declaration id must be {DECLARATION_ID_LENGTH} characters: {candidate!r}"
                )
            self._issued.add(candidate)
            return candidate
        raise RuntimeError(f"No unused declaration id after {_MAX_DRAWS} draws")
