"""Multi-row INSERT helpers.

asyncpg rejects statements with more than 32767 bind parameters, so long
VALUES lists are split and executed chunk by chunk in the caller's
transaction.
"""

from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")

# Stays under the bind parameter cap for rows of up to 32 columns
MAX_ROWS_PER_INSERT = 1000


def chunked(rows: Sequence[T], size: int = MAX_ROWS_PER_INSERT) -> Iterator[Sequence[T]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]
