from typing import List
from typing import Sequence
from typing import TypeVar


T = TypeVar("T")


def chunk_items(items: Sequence[T], size: int) -> List[List[T]]:
    """Split a sequence into ordered chunks of at most `size` items.

    Args:
        items: Items to split.
        size: Maximum items per chunk.
    """

    if size <= 0:
        raise ValueError("size must be > 0")

    return [list(items[index:index + size]) for index in range(0, len(items), size)]

