"""Fixed-capacity rolling buffers."""

from typing import Sequence, TypeVar

T = TypeVar("T")


def append_bounded(items: Sequence[T], item: T, capacity: int) -> list[T]:
    """Append an item and drop the oldest ones to stay within capacity.

    The input sequence is not modified.

    Args:
        items: Existing items, oldest first.
        item: Item to append.
        capacity: Maximum number of items to keep. Zero or less keeps nothing.

    Returns:
        A new list with the most recent `capacity` items in original order.
    """
    if capacity <= 0:
        return []
    result = list(items)
    result.append(item)
    return result[-capacity:]
