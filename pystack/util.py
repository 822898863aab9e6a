from typing import Optional, TypeVar

T = TypeVar('T')


def ensure(value: Optional[T], what: str = "value") -> T:
    """Narrow an Optional that must be set at this point.

    Raises:
        RuntimeError: naming what was missing.
    """
    if value is None:
        raise RuntimeError(f"Expected {what} to be set")
    return value
