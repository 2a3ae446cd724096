import functools
import inspect
from datetime import datetime, timezone

from loguru import logger


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how the datastore persists datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def clamp(value: float, low: float, high: float, name: str = "value") -> float:
    """Pull a computed value back into [low, high] before it reaches storage."""
    if value < low or value > high:
        logger.debug(f"Clamping {name}={value} into [{low}, {high}]")
    return max(low, min(high, value))


def sign(value: float) -> int:
    """Direction of a value as +1/-1; zero counts as negative."""
    return 1 if value > 0 else -1


def safe_func_wrapper(func):
    """
    A decorator that logs coroutine entry, exit, and exceptions.

    Features:
    - Prints function name and parameters before execution
    - Catches exceptions, prints error info, and re-raises
    - Prints success message after successful execution
    - Preserves function metadata and return values
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        func_name = func.__name__

        sig = inspect.signature(func)
        bound_args = sig.bind(*args, **kwargs)
        bound_args.apply_defaults()
        params = {k: v for k, v in bound_args.arguments.items() if k != "self"}

        logger.info(f"Entering {func_name} with params: {params}")

        try:
            result = await func(*args, **kwargs)
            logger.info(f"{func_name} succeeded. Exiting..")
            return result
        except Exception as e:
            logger.error(f"{func_name} raised {type(e).__name__}: {e}")
            raise

    return wrapper
