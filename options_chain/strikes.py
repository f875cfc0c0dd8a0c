# strikes.py
from typing import Iterable, List, Optional, Sequence, Set

from options_chain.schemas import EnrichedOption

DEFAULT_HALF_WIDTH = 10


def select_strike_window(strikes: Iterable[float], price: Optional[float], half_width: int = DEFAULT_HALF_WIDTH) -> Set[float]:
    """
    Pick up to `half_width` strikes below `price` and up to `half_width` at or
    above it, nearest first on each side. A strike equal to the price counts as
    "at or above". With no price every strike passes through.
    """
    unique = set(strikes)
    if price is None:
        return unique

    below = sorted((s for s in unique if s < price), reverse=True)
    at_or_above = sorted(s for s in unique if s >= price)
    return set(below[:half_width]) | set(at_or_above[:half_width])


def window_options(
    options: Sequence[EnrichedOption],
    price: Optional[float],
    half_width: int = DEFAULT_HALF_WIDTH,
) -> List[EnrichedOption]:
    """
    Keep the options whose strike falls in the window around `price`, highest strike first.
    """
    window = select_strike_window((o.strike_price for o in options), price, half_width)
    kept = [o for o in options if o.strike_price in window]
    return sorted(kept, key=lambda o: o.strike_price, reverse=True)
