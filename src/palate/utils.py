"""
Utility functions for Palate Collectif.

Includes logging setup, code generation, input sanitization and the small
formatting helpers shared by the pages.
"""

import logging
import math
import re
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from palate import config
from palate.constants import UIConstants, WineType

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


# =======================
# CODES & IDENTIFIERS
# =======================

def generate_code(length: int, alphabet: str) -> str:
    """Random code drawn from an alphabet."""
    return ''.join(secrets.choice(alphabet) for _ in range(length))


def generate_event_code(length: int = config.EVENT_CODE_LENGTH) -> str:
    """Generate a random event code (upper-case letters and digits)."""
    return generate_code(length, config.EVENT_CODE_ALPHABET)


def generate_buddy_code() -> str:
    """Generate a 4-letter buddy code without the ambiguous I and O."""
    return generate_code(config.BUDDY_CODE_LENGTH, config.BUDDY_CODE_ALPHABET)


def normalize_code(code: Optional[str]) -> str:
    """Event and buddy codes are compared upper-cased and trimmed."""
    return (code or '').strip().upper()


def generate_profile_id(prefix: str) -> str:
    """
    Identifier for a temporary profile, e.g. temp_1718000000000_k3j9x0a2b.

    Args:
        prefix: 'temp' for event-code joins, 'booth' for booth visitors
    """
    millis = int(time.time() * 1000)
    suffix = generate_code(9, 'abcdefghijklmnopqrstuvwxyz0123456789')
    return f"{prefix}_{millis}_{suffix}"


# =======================
# INPUT SANITIZATION
# =======================

def sanitize_text_input(text: Optional[str], max_length: int = config.MAX_NOTES_LENGTH) -> Optional[str]:
    """
    Clean free-text notes before they are stored.

    Returns None for blank input so that optional columns stay NULL.
    """
    if not text:
        return None

    text = text[:max_length]

    # Remove excessive newlines (keep max 2 consecutive)
    text = re.sub(r'\n{3,}', '\n\n', text)

    # Remove non-printable characters (except newlines, tabs)
    text = ''.join(char for char in text if char.isprintable() or char in '\n\t')

    text = text.strip()
    return text or None


def normalize_email(email: Optional[str]) -> str:
    return (email or '').strip().lower()


def blank_to_none(value: Any) -> Any:
    """Empty strings become None; everything else passes through."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


# =======================
# NUMBERS & DATES
# =======================

def safe_divide(numerator: float, denominator: float, default: float = 0.0) -> float:
    """
    Safely divide two numbers, handling zero division.

    Args:
        numerator: Number to divide
        denominator: Number to divide by
        default: Value to return if division by zero

    Returns:
        Result of division or default
    """
    if denominator == 0:
        return default
    return numerator / denominator


def round_half_up(value: float, digits: int = 1) -> float:
    """Round like Math.round (halves go up), to the given number of decimals."""
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def calculate_average_rating(ratings: Sequence[float]) -> float:
    """Arithmetic mean rounded to one decimal; 0 for no ratings."""
    if len(ratings) == 0:
        return 0.0
    return round_half_up(sum(ratings) / len(ratings), 1)


def percent(part: float, whole: float) -> int:
    """Whole-number percentage, 0 when the whole is empty."""
    return int(round_half_up(safe_divide(part * 100, whole), 0))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a backend timestamp (ISO string or datetime) into an aware datetime."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).replace('Z', '+00:00')
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.warning(f"Unparseable timestamp: {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_date(value: Any, fmt: str = '%b %d, %Y') -> str:
    """Format a backend date for display ('Jun 14, 2025')."""
    parsed = parse_timestamp(value)
    return parsed.strftime(fmt) if parsed else ''


# =======================
# DISPLAY HELPERS
# =======================

def truncate(text: str, length: int) -> str:
    """Truncate text with ellipsis."""
    if len(text) <= length:
        return text
    return text[:length] + '...'


def wine_emoji(wine_type: Optional[str]) -> str:
    """Emoji for a wine type, red glass when unknown."""
    try:
        return UIConstants.WINE_EMOJIS[WineType((wine_type or '').lower())]
    except ValueError:
        return UIConstants.WINE_EMOJIS[WineType.RED]


def format_rating(rating: float) -> str:
    return f"{rating:.1f}"


def sort_wines(wines: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Sort wines by stop order on a crawl, then by tasting order.

    Wines without a joined location sort as stop 0.
    """
    def sort_key(wine: Dict[str, Any]):
        location = wine.get('event_locations') or {}
        return (location.get('location_order') or 0, wine.get('tasting_order') or 0)

    return sorted(wines, key=sort_key)
