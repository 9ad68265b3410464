"""
Palate Collectif Configuration
Centralized settings for the application
"""

import os
from typing import Any, Optional

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

# Account lifetimes
TEMP_ACCOUNT_DAYS = 7  # Attendees joining with an event code
BOOTH_ACCOUNT_DAYS = 30  # Booth visitors identified by email
BUDDY_CODE_DAYS = 7
MIN_PASSWORD_LENGTH = 6  # Converting a temporary account

# Codes
EVENT_CODE_LENGTH = 6
EVENT_CODE_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
BUDDY_CODE_LENGTH = 4
BUDDY_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ"  # No I or O

# Curation
DUPLICATE_THRESHOLD = 0.3
DUPLICATE_SEARCH_LIMIT = 5
MASTER_LIST_LIMIT = 100
STALE_TEMP_ACCOUNT_DAYS = 30  # Data health check

# Analytics
FAVORITE_MIN_RATING = 4  # "Top rated" on the favourites list
MIN_RATINGS_FOR_RANKING = 2
TOP_WINES_LIMIT = 10
TOP_DESCRIPTORS_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 10

# Recommendations
RECOMMENDATION_LIMIT = 10
MIN_RATINGS_FOR_PROFILE = 2

# Input limits
MAX_NOTES_LENGTH = 2000


def get_secret(name: str, default: Optional[Any] = None) -> Optional[Any]:
    """Read a setting from Streamlit secrets, falling back to the environment."""
    try:
        return st.secrets[name]
    except (FileNotFoundError, KeyError):
        return os.getenv(name, default)


def normalize_secret_string(raw_value: object, secret_name: str) -> str:
    """Normalize and validate secret strings from Streamlit secrets."""
    if raw_value is None:
        raise ValueError(f"{secret_name} is missing")

    value = str(raw_value).strip()
    quote_pairs = [
        ('"', '"'),
        ("'", "'"),
        ("“", "”"),
        ("‘", "’"),
    ]
    for left_quote, right_quote in quote_pairs:
        if value.startswith(left_quote) and value.endswith(right_quote) and len(value) >= 2:
            value = value[1:-1].strip()
            break

    if not value:
        raise ValueError(f"{secret_name} is empty")
    return value
