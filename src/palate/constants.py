"""
Palate Collectif Constants and Enums

Centralized constants, enums, and magic values to eliminate string duplication
and improve type safety.
"""

from enum import Enum


# =======================
# WINE ATTRIBUTE ENUMS
# =======================

class WineType(str, Enum):
    """Wine type categories."""
    RED = "red"
    WHITE = "white"
    ROSE = "rosé"
    SPARKLING = "sparkling"
    DESSERT = "dessert"
    FORTIFIED = "fortified"
    ORANGE = "orange"


class BeverageType(str, Enum):
    """Beverage categories served at events."""
    WINE = "Wine"
    BEER = "Beer"
    SPIRIT = "Spirit"
    COCKTAIL = "Cocktail"
    NON_ALCOHOLIC = "Non-Alcoholic"


class PricePoint(str, Enum):
    """Price brackets."""
    BUDGET = "Budget"
    MID_RANGE = "Mid-range"
    PREMIUM = "Premium"
    LUXURY = "Luxury"


# =======================
# WORKFLOW ENUMS
# =======================

class AccessType(str, Enum):
    """How attendees enter an event."""
    EVENT_CODE = "event_code"
    EMAIL_ONLY = "email_only"


class UserWineStatus(str, Enum):
    """Review status of a user-submitted wine."""
    PENDING = "pending"
    MERGED = "merged"
    REJECTED = "rejected"
    VERIFIED = "verified"  # Picked from the master list, no review needed


class OrgRole(str, Enum):
    """Organization membership roles."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class HealthStatus(str, Enum):
    """Outcome of a data health check."""
    PASS = "pass"
    WARNING = "warning"
    FAIL = "fail"


class Role(str, Enum):
    """Platform roles checked by the gated pages."""
    ATTENDEE = "attendee"
    ADMIN = "admin"
    CURATOR = "curator"


# =======================
# BACKEND TABLE NAMES
# =======================

class Tables:
    """Backend table names to avoid string hardcoding."""

    PROFILES = "profiles"
    EVENTS = "tasting_events"
    LOCATIONS = "event_locations"
    EVENT_WINES = "event_wines"
    MASTER_WINES = "wines_master"
    RATINGS = "user_wine_ratings"
    RATING_DESCRIPTORS = "user_wine_descriptors"
    USER_WINES = "user_wines"
    ORGANIZATIONS = "organizations"
    ORG_MEMBERS = "organization_members"
    BUDDY_CODES = "buddy_codes"
    BUDDIES = "tasting_buddies"
    BUDDY_SESSIONS = "event_buddy_sessions"


# =======================
# SESSION KEYS
# =======================

class SessionKeys:
    """Session-state keys holding the cached identity of each role."""

    USER = "palate-user"
    TEMP_USER = "palate-temp-user"
    CURRENT_EVENT = "palate-current-event"
    ADMIN_USER = "palate-admin-user"
    CURATOR_USER = "palate-curator-user"
    BOOTH_USER = "palate-booth-user"
    BOOTH_EMAIL = "palate-booth-email"
    BOOTH_EVENT = "palate-booth-event"

    @classmethod
    def for_role(cls, role: Role) -> str:
        """Session key caching the profile id for a role."""
        return {
            Role.ATTENDEE: cls.TEMP_USER,
            Role.ADMIN: cls.ADMIN_USER,
            Role.CURATOR: cls.CURATOR_USER,
        }[role]


# =======================
# ALGORITHM CONSTANTS
# =======================

class SimilarityWeights:
    """Field weights for duplicate-wine detection (sum to 1.0)."""

    WINE_NAME = 0.5
    PRODUCER = 0.3
    VINTAGE = 0.1
    REGION = 0.1


class PreferenceWeights:
    """
    Weight a rating contributes to taste preferences.

    Ratings below 3 stars carry no preference signal.
    """

    FIVE_STAR = 3
    FOUR_STAR = 2
    THREE_STAR = 1

    @classmethod
    def for_rating(cls, rating: float) -> int:
        if rating >= 5:
            return cls.FIVE_STAR
        if rating >= 4:
            return cls.FOUR_STAR
        if rating >= 3:
            return cls.THREE_STAR
        return 0


class MatchScoreCaps:
    """Per-attribute caps and multipliers for recommendation scoring."""

    TYPE_CAP, TYPE_MULTIPLIER, TYPE_REASON_AT = 30, 10, 20
    REGION_CAP, REGION_MULTIPLIER, REGION_REASON_AT = 25, 8, 15
    STYLE_CAP, STYLE_MULTIPLIER, STYLE_REASON_AT = 25, 5, 15
    GRAPE_CAP, GRAPE_MULTIPLIER, GRAPE_REASON_AT = 15, 5, 10
    PRICE_CAP, PRICE_MULTIPLIER = 5, 2
    MAX_SCORE = 100
    POPULARITY_SCALE = 20  # 5 stars -> 100


RATING_SCALE = (1, 2, 3, 4, 5)
AGREEMENT_TOLERANCE = 1  # Buddies "agree" when ratings differ by at most one star


# =======================
# UI CONSTANTS
# =======================

class UIConstants:
    """UI-related constants."""

    WINE_EMOJIS = {
        WineType.RED: '🍷',
        WineType.WHITE: '🥂',
        WineType.ROSE: '🌸',
        WineType.SPARKLING: '🍾',
        WineType.DESSERT: '🍯',
        WineType.FORTIFIED: '🥃',
        WineType.ORANGE: '🍊',
    }

    ROLE_LABELS = {
        OrgRole.OWNER: 'Owner - Full control of group',
        OrgRole.ADMIN: 'Admin - Manage events',
        OrgRole.MEMBER: 'Member - View only',
    }

    HEALTH_ICONS = {
        HealthStatus.PASS: '✅',
        HealthStatus.WARNING: '⚠️',
        HealthStatus.FAIL: '❌',
    }

    GENERIC_ERROR = "Something went wrong. Please try again."
