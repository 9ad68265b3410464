"""
Direct PostgreSQL access for Palate Collectif.

The app talks to Supabase through its REST client; this module is only used
by operator scripts to bootstrap the schema and purge expired temporary
accounts.
"""

import logging
from datetime import datetime
from typing import Optional

import psycopg
from psycopg_pool import ConnectionPool

from palate.config import get_secret, normalize_secret_string
from palate.utils import utcnow

logger = logging.getLogger(__name__)

# Global connection pool
_connection_pool: Optional[ConnectionPool] = None

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS profiles (
        id TEXT PRIMARY KEY,
        display_name TEXT NOT NULL DEFAULT 'Guest',
        email TEXT,
        eventbrite_email TEXT,
        is_admin BOOLEAN NOT NULL DEFAULT FALSE,
        is_curator BOOLEAN NOT NULL DEFAULT FALSE,
        is_temp_account BOOLEAN NOT NULL DEFAULT FALSE,
        account_expires_at TIMESTAMPTZ,
        converted_from TEXT,
        converted_at TIMESTAMPTZ,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS organizations (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL,
        description TEXT,
        created_by TEXT REFERENCES profiles(id) ON DELETE SET NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS organization_members (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        organization_id UUID NOT NULL REFERENCES organizations(id) ON DELETE CASCADE,
        profile_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        role TEXT NOT NULL DEFAULT 'member' CHECK (role IN ('owner', 'admin', 'member')),
        invited_by TEXT REFERENCES profiles(id) ON DELETE SET NULL,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        CONSTRAINT unique_org_member UNIQUE (organization_id, profile_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS tasting_events (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        event_code TEXT NOT NULL,
        event_name TEXT NOT NULL,
        event_date DATE,
        location TEXT,
        description TEXT,
        admin_id TEXT REFERENCES profiles(id) ON DELETE SET NULL,
        organization_id UUID REFERENCES organizations(id) ON DELETE SET NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        is_deleted BOOLEAN NOT NULL DEFAULT FALSE,
        is_closed BOOLEAN NOT NULL DEFAULT FALSE,
        is_booth_mode BOOLEAN NOT NULL DEFAULT FALSE,
        access_type TEXT NOT NULL DEFAULT 'event_code' CHECK (access_type IN ('event_code', 'email_only')),
        max_participants INTEGER,
        booth_welcome_message TEXT,
        booth_logo_url TEXT,
        booth_primary_color TEXT,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        CONSTRAINT unique_event_code UNIQUE (event_code)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS event_locations (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        event_id UUID NOT NULL REFERENCES tasting_events(id) ON DELETE CASCADE,
        location_name TEXT NOT NULL,
        location_address TEXT,
        location_order INTEGER NOT NULL DEFAULT 0
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS wines_master (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        wine_name TEXT NOT NULL,
        producer TEXT,
        vintage INTEGER,
        wine_type TEXT DEFAULT 'red',
        region TEXT,
        country TEXT,
        price_point TEXT,
        alcohol_content NUMERIC,
        default_notes TEXT,
        usage_count INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS event_wines (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        event_id UUID NOT NULL REFERENCES tasting_events(id) ON DELETE CASCADE,
        wine_name TEXT NOT NULL,
        producer TEXT,
        vintage INTEGER,
        wine_type TEXT NOT NULL DEFAULT 'red',
        beverage_type TEXT DEFAULT 'Wine',
        region TEXT,
        country TEXT,
        price_point TEXT,
        alcohol_content NUMERIC,
        sommelier_notes TEXT,
        image_url TEXT,
        tasting_order INTEGER NOT NULL DEFAULT 0,
        location_id UUID REFERENCES event_locations(id) ON DELETE SET NULL,
        wine_master_id UUID REFERENCES wines_master(id) ON DELETE SET NULL,
        grape_varieties JSONB NOT NULL DEFAULT '[]'::jsonb,
        wine_style TEXT[] NOT NULL DEFAULT '{}',
        created_at TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS user_wine_ratings (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        event_wine_id UUID NOT NULL REFERENCES event_wines(id) ON DELETE CASCADE,
        rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 5),
        personal_notes TEXT,
        would_buy BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        CONSTRAINT unique_user_event_wine UNIQUE (user_id, event_wine_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS descriptors (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        name TEXT NOT NULL UNIQUE,
        category TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS user_wine_descriptors (
        rating_id UUID NOT NULL REFERENCES user_wine_ratings(id) ON DELETE CASCADE,
        descriptor_id UUID NOT NULL REFERENCES descriptors(id) ON DELETE CASCADE,
        PRIMARY KEY (rating_id, descriptor_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS user_wines (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_id TEXT REFERENCES profiles(id) ON DELETE CASCADE,
        wine_master_id UUID REFERENCES wines_master(id) ON DELETE SET NULL,
        wine_name TEXT NOT NULL,
        producer TEXT,
        vintage INTEGER,
        wine_type TEXT,
        region TEXT,
        country TEXT,
        price_point TEXT,
        alcohol_content NUMERIC,
        personal_notes TEXT,
        status TEXT NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'merged', 'rejected', 'verified')),
        added_date TIMESTAMPTZ DEFAULT NOW()
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS buddy_codes (
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        event_id UUID NOT NULL REFERENCES tasting_events(id) ON DELETE CASCADE,
        code CHAR(4) NOT NULL,
        expires_at TIMESTAMPTZ NOT NULL,
        PRIMARY KEY (user_id, event_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS tasting_buddies (
        id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
        user_a_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        user_b_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        connected_at_event_id UUID REFERENCES tasting_events(id) ON DELETE SET NULL,
        is_permanent BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ DEFAULT NOW(),
        CONSTRAINT ordered_buddy_pair CHECK (user_a_id < user_b_id),
        CONSTRAINT unique_buddy_pair UNIQUE (user_a_id, user_b_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS event_buddy_sessions (
        event_id UUID NOT NULL REFERENCES tasting_events(id) ON DELETE CASCADE,
        user_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        buddy_id TEXT NOT NULL REFERENCES profiles(id) ON DELETE CASCADE,
        included_at_event BOOLEAN,
        PRIMARY KEY (event_id, user_id, buddy_id)
    );
    """,
]

INDEX_STATEMENTS = [
    "CREATE INDEX IF NOT EXISTS idx_event_wines_event ON event_wines(event_id);",
    "CREATE INDEX IF NOT EXISTS idx_ratings_user ON user_wine_ratings(user_id);",
    "CREATE INDEX IF NOT EXISTS idx_ratings_wine ON user_wine_ratings(event_wine_id);",
    "CREATE INDEX IF NOT EXISTS idx_user_wines_status ON user_wines(status);",
    "CREATE INDEX IF NOT EXISTS idx_buddy_codes_code ON buddy_codes(code);",
    "CREATE INDEX IF NOT EXISTS idx_profiles_email ON profiles(eventbrite_email);",
]


def get_database_url() -> str:
    """Get database URL from Streamlit secrets or environment."""
    return normalize_secret_string(get_secret("DATABASE_URL"), "DATABASE_URL")


def get_connection_pool() -> ConnectionPool:
    """
    Get or create connection pool.

    Pool configuration: min=1, max=5 connections.
    """
    global _connection_pool

    if _connection_pool is None:
        _connection_pool = ConnectionPool(
            get_database_url(),
            min_size=1,
            max_size=5,
            open=False,
        )
        _connection_pool.open()  # Open pool immediately

    return _connection_pool


def get_connection() -> psycopg.Connection:
    """Get a pooled database connection."""
    return get_connection_pool().getconn()


def return_connection(conn: psycopg.Connection) -> None:
    """Return connection to pool."""
    get_connection_pool().putconn(conn)


def close_pool() -> None:
    global _connection_pool
    if _connection_pool is not None:
        _connection_pool.close()
        _connection_pool = None


def init_database() -> int:
    """
    Create every table and index that does not exist yet.

    Returns:
        Number of statements executed
    """
    statements = SCHEMA_STATEMENTS + INDEX_STATEMENTS
    conn = get_connection()
    try:
        with conn.cursor() as cursor:
            cursor.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto";')
            for statement in statements:
                cursor.execute(statement)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        return_connection(conn)

    logger.info(f"Schema ready ({len(statements)} statements)")
    return len(statements)


def count_expired_accounts(now: Optional[datetime] = None) -> int:
    """Temporary profiles whose expiry has passed."""
    conn = get_connection()
    try:
        with conn.cursor() as cursor:
            cursor.execute("""
                SELECT COUNT(*) FROM profiles
                WHERE is_temp_account AND account_expires_at < %s
            """, (now or utcnow(),))
            return cursor.fetchone()[0]
    finally:
        return_connection(conn)


def purge_expired_accounts(now: Optional[datetime] = None) -> int:
    """
    Delete expired temporary profiles; their ratings go with them.

    Returns:
        Number of profiles deleted
    """
    conn = get_connection()
    try:
        with conn.cursor() as cursor:
            cursor.execute("""
                DELETE FROM profiles
                WHERE is_temp_account AND account_expires_at < %s
            """, (now or utcnow(),))
            deleted = cursor.rowcount
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        return_connection(conn)

    logger.info(f"Purged {deleted} expired temporary accounts")
    return deleted
