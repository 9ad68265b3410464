import logging

import streamlit as st
from supabase import Client, create_client

from palate.config import get_secret, normalize_secret_string
from palate.error_handling import AuthorizationError, BackendError, DataValidationError, raise_backend_error

logger = logging.getLogger(__name__)

CLIENT_KEY = "supabase_client"


def create_supabase_client() -> Client:
    """Build a client from SUPABASE_URL / SUPABASE_KEY in secrets or the environment."""
    supabase_url = normalize_secret_string(get_secret("SUPABASE_URL"), "SUPABASE_URL")
    supabase_key = normalize_secret_string(get_secret("SUPABASE_KEY"), "SUPABASE_KEY")
    return create_client(supabase_url, supabase_key)


def get_supabase_client() -> Client:
    """
    Return the Supabase client for this browser session.

    The client is created once and kept in `st.session_state`, so a staff
    sign-in survives Streamlit reruns.
    """
    cached_client = st.session_state.get(CLIENT_KEY)
    if cached_client is not None:
        return cached_client

    sb = create_supabase_client()
    st.session_state[CLIENT_KEY] = sb
    return sb


def sign_in_with_password(sb: Client, email: str, password: str) -> str:
    """
    Sign in a password account and return its user id.

    Raises:
        AuthorizationError: Wrong credentials or no session returned
    """
    try:
        auth_response = sb.auth.sign_in_with_password(
            {"email": email, "password": password}
        )
    except Exception as e:
        logger.warning(f"Password sign-in failed for {email}: {type(e).__name__}")
        raise AuthorizationError("Invalid email or password") from e

    session = getattr(auth_response, "session", None)
    user = getattr(auth_response, "user", None)
    if not session or not session.access_token or not user:
        raise AuthorizationError("Supabase password login did not return a valid session")

    return user.id


def sign_out(sb: Client) -> None:
    """End the backend auth session, if any."""
    try:
        sb.auth.sign_out()
    except Exception as e:
        logger.warning(f"Sign-out failed: {type(e).__name__} - {e}")


def sign_up(sb: Client, email: str, password: str, display_name: str) -> str:
    """
    Create a backend auth account and return its user id.

    Raises:
        DataValidationError: The email already has an account
        BackendError: Sign-up failed or returned no user
    """
    try:
        auth_response = sb.auth.sign_up({
            "email": email,
            "password": password,
            "options": {"data": {"display_name": display_name}},
        })
    except Exception as e:
        if "already registered" in str(e).lower():
            raise DataValidationError("This email is already registered. Try logging in instead.") from e
        raise_backend_error(e, "create account")

    user = getattr(auth_response, "user", None)
    if not user:
        raise BackendError("Failed to create account")
    return user.id
