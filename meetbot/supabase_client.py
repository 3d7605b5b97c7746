"""
Supabase client initialization for meetbot.

The service-role client bypasses Row Level Security; it is only used by the
stores in `integrations/token_storage.py`, after the Slack request has been
verified.
"""
from __future__ import annotations

from functools import lru_cache

from supabase import create_client, Client


@lru_cache
def get_supabase_client(url: str, service_role_key: str) -> Client:
    """
    Get a Supabase client with service role key.

    Args:
        url: Supabase project URL
        service_role_key: Service role key

    Returns:
        Supabase client instance
    """
    return create_client(url, service_role_key)
