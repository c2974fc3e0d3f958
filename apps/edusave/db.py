import logging
from typing import Optional

from supabase import Client, create_client

from apps.edusave.errors import CoreError
from apps.edusave.utils.settings import settings

log = logging.getLogger("edusave.db")

_client: Optional[Client] = None


def get_supabase() -> Optional[Client]:
    global _client
    if _client is not None:
        return _client
    if not (settings.SUPABASE_URL and settings.SUPABASE_KEY):
        return None
    try:
        _client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
    except Exception:
        log.exception("Supabase client creation failed")
        return None
    return _client


def require_supabase() -> Client:
    """FastAPI dependency: the configured client, or a 500 envelope."""
    client = get_supabase()
    if not client:
        raise CoreError("Supabase client unavailable", 500)
    return client
