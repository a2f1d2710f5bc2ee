from supabase import Client, create_client

from .config import Settings


def create_supabase(settings: Settings) -> Client:
    if not settings.supabase_url or not settings.supabase_key:
        raise RuntimeError(
            "STORE_BACKEND=supabase requires SUPABASE_URL and SUPABASE_SERVICE_KEY in .env."
        )
    url = str(settings.supabase_url)
    if "your-project.supabase.co" in url:
        raise RuntimeError(
            "SUPABASE_URL in .env is still the placeholder (your-project). "
            "Fill in your real project URL and service key."
        )
    return create_client(url, settings.supabase_key)
