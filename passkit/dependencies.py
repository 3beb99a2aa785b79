"""
FastAPI dependencies shared by the routers.
"""
from functools import lru_cache
from typing import Optional

from passkit.config import settings
from passkit.services.pass_push import PushTokenLookup, build_notifier
from passkit.services.pass_service import PassService

# Device registration lives in the embedding application, which hands it over here
_push_tokens_for: Optional[PushTokenLookup] = None


def set_push_token_lookup(lookup: Optional[PushTokenLookup]) -> None:
    """
    Supply the (pass_type_identifier, serial_number) -> push tokens lookup.

    Call before the first request; the cached PassService is rebuilt so the
    notifier picks up the lookup.
    """
    global _push_tokens_for
    _push_tokens_for = lookup
    get_pass_service.cache_clear()


@lru_cache(maxsize=1)
def get_pass_service() -> PassService:
    """
    Process-wide PassService.

    One instance means one certificate trust store and one lock registry
    for every request.
    """
    return PassService(settings, notifier=build_notifier(settings, _push_tokens_for))
