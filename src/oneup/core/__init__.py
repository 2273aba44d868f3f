"""Remote replica client, identity and async helpers shared by the sync layer."""

from .async_utils import run_sync
from .identity import Identity, IdentityProvider, StaticIdentityProvider
from .remote import FirebaseRestStore, RemoteStore

__all__ = [
    "FirebaseRestStore",
    "Identity",
    "IdentityProvider",
    "RemoteStore",
    "StaticIdentityProvider",
    "run_sync",
]
