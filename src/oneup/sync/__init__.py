"""Cloud synchronisation of challenge progress.

Keeps the local snapshot and its remote replica convergent.  The remote
copy carries completion flags, timestamps and time-of-day only; the
per-device repetition ``count`` never leaves the device.

Modules:

- ``engine``  -- ``SyncEngine``: save, load, sync, live subscription,
  settings pass-through and leaderboard publishing.
- ``guard``   -- ``SelfWriteGuard``: write tokens that let the live
  listener recognise echoes of its own writes.
- ``models``  -- ``SyncResult``, ``LeaderboardEntry``.

Usage example
-------------
::

    from oneup.core import FirebaseRestStore, StaticIdentityProvider, Identity
    from oneup.progress import StateMigrator
    from oneup.sync import SyncEngine

    engine = SyncEngine(
        remote=FirebaseRestStore("https://oneup-default-rtdb.firebaseio.com"),
        identity=StaticIdentityProvider(Identity(uid="abc")),
        migrator=StateMigrator(["pushups", "squats"]),
    )
    result = await engine.sync(local_state)
"""

from .engine import SyncEngine, sanitize
from .guard import SelfWriteGuard
from .models import LeaderboardEntry, SyncResult

__all__ = [
    "LeaderboardEntry",
    "SelfWriteGuard",
    "SyncEngine",
    "SyncResult",
    "sanitize",
]
