"""REST collaborator client.

Only the two baseline endpoints the sync layer needs live here; the
rest of the backend API belongs to the apps, not to this package.
"""

from pedalsync.api.client import PedalAPI, PedalAPIError

__all__ = ["PedalAPI", "PedalAPIError"]
