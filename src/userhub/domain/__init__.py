"""Domain records for the identity core."""

from userhub.domain.identity import Identity, utcnow

__all__ = ["Identity", "utcnow"]
