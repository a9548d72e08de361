"""Database utilities and models."""

from shedai.db.base import Base
from shedai.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
