"""Asset domain model: the instrument category an investment is made in."""

from typing import Optional

from invest_sync.models.base import Entity


class Asset(Entity):
    name: str = ""
    type: Optional[str] = None
