"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase keys on the wire.

    Python code keeps snake_case attribute names; clients send and receive
    ``receiverId``, ``isOnline`` and friends.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )

    def to_wire(self) -> dict:
        """Dump to a JSON-safe dict using camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
