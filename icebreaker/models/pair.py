"""
icebreaker/models/pair.py

Purpose: Pairing history model

- One immutable record per pairing that was made
- Iteration groups the pairs produced by the same matching round
- Append-only: never updated or deleted
"""

import uuid
from pydantic import BaseModel, ConfigDict, Field
from typing import FrozenSet


class PairInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user1_id: str = Field(alias="user1Id")
    user2_id: str = Field(alias="user2Id")
    iteration: int

    @property
    def users(self) -> FrozenSet[str]:
        """Both members of the pair, order-independent."""
        return frozenset((self.user1_id, self.user2_id))

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
