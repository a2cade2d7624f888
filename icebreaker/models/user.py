"""
icebreaker/models/user.py

Purpose: User document model

- Tenant, user id and service URL used to reach the user
- Opt-in flag per team the user belongs to
- Optional free-text profile shown to pairing partners
- Document id (and partition key) is the user id
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Dict, List, Optional


class UserInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", description="Document id, always equal to user_id")
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    user_id: str = Field(alias="userId")
    service_url: Optional[str] = Field(default=None, alias="serviceUrl")
    opted_in: Dict[str, bool] = Field(default_factory=dict, alias="optedIn")
    profile: Optional[str] = None

    @model_validator(mode="after")
    def _id_follows_user(self):
        self.id = self.user_id
        return self

    def is_opted_in(self, team_id: str) -> bool:
        return self.opted_in.get(team_id, False)

    @property
    def opted_in_teams(self) -> List[str]:
        return [team_id for team_id, opted_in in self.opted_in.items() if opted_in]

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
