"""
icebreaker/models/team.py

Purpose: Installed-team document model

- One document per team the bot is installed in
- Document id (and partition key) is the team id
- Created on install, deleted on uninstall
"""

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional


class TeamInstallInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(default="", description="Document id, always equal to team_id")
    team_id: str = Field(alias="teamId")
    tenant_id: Optional[str] = Field(default=None, alias="tenantId")
    service_url: Optional[str] = Field(default=None, alias="serviceUrl")
    installer_name: Optional[str] = Field(default=None, alias="installerName")

    @model_validator(mode="after")
    def _id_follows_team(self):
        self.id = self.team_id
        return self

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
