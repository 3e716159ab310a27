from __future__ import annotations
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Literal
from pydantic import BaseModel, ConfigDict, Field, computed_field

# --- Local Profile Models (non-secret) ---

class ProfileMeta(BaseModel):
    team_id: str
    user_id: str
    team_name: Optional[str] = None
    user_name: Optional[str] = None
    client_id: Optional[str] = None
    bot_scopes: Optional[List[str]] = None
    user_scopes: Optional[List[str]] = None
    default_token_type: Optional[Literal["bot", "user"]] = None

class ProfilesConfig(BaseModel):
    version: int = 1
    profiles: Dict[str, ProfileMeta] = {}

# --- Export Payload Models ---
# Unknown fields are dropped on read so newer files stay readable.

class ExportTeam(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: Optional[str] = None

class ExportToken(BaseModel):
    model_config = ConfigDict(extra="ignore")

    value: str
    scopes: List[str] = []
    token_type: Literal["bot", "user"] = "bot"

class ExportProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    profile_name: str
    team: ExportTeam
    user_id: str
    user_name: Optional[str] = None
    token: Optional[ExportToken] = None
    user_token: Optional[ExportToken] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None

    @property
    def team_id(self) -> str:
        return self.team.id

    def has_secret(self) -> bool:
        return self.token is not None or self.user_token is not None

    def to_meta(self) -> ProfileMeta:
        return ProfileMeta(
            team_id=self.team.id,
            user_id=self.user_id,
            team_name=self.team.name,
            user_name=self.user_name,
            client_id=self.client_id,
            bot_scopes=list(self.token.scopes) if self.token and self.token.scopes else None,
            user_scopes=list(self.user_token.scopes) if self.user_token and self.user_token.scopes else None,
            default_token_type="bot" if self.token else "user",
        )

class ExportPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    format_version: int = 2
    exported_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    profiles: List[ExportProfile] = []

# --- Result Models ---

class ImportAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    OVERWRITTEN = "overwritten"
    FAILED = "failed"

    def __str__(self) -> str:
        return self.value

class ProfileImportResult(BaseModel):
    profile_name: str
    team_id: str
    user_id: str
    action: ImportAction
    reason: str

class ImportSummary(BaseModel):
    total: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    overwritten: int = 0
    failed: int = 0

class ImportResult(BaseModel):
    profiles: List[ProfileImportResult] = []
    dry_run: bool = False

    @computed_field
    @property
    def summary(self) -> ImportSummary:
        # Always derived from the per-profile list so counts cannot drift
        counts = {action.value: 0 for action in ImportAction}
        for p in self.profiles:
            counts[p.action.value] += 1
        return ImportSummary(total=len(self.profiles), **counts)

class ExportResult(BaseModel):
    path: str
    exported: List[str] = []
    warnings: List[str] = []
