"""
Decide what importing one profile would do to the local profile set.

Identity is the workspace (team_id), not the local alias. Nothing here
touches storage, so the import engine can call it the same way for dry runs.
"""

from dataclasses import dataclass, field
from typing import List, Mapping

from authport.models import ExportProfile, ImportAction, ProfileMeta


@dataclass(frozen=True)
class Resolution:
    action: ImportAction
    reason: str
    # Local profile names whose entries the incoming profile supersedes
    replaces: List[str] = field(default_factory=list)

    @property
    def should_apply(self) -> bool:
        return self.action in (ImportAction.CREATED, ImportAction.UPDATED, ImportAction.OVERWRITTEN)


def resolve_conflict(
    incoming: ExportProfile,
    existing: Mapping[str, ProfileMeta],
    force: bool = False,
    confirm: bool = False,
) -> Resolution:
    if not incoming.has_secret():
        return Resolution(ImportAction.SKIPPED, "Skipped: no token in export file")

    name = incoming.profile_name
    team_id = incoming.team_id
    same_name = existing.get(name)

    if same_name is not None and same_name.team_id == team_id:
        return Resolution(ImportAction.UPDATED, f"Updated existing profile (same team_id: {team_id})")

    aliases = sorted(n for n, meta in existing.items() if n != name and meta.team_id == team_id)
    if same_name is None and not aliases:
        return Resolution(ImportAction.CREATED, "New profile imported")

    if aliases:
        conflict = f"team_id conflict: {team_id} is already bound to profile '{aliases[0]}'"
        if len(aliases) > 1:
            conflict += f" (and {len(aliases) - 1} more)"
    else:
        conflict = f"profile name '{name}' is bound to a different team_id ({same_name.team_id} vs {team_id})"

    if force and confirm:
        replaces = list(aliases)
        if same_name is not None:
            replaces.append(name)
        return Resolution(ImportAction.OVERWRITTEN, f"Overwritten: {conflict}", replaces)
    if force:
        return Resolution(ImportAction.SKIPPED, f"Skipped: {conflict}; --force requires --yes to overwrite")
    return Resolution(ImportAction.SKIPPED, f"Skipped: {conflict}; use --force --yes to overwrite")
