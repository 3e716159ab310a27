import json
from typing import Any, Dict, List, Optional

from authport.core.messages import ENGLISH, Messages
from authport.models import ImportResult


def result_to_dict(result: ImportResult) -> Dict[str, Any]:
    return {
        "summary": result.summary.model_dump(),
        "profiles": [p.model_dump(mode="json") for p in result.profiles],
        "dry_run": result.dry_run,
    }


def render_json(result: ImportResult) -> str:
    return json.dumps(result_to_dict(result), indent=2)


def render_text(result: ImportResult, messages: Optional[Messages] = None) -> str:
    messages = messages or ENGLISH
    data = result_to_dict(result)
    summary = data["summary"]
    lines: List[str] = []
    if result.dry_run:
        lines += [messages.get("info.dry_run_banner"), ""]

    lines.append("Import Summary:")
    lines.append(f"  Total: {summary['total']}")
    lines.append(f"  Created: {summary['created']}")
    lines.append(f"  Updated: {summary['updated']}")
    lines.append(f"  Skipped: {summary['skipped']}")
    lines.append(f"  Overwritten: {summary['overwritten']}")
    if summary["failed"]:
        lines.append(f"  Failed: {summary['failed']}")
    lines.append("")
    lines.append("Profile Details:")
    for p in data["profiles"]:
        lines.append(f"  {p['profile_name']} - {p['action']} ({p['reason']})")
    lines.append("")

    if result.dry_run:
        lines.append(messages.get("info.dry_run_complete"))
    elif summary["failed"]:
        lines.append(messages.get("error.import_partial"))
    else:
        lines.append(messages.get("success.import"))
    return "\n".join(lines)


def render(result: ImportResult, as_json: bool = False, messages: Optional[Messages] = None) -> str:
    return render_json(result) if as_json else render_text(result, messages)
