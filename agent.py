# agent.py — turns free-text to-do lines into a plan plus per-task assistance

import json
import logging
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional

from llm import LLMError
from prompts import (
    DRAFT_EMAIL_PROMPT,
    EXTRACT_TASKS_PROMPT,
    EXTRACT_TASKS_USER,
    VENUE_SKIPPED_NOTE,
)
from scheduler import PlannerConfig, Task, TaskType, build_plan, format_plan

log = logging.getLogger(__name__)

# ask(system_text, user_text) -> reply text
Ask = Callable[[str, str], str]

KNOWN_SURNAMES = ("佐藤", "加藤", "田中", "鈴木")
DEFAULT_TO_NAME = "ご担当者様"
DEFAULT_SUBJECT = "ご連絡"

_BULLET = re.compile(r"^\s*(?:・|•|-|\*)\s*")
_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$")
_SURNAME = re.compile("(" + "|".join(KNOWN_SURNAMES) + ")[^様さん]?")
_SUBJECT_NOISE = re.compile(r"(に|へ|の|を|連絡|返信|メール|の件)")


class InputError(ValueError):
    pass


class ExtractionError(ValueError):
    pass


def split_items(text: str) -> List[str]:
    """One task per non-empty line, leading bullet removed."""
    return [s for s in (_BULLET.sub("", line).strip() for line in (text or "").splitlines()) if s]


def strip_code_fence(text: str) -> str:
    return _FENCE.sub("", (text or "").strip())


def _offset(config: PlannerConfig) -> str:
    return datetime.now(config.tz).isoformat()[-6:]


def parse_tasks(day: str, items: List[str], ask: Ask,
                config: Optional[PlannerConfig] = None) -> List[Task]:
    config = config or PlannerConfig()
    system = EXTRACT_TASKS_PROMPT.format(
        date=day,
        tz_name=config.tz.tzname(datetime.now(config.tz)) or _offset(config),
        offset=_offset(config),
        default_duration=config.default_duration,
    )
    user = EXTRACT_TASKS_USER.format(date=day, items="\n".join(f"- {x}" for x in items))
    raw = strip_code_fence(ask(system, user))
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as e:
        log.warning("extraction reply is not JSON: %.200s", raw)
        raise ExtractionError(f"could not read tasks from AI reply: {e}") from e
    if not isinstance(payload, dict) or not isinstance(payload.get("tasks"), list):
        raise ExtractionError("AI reply has no 'tasks' list")
    try:
        return [Task.from_dict(t, config.tz) for t in payload["tasks"]]
    except (TypeError, ValueError, AttributeError) as e:
        raise ExtractionError(f"malformed task in AI reply: {e}") from e


def guess_to_name(title: str) -> str:
    m = _SURNAME.search(title or "")
    return m.group(1) + "様" if m else DEFAULT_TO_NAME


def guess_subject(title: str) -> str:
    return _SUBJECT_NOISE.sub("", title or "").strip() or DEFAULT_SUBJECT


def draft_email(subject: str, intent: str, to_name: str, ask: Ask) -> str:
    prompt = DRAFT_EMAIL_PROMPT.format(subject=subject, to_name=to_name, intent=intent)
    return ask(prompt, "").strip()


def run_assist(tasks: List[Task], ask: Ask, default_duration: int = 30) -> Dict[str, dict]:
    results = {}
    for t in tasks:
        if t.kind in (TaskType.EMAIL, TaskType.MESSAGE):
            try:
                body = draft_email(guess_subject(t.title), t.notes or t.original or t.title,
                                   guess_to_name(t.title), ask)
            except LLMError as e:
                log.warning("draft for %r failed: %s", t.title, e)
                results[t.title] = {"kind": "error", "error": str(e)}
                continue
            results[t.title] = {"kind": "draft", "body": body}
        elif t.kind is TaskType.PLAN_VENUE:
            results[t.title] = {"kind": "venues", "note": VENUE_SKIPPED_NOTE, "candidates": []}
        else:
            results[t.title] = {
                "kind": "subtasks",
                "subtasks": list(t.subtasks),
                "duration_min": t.effective_duration(default_duration),
            }
    return results


def run_agent(items, ask: Ask, day: Optional[str] = None,
              config: Optional[PlannerConfig] = None) -> dict:
    if not isinstance(items, list) or not items:
        raise InputError("items is required")
    config = config or PlannerConfig()
    day = day or config.today().isoformat()
    log.info("planning %d item(s) for %s", len(items), day)

    tasks = parse_tasks(day, items, ask, config)
    plan = build_plan(day, tasks, config)
    results = run_assist(tasks, ask, config.default_duration)

    return {
        "date": day,
        "plan": [p.to_dict() for p in plan],
        "results": results,
        "summary": format_plan(plan),
        "meta": {"tz": _offset(config)},
    }
