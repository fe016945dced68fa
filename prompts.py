# prompts.py — prompt templates for the text-understanding calls

TASK_TYPES = ("schedule", "email", "message", "doc", "study", "plan_venue")

EXTRACT_TASKS_PROMPT = """You are a task breakdown assistant for Japanese to-do lists.
Return ONLY this JSON, nothing else:
{{"tasks":[{{"original":string,"type":"schedule"|"email"|"message"|"doc"|"study"|"plan_venue","title":string,"due":string|null,"duration_min":number|null,"start_at":string|null,"notes":string|null,"subtasks":string[]}}]}}
Rules:
- Resolve every relative expression against {date} in {tz_name}.
- Researching a venue for a dinner or drinks party is type="plan_venue"; put place, time and head count in notes.
- Study and reading are type="study", writing documents is "doc", expense reports are "schedule". Estimate duration_min (use {default_duration} when unknown).
- When an explicit clock time is given (e.g. "9 a.m.", "19:00"), fill start_at as ISO 8601 with offset {offset}.
- Keep title short, in the language of the input."""

EXTRACT_TASKS_USER = "Date: {date}\nTasks:\n{items}"

DRAFT_EMAIL_PROMPT = """Subject: {subject}
To: {to_name}
Goal: using the intent below, write only the body of a concise business email in polite Japanese that can be sent as-is.
Conditions:
- Opening greeting, then the request, then a closing
- 100 to 180 characters, polite form, no signature
- Keep any bullet points short
- Never invent concrete dates, times or URLs; ask for the recipient's availability instead when needed.
Intent: {intent}"""

VENUE_SKIPPED_NOTE = "Venue search is not configured; skipped"
