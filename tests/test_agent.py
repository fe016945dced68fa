import json

import pytest

from agent import (
    DEFAULT_SUBJECT,
    DEFAULT_TO_NAME,
    ExtractionError,
    InputError,
    guess_subject,
    guess_to_name,
    parse_tasks,
    run_agent,
    run_assist,
    split_items,
    strip_code_fence,
)
from llm import LLMError
from prompts import VENUE_SKIPPED_NOTE
from scheduler import Task

EXTRACTED = {
    "tasks": [
        {"original": "朝9時に経費精算、30分くらい", "type": "schedule", "title": "経費精算", "due": None,
         "duration_min": 30, "start_at": "2025-01-10T09:00:00+09:00", "notes": None, "subtasks": ["領収書を集める"]},
        {"original": "佐藤さんにメールの返信、問題ないと伝える", "type": "email", "title": "佐藤さんに返信",
         "due": None, "duration_min": 30, "start_at": None, "notes": "問題ないと伝える", "subtasks": []},
        {"original": "英語学習2時間", "type": "study", "title": "英語学習", "due": None,
         "duration_min": 120, "start_at": None, "notes": None, "subtasks": []},
        {"original": "金曜の飲み会の店を探す", "type": "plan_venue", "title": "飲み会の店探し", "due": None,
         "duration_min": None, "start_at": None, "notes": "渋谷, 19時, 6人", "subtasks": []},
    ]
}


class FakeAsk:
    """Answers extraction with canned JSON and everything else with a draft."""

    def __init__(self, extraction, draft="お世話になっております。"):
        self.extraction = extraction
        self.draft = draft
        self.calls = []

    def __call__(self, system, user):
        self.calls.append((system, user))
        if user.startswith("Date:"):
            return self.extraction
        return self.draft


def test_split_items_strips_bullets_and_blanks():
    text = "・朝9時に経費精算\n\n- 英語学習2時間\n  * 資料作成 \n• 返信\n"
    assert split_items(text) == ["朝9時に経費精算", "英語学習2時間", "資料作成", "返信"]
    assert split_items("") == []


def test_strip_code_fence():
    assert strip_code_fence('```json\n{"tasks": []}\n```') == '{"tasks": []}'
    assert strip_code_fence('{"tasks": []}') == '{"tasks": []}'


def test_parse_tasks_builds_task_records():
    ask = FakeAsk("```json\n" + json.dumps(EXTRACTED) + "\n```")
    tasks = parse_tasks("2025-01-10", ["a", "b"], ask)
    assert [t.title for t in tasks] == ["経費精算", "佐藤さんに返信", "英語学習", "飲み会の店探し"]
    assert tasks[0].is_fixed
    system, user = ask.calls[0]
    assert "2025-01-10" in system and "+09:00" in system
    assert user == "Date: 2025-01-10\nTasks:\n- a\n- b"


@pytest.mark.parametrize("reply", ["not json", '["a list"]', '{"items": []}'])
def test_parse_tasks_rejects_bad_replies(reply):
    with pytest.raises(ExtractionError):
        parse_tasks("2025-01-10", ["a"], FakeAsk(reply))


def test_parse_tasks_rejects_bad_timestamp():
    bad = {"tasks": [{"title": "x", "type": "doc", "start_at": "tomorrow-ish"}]}
    with pytest.raises(ExtractionError):
        parse_tasks("2025-01-10", ["x"], FakeAsk(json.dumps(bad)))


def test_guess_to_name():
    assert guess_to_name("佐藤さんに返信") == "佐藤様"
    assert guess_to_name("田中部長へ連絡") == "田中様"
    assert guess_to_name("取引先に返信") == DEFAULT_TO_NAME


def test_guess_subject():
    assert guess_subject("見積もりの件") == "見積もり件"
    assert guess_subject("佐藤さんに返信") == "佐藤さん"
    assert guess_subject("メール返信") == DEFAULT_SUBJECT


def test_run_assist_kinds():
    tasks = [Task.from_dict(t) for t in EXTRACTED["tasks"]]
    ask = FakeAsk("", draft="  本文  ")
    results = run_assist(tasks, ask)
    assert results["経費精算"] == {"kind": "subtasks", "subtasks": ["領収書を集める"], "duration_min": 30}
    assert results["佐藤さんに返信"] == {"kind": "draft", "body": "本文"}
    assert results["飲み会の店探し"] == {"kind": "venues", "note": VENUE_SKIPPED_NOTE, "candidates": []}
    assert results["英語学習"]["duration_min"] == 120

    prompt, _ = ask.calls[0]
    assert "佐藤様" in prompt and "問題ないと伝える" in prompt


def test_run_assist_records_failed_draft():
    def ask(system, user):
        raise LLMError("AI error: rate limit")

    results = run_assist([Task("佐藤さんに返信", "message")], ask)
    assert results["佐藤さんに返信"] == {"kind": "error", "error": "AI error: rate limit"}


def test_run_agent_end_to_end():
    out = run_agent(["a", "b", "c", "d"], FakeAsk(json.dumps(EXTRACTED)), day="2025-01-10")
    assert out["date"] == "2025-01-10"
    assert out["meta"] == {"tz": "+09:00"}
    assert [(p["title"], p["start"]) for p in out["plan"]] == [
        ("経費精算", "2025-01-10T09:00:00+09:00"),
        ("佐藤さんに返信", "2025-01-10T09:30:00+09:00"),
        ("英語学習", "2025-01-10T10:00:00+09:00"),
        ("飲み会の店探し", "2025-01-10T13:00:00+09:00"),
    ]
    assert out["summary"].splitlines()[1:5] == [
        "09:00 - 09:30: 経費精算 (schedule)",
        "09:30 - 10:00: 佐藤さんに返信 (email)",
        "10:00 - 12:00: 英語学習 (study)",
        "13:00 - 13:30: 飲み会の店探し (plan_venue)",
    ]
    assert out["summary"].endswith("Total required time: 210 min")
    assert set(out["results"]) == {"経費精算", "佐藤さんに返信", "英語学習", "飲み会の店探し"}


@pytest.mark.parametrize("items", [[], None, "a line"])
def test_run_agent_requires_items(items):
    with pytest.raises(InputError):
        run_agent(items, FakeAsk("{}"))
