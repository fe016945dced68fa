# llm.py — Groq chat glue with automatic model selection

import logging
from dataclasses import dataclass
from typing import List, Optional

from groq import Groq, GroqError

log = logging.getLogger(__name__)

PREFERRED_MODELS = [
    # keep several candidates so this survives future renames
    "llama-3.3-70b-versatile",
    "llama-3.1-70b-versatile",
    "llama3-70b-8192",
    "llama3-8b-8192",
    "llama-3.1-8b-instant",
    "mixtral-8x7b-32768",
]


class LLMError(RuntimeError):
    pass


@dataclass
class Reply:
    text: str
    model: str


def make_client(api_key: Optional[str]) -> Optional[Groq]:
    return Groq(api_key=api_key) if api_key else None


def list_models(client) -> List[str]:
    """Return model IDs available to this key; empty list if no client or error."""
    if not client:
        return []
    try:
        return [m.id for m in client.models.list().data]
    except Exception as e:
        log.warning("could not list models: %s", e)
        return []


def choose_model(available: List[str]) -> Optional[str]:
    """
    Pick a model:
    1) preferred list in order if present.
    2) else any 'llama' model.
    3) else any 'mixtral' model.
    4) else first available.
    """
    if not available:
        return None
    for m in PREFERRED_MODELS:
        if m in available:
            return m
    for m in available:
        if "llama" in m.lower():
            return m
    for m in available:
        if "mixtral" in m.lower():
            return m
    return available[0]


def _model_gone(err: Exception) -> bool:
    msg = str(err).lower()
    return "model" in msg and ("decommission" in msg or "not found" in msg)


def chat(client, system_text: str, user_text: str, model: Optional[str] = None,
         temperature: float = 0.2, max_tokens: int = 1024) -> Reply:
    """Call Groq chat, rotating to another model when the current one is gone."""
    if not client:
        raise LLMError("AI disabled: no GROQ_API_KEY found")

    available = list_models(client)
    model = model or choose_model(available)
    if not model:
        raise LLMError("AI unavailable: no accessible models for this key")

    tried = set()
    while True:
        tried.add(model)
        try:
            resp = client.chat.completions.create(
                model=model,
                messages=[
                    {"role": "system", "content": system_text},
                    {"role": "user", "content": user_text or ""},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )
            return Reply((resp.choices[0].message.content or "").strip(), model)
        except GroqError as e:
            if not _model_gone(e):
                raise LLMError(f"AI error: {e}") from e
            log.info("model %s unavailable, rotating", model)
            candidates = [m for m in available if m not in tried]
            # re-fetch once if the cached list is exhausted
            if not candidates:
                candidates = [m for m in list_models(client) if m not in tried]
            if not candidates:
                raise LLMError(f"AI error: all candidate models failed; last tried: {model}") from e
            model = choose_model(candidates)
        except Exception as e:
            raise LLMError(f"AI error: {e}") from e
