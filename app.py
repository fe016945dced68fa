# app.py — To-do → Day Plan (Groq, auto-model version)

import logging
import os
from datetime import date

import streamlit as st

from agent import ExtractionError, InputError, run_agent, split_items
from llm import LLMError, chat, list_models, make_client
from scheduler import PlannerConfig

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"),
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger("app")

st.set_page_config(page_title="To-do → Day Plan", page_icon="🗓️", layout="centered")

# ---------- Groq setup ----------
GROQ_KEY = os.getenv("GROQ_API_KEY") or (st.secrets.get("GROQ_API_KEY") if hasattr(st, "secrets") else "")
PINNED_MODEL = os.getenv("GROQ_MODEL")
client = make_client(GROQ_KEY)
config = PlannerConfig.from_env()


@st.cache_data(show_spinner=False)
def available_models():
    return list_models(client)


def ask(system_text: str, user_text: str) -> str:
    reply = chat(client, system_text, user_text, model=st.session_state.get("_groq_model") or PINNED_MODEL)
    st.session_state["_groq_model"] = reply.model
    return reply.text


EXAMPLE = """・朝9時に経費精算、30分くらい
・佐藤さんにメールの返信、問題ないと伝える
・英語学習2時間"""

st.title("🗓️ To-do → Day Plan")
st.caption("One task per line → a plan for the working day, with drafts for emails and messages (Groq).")

with st.sidebar:
    st.subheader("Day")
    day = st.date_input("Date", value=config.today())
    st.caption(
        f"Work {config.day_start:%H:%M}–{config.day_end:%H:%M}, "
        f"lunch {config.lunch_start:%H:%M}–{config.lunch_end:%H:%M}"
    )

text = st.text_area("Tasks", EXAMPLE, height=180)

if st.button("Build plan", type="primary"):
    log.info("build plan requested")
    try:
        with st.spinner("Planning…"):
            out = run_agent(split_items(text), ask,
                            day=day.isoformat() if isinstance(day, date) else None, config=config)
    except (InputError, ExtractionError, LLMError) as e:
        st.error(f"Error: {e}")
    else:
        st.markdown("### Summary")
        st.code(out["summary"], language=None)

        for title, res in out["results"].items():
            st.markdown(f"**{title}**")
            if res["kind"] == "draft":
                st.code(res["body"], language=None)  # has a copy button
            elif res["kind"] == "subtasks":
                st.caption(f"Estimated time: {res['duration_min']} min")
                for s in res["subtasks"]:
                    st.write(f"- {s}")
            elif res["kind"] == "venues":
                st.caption(res["note"])
            elif res["kind"] == "error":
                st.warning(res["error"])
else:
    st.info("List your tasks, one per line, then click **Build plan**.")

# Footer: show model + availability to help debugging
available_now = available_models()
chosen = st.session_state.get("_groq_model")
status = ("✅ enabled — model: " + chosen) if chosen else ("🛈 key ok" if GROQ_KEY else "⚠️ AI disabled (no key)")
st.caption(f"AI status: {status} • Available models: {', '.join(available_now) if available_now else 'none'}")
