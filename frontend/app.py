"""Translater - Streamlit interface.

Thin client for the translation API. All translation logic lives in the
FastAPI backend. This file handles:
  - Text input and POST /translate/text
  - Live partial translations read from the GET /events SSE stream
  - Language / mode switches via PUT /settings
  - A per-session list of past translations
"""

import json
import os
import threading
import time

import requests
import streamlit as st

# Config
API_URL = os.environ.get("API_URL", "http://localhost:8000")
TRANSLATE_ENDPOINT = f"{API_URL}/translate/text"
EVENTS_ENDPOINT = f"{API_URL}/events"
SETTINGS_ENDPOINT = f"{API_URL}/settings"
HEALTH_ENDPOINT = f"{API_URL}/health"

LANGUAGES = ["auto", "zh-CN", "zh-TW", "en", "ja", "ko", "fr", "de", "es", "ru", "ar", "pt", "it", "th", "vi"]
MAX_TEXT_CHARS = 10000
FINAL_EVENTS = ("translation:result", "translation:error")


def init_session():
    """Initialize session state on first load."""
    if "history" not in st.session_state:
        st.session_state.history = []


def fetch_settings() -> dict | None:
    try:
        resp = requests.get(SETTINGS_ENDPOINT, timeout=3)
        if resp.status_code == 200:
            return resp.json()
    except requests.RequestException:
        pass
    return None


def push_settings(update: dict):
    try:
        resp = requests.put(SETTINGS_ENDPOINT, json=update, timeout=5)
        if resp.status_code != 200:
            st.sidebar.error(f"[ERROR] Could not save settings ({resp.status_code}).")
    except requests.RequestException as e:
        st.sidebar.error(f"[ERROR] Could not save settings: {e}")


def iter_events(lines):
    """Yield (event, payload) per data frame and (None, None) per keep-alive comment."""
    for line in lines:
        if not line:
            continue
        if line.startswith(":"):
            yield None, None
            continue
        if not line.startswith("data:"):
            continue
        try:
            data = json.loads(line[len("data:"):].strip())
        except json.JSONDecodeError:
            continue
        yield data.get("event"), data.get("payload") or {}


def follow_events(lines, worker):
    """Yield backend events until a final one arrives or the POST worker has finished.

    Checked after every frame and keep-alive, so a request rejected before the
    backend emits anything still ends the loop at the next ping.
    """
    for event, payload in iter_events(lines):
        if event is not None:
            yield event, payload
            if event in FINAL_EVENTS:
                return
        if not worker.is_alive():
            return


def translate(text: str):
    """POST the text while following the event stream for partial output."""
    outcome: dict = {}

    def post():
        try:
            outcome["response"] = requests.post(TRANSLATE_ENDPOINT, json={"text": text}, timeout=120)
        except requests.RequestException as e:
            outcome["error"] = str(e)

    placeholder = st.empty()
    with st.status("[Translater] Translating...", expanded=True) as status:
        start_time = time.monotonic()
        try:
            with requests.get(EVENTS_ENDPOINT, stream=True, timeout=(3, 130)) as events:
                worker = threading.Thread(target=post, daemon=True)
                worker.start()
                lines = events.iter_lines(decode_unicode=True)
                for event, payload in follow_events(lines, worker):
                    if event == "translation:stream":
                        placeholder.markdown(payload.get("content", ""))
                    elif event == "translation:progress":
                        status.write(payload.get("message", ""))
                worker.join()
        except requests.ConnectionError:
            status.update(label="Connection Error", state="error")
            st.error("[DISCONNECT] Cannot connect to the backend. Is the API server running?")
            return
        except requests.RequestException as e:
            status.update(label="Request Failed", state="error")
            st.error(f"[ERROR] {e}")
            return

        latency_ms = int((time.monotonic() - start_time) * 1000)
        resp = outcome.get("response")
        if resp is None:
            status.update(label="Request Failed", state="error")
            st.error(f"[ERROR] {outcome.get('error', 'no response')}")
            return
        if resp.status_code != 200:
            status.update(label="Translation Failed", state="error")
            detail = resp.json().get("detail", {})
            message = detail.get("message") if isinstance(detail, dict) else detail
            st.error(f"[ERROR] {message or resp.status_code}")
            return

        status.update(label=f"[TIME] {latency_ms}ms", state="complete", expanded=False)

    result = resp.json()
    placeholder.markdown(result["translated_text"])
    st.session_state.history.insert(0, result)


def main():
    """Run the Streamlit translation page."""
    st.set_page_config(page_title="Translater", layout="centered")
    init_session()

    st.title("Translater")
    st.caption("Text and screenshot translation with OpenAI-compatible models")

    try:
        health = requests.get(HEALTH_ENDPOINT, timeout=3).json()
        api_status = health.get("status", "unknown")
    except requests.RequestException:
        api_status = "offline"

    if api_status != "healthy":
        st.warning(f"[WARN] The Translater API is {api_status}. Configure an API key and check the server.")

    settings = fetch_settings()
    with st.sidebar:
        st.markdown("### Settings")
        if settings:
            source = st.selectbox("Source language", LANGUAGES,
                                  index=LANGUAGES.index(settings["source_language"])
                                  if settings["source_language"] in LANGUAGES else 0)
            target = st.selectbox("Target language", LANGUAGES[1:],
                                  index=LANGUAGES[1:].index(settings["target_language"])
                                  if settings["target_language"] in LANGUAGES[1:] else 0)
            stream = st.toggle("Stream output", value=settings["enable_stream_output"])
            vision = st.toggle("Vision-direct screenshots", value=settings["use_vision_for_translation"])
            if st.button("Save", use_container_width=True):
                push_settings({
                    "source_language": source,
                    "target_language": target,
                    "enable_stream_output": stream,
                    "use_vision_for_translation": vision,
                })
                st.rerun()
        else:
            st.info("[INFO] Settings unavailable while the API is offline.")

        st.divider()
        if st.button("[DEL] Clear History", use_container_width=True):
            st.session_state.history = []
            st.rerun()

    text = st.text_area("Text to translate", height=160, max_chars=MAX_TEXT_CHARS)
    if st.button("Translate", type="primary", disabled=not text.strip()):
        translate(text)

    for item in st.session_state.history:
        with st.expander(item["original_text"][:60], expanded=False):
            st.markdown(item["translated_text"])
            st.caption(f"{item['source']} | {item['duration_ms']}ms")


if __name__ == "__main__":
    main()
