"""Gemini Cookie Chat - Streamlit Chat Interface.

Thin client for the cookie-authenticated Gemini proxy. The FastAPI backend
signs and relays upstream calls; this file handles:
  - Cookie paste + validation (auth page)
  - ChatStore / ChatController lifetime in st.session_state
  - Conversation list, chat rendering, speech playback
  - Credential status display and logout
"""

import asyncio
import base64
import os
import time

import requests
import streamlit as st
from dotenv import load_dotenv

from frontend import storage
from frontend.api_client import ServiceClient
from frontend.controller import ChatController
from frontend.lifecycle import CredentialStatus
from frontend.models import Message
from frontend.store import ChatStore

load_dotenv()

# Config
API_URL = os.environ.get("API_URL", "http://localhost:8000")
HEALTH_ENDPOINT = f"{API_URL}/health"

# Page setup
st.set_page_config(
    page_title="Gemini Cookie Chat",
    layout="centered",
)

st.markdown("""
<style>
    .stApp {
        max-width: 900px;
        margin: 0 auto;
    }
    .stChatMessage {
        padding: 0.75rem 1rem;
    }
    .status-badge {
        display: inline-block;
        padding: 2px 8px;
        border-radius: 12px;
        font-size: 0.75rem;
        font-weight: 600;
    }
    .status-ok { background: #d4edda; color: #155724; }
    .status-warn { background: #fff3cd; color: #856404; }
    .status-err { background: #f8d7da; color: #721c24; }
</style>
""", unsafe_allow_html=True)

_STATUS_BADGES = {
    CredentialStatus.VALID: ("status-ok", "Cookies valid"),
    CredentialStatus.UNKNOWN: ("status-warn", "Cookies not yet verified"),
    CredentialStatus.EXPIRED: ("status-warn", "Cookies need refresh"),
    CredentialStatus.INVALID: ("status-err", "Cookies rejected"),
}


def init_session():
    """Build the store and controller once per browser session."""
    if "store" not in st.session_state:
        if not storage.is_initialized():
            storage.init_storage()
        store = ChatStore()
        store.rehydrate()
        st.session_state.store = store
        st.session_state.controller = ChatController(store, ServiceClient(API_URL))
        st.session_state.audio = {}


def run(coro):
    """Drive a controller coroutine to completion from a Streamlit callback."""
    return asyncio.run(coro)


def api_online() -> bool:
    try:
        resp = requests.get(f"{HEALTH_ENDPOINT}?t={time.time()}", timeout=3)
        return resp.json().get("status") == "healthy"
    except (requests.RequestException, ValueError):
        return False


def render_auth_page(store: ChatStore, controller: ChatController):
    """Paste-cookies form. Shown until a usable credential exists."""
    st.title("Gemini Cookie Chat")
    st.caption("Chat with Gemini using your own gemini.google.com session")

    if store.cookie_status == CredentialStatus.INVALID:
        st.error("Your previous cookies were rejected. Paste a fresh set to continue.")
    elif store.cookie_status == CredentialStatus.EXPIRED:
        st.warning("Your cookies are more than 12 hours old. Paste a fresh set to continue.")

    with st.expander("How to copy your cookies", expanded=False):
        st.markdown(
            "1. Sign in at **gemini.google.com**\n"
            "2. Open DevTools -> Application -> Cookies\n"
            "3. Copy every cookie row (must include `__Secure-1PSID` and `__Secure-1PSIDTS`)\n"
            "4. Paste below"
        )

    with st.form("cookie_form"):
        raw = st.text_area("Gemini cookies", height=160, placeholder="__Secure-1PSID=...; __Secure-1PSIDTS=...")
        skip_validation = st.checkbox("Save without validating")
        submitted = st.form_submit_button("Continue", use_container_width=True)

    if submitted:
        with st.spinner("Validating cookies..."):
            ok = run(controller.login(raw, validate=not skip_validation))
        if ok:
            st.rerun()

    if store.error:
        st.error(f"[ERROR] {store.error}")


def render_sidebar(store: ChatStore, controller: ChatController, online: bool):
    with st.sidebar:
        st.markdown("### Session")
        badge_class, label = _STATUS_BADGES.get(store.cookie_status, ("status-err", "No cookies"))
        st.markdown(f'<span class="status-badge {badge_class}">* {label}</span>', unsafe_allow_html=True)
        api_class = "status-ok" if online else "status-err"
        st.markdown(f'<span class="status-badge {api_class}">* API {"Healthy" if online else "Offline"}</span>',
                    unsafe_allow_html=True)
        if store.last_validated_at:
            st.caption(f"Last validated {store.last_validated_at:%b %d %H:%M} UTC")

        st.divider()
        if st.button("New Chat", use_container_width=True):
            store.create_conversation()
            st.rerun()

        for conversation in store.conversations:
            cols = st.columns([5, 1])
            selected = conversation.id == store.current_conversation_id
            if cols[0].button(("> " if selected else "") + conversation.title, key=f"open_{conversation.id}",
                              use_container_width=True):
                store.set_current_conversation(conversation.id)
                st.rerun()
            if cols[1].button("x", key=f"del_{conversation.id}"):
                store.delete_conversation(conversation.id)
                st.rerun()

        if store.reminders:
            st.divider()
            st.markdown("### Reminders")
            for reminder in store.reminders:
                cols = st.columns([4, 1, 1])
                cols[0].caption(("" if reminder.is_active else "(paused) ") + reminder.message)
                toggle = "||" if reminder.is_active else ">"
                if cols[1].button(toggle, key=f"toggle_{reminder.id}"):
                    store.update_reminder(reminder.id, is_active=not reminder.is_active)
                    st.rerun()
                if cols[2].button("x", key=f"rm_{reminder.id}"):
                    store.delete_reminder(reminder.id)
                    st.rerun()

        st.divider()
        if st.button("Log out", use_container_width=True):
            controller.logout()
            st.rerun()


def render_message(message: Message, controller: ChatController):
    """Render a single chat message with an optional speak button."""
    with st.chat_message(message.role):
        if message.is_streaming and not message.content:
            st.caption("(no reply)")
        else:
            st.markdown(message.content)

        if message.role != "assistant" or not message.content or message.content.startswith("Error:"):
            return

        audio_url = st.session_state.audio.get(message.id)
        if audio_url is None and st.button("Speak", key=f"speak_{message.id}"):
            with st.spinner("Generating audio..."):
                audio_url = run(controller.speak(message.content))
            if audio_url:
                st.session_state.audio[message.id] = audio_url
        if audio_url:
            header, _, data = audio_url.partition(",")
            mime_type = header.removeprefix("data:").removesuffix(";base64")
            try:
                st.audio(base64.b64decode(data), format=mime_type)
            except ValueError:
                st.warning("[WARN] Could not decode audio.")


def main():
    """Run the Streamlit chat application."""
    init_session()
    store: ChatStore = st.session_state.store
    controller: ChatController = st.session_state.controller

    store.check_staleness()
    if not store.is_authenticated:
        render_auth_page(store, controller)
        return

    online = api_online()
    render_sidebar(store, controller, online)

    st.title("Gemini Cookie Chat")
    if not online:
        st.warning("[WARN] The chat API is offline. Start the backend and refresh.")

    conversation = store.current_conversation
    if conversation:
        for message in conversation.messages:
            render_message(message, controller)

    if store.error:
        st.error(f"[ERROR] {store.error}")

    if user_input := st.chat_input("Message Gemini..."):
        with st.spinner("Thinking..."):
            run(controller.send_message(user_input))
        st.rerun()


if __name__ == "__main__":
    main()
