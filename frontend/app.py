import asyncio
import os

import streamlit as st

from domain.models import ChatMessage
from frontend.widget import BACKEND_URL, ChatWidget

st.set_page_config(page_title="Store Assistant", layout="centered")


def render_header(widget: ChatWidget) -> None:
    title, minimize = st.columns([5, 1])
    title.subheader("Store Assistant")
    if minimize.button("Minimize", key="minimize"):
        widget.minimize()
        st.rerun()


def render_message(message: ChatMessage) -> None:
    role = "user" if message.sender == "user" else "assistant"
    with st.chat_message(role):
        st.markdown(message.content)
        st.caption(message.timestamp.strftime("%H:%M"))


# One widget per browser session
if "widget" not in st.session_state:
    st.session_state.widget = ChatWidget(
        endpoint=os.environ.get("STORE_ASSISTANT_URL", BACKEND_URL),
        auth_token=os.environ.get("STORE_ASSISTANT_TOKEN") or None,
    )

widget: ChatWidget = st.session_state.widget

if not widget.is_open:
    if st.button("Chat with us"):
        widget.open()
        st.rerun()
else:
    render_header(widget)

    for msg in widget.messages:
        render_message(msg)

    if prompt := st.chat_input("Type a message..."):
        with st.spinner("Waiting for a reply..."):
            asyncio.run(widget.send_message(prompt))
        st.rerun()
