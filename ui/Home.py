# -*- coding: utf-8 -*-
import os
import streamlit as st

from applicant_portal.client.draft_sync import DraftSyncEngine
from applicant_portal.client.transport import ApplicationTransport
from applicant_portal.config import settings
from applicant_portal.errors import TransitionRejected
from applicant_portal.services.field_catalog import FieldDescriptor
from applicant_portal.services.status_machine import Status

st.set_page_config(page_title="Application", layout="centered")

# ---------------------------
# Small UI helpers
# ---------------------------
def status_badge(status: str):
    color = {
        "not_started": "#6b7280", "in_progress": "#2563eb", "submitted": "#f59e0b",
        "accepted": "#16a34a", "waitlisted": "#dc2626", "confirmed": "#16a34a",
    }.get(status, "#6b7280")
    st.markdown(
        f"""
        <span style="
            display:inline-block;
            padding:4px 10px;
            border-radius:999px;
            background:{color}20;
            color:{color};
            font-weight:600;
            font-size:0.9rem;">
            {status.replace("_", " ").upper()}
        </span>
        """,
        unsafe_allow_html=True
    )

def section_header(txt: str):
    st.markdown(f"### {txt.replace('_', ' ').title()}")

def on_edit(name: str):
    try:
        engine.edit(name, st.session_state[f"field_{name}"])
    except TransitionRejected as e:
        st.session_state["flash"] = str(e)

def render_field(d: FieldDescriptor, value, disabled: bool):
    key = f"field_{d.name}"
    label = d.name.replace("_", " ").capitalize() + (" *" if d.required else "")
    common = dict(key=key, on_change=on_edit, args=(d.name,), disabled=disabled)
    if d.kind == "radio":
        # nothing preselected: the widget never shows a choice the draft does not hold
        options = list(d.choices or [])
        if key in st.session_state:
            st.radio(label, options, **common)
        else:
            st.radio(label, options, index=options.index(value) if value in options else None, **common)
        return
    if key not in st.session_state:
        st.session_state[key] = value if value is not None else (False if d.kind == "checkbox" else "")
    if d.kind == "textarea":
        st.text_area(label, **common)
    elif d.kind == "select":
        options = [""] + list(d.choices or [])
        if st.session_state[key] not in options:
            st.session_state[key] = ""
        st.selectbox(label, options, **common)
    elif d.kind == "checkbox":
        st.checkbox(label, **common)
    else:
        st.text_input(label, **common)

def reset_widgets():
    for k in [k for k in st.session_state if str(k).startswith("field_")]:
        del st.session_state[k]

# ---------------------------
# Engine (one per browser session)
# ---------------------------
# the identity provider normally injects this; local runs take it from the env
owner_id = os.getenv("PORTAL_OWNER_ID", "").strip()
if not owner_id:
    st.error("No applicant identity. Set PORTAL_OWNER_ID.")
    st.stop()

if "engine" not in st.session_state:
    st.session_state["engine"] = DraftSyncEngine(
        ApplicationTransport(owner_id),
        autosave_interval=settings.AUTOSAVE_INTERVAL_SECONDS,
    )
engine: DraftSyncEngine = st.session_state["engine"]
engine.load()
engine.maybe_autosave()
state = engine.state

st.title("Application")
status_badge(state.status.value)

if st.session_state.pop("flash", None):
    st.warning("That change was not applied.")
if state.error:
    st.error(str(state.error))

# ---------------------------
# Leaving the edit view
# ---------------------------
if st.session_state.get("confirm_leave"):
    st.warning("You have unsaved changes. Leave and discard them?")
    c1, c2 = st.columns(2)
    with c1:
        if st.button("Discard changes"):
            engine.confirm_leave(True)
            reset_widgets()
            st.session_state["confirm_leave"] = False
            st.session_state["view"] = "status"
            st.rerun()
    with c2:
        if st.button("Keep editing"):
            engine.confirm_leave(False)
            st.session_state["confirm_leave"] = False
            st.rerun()

view = st.session_state.get("view", "form")

if view == "status":
    st.caption(f"Applicant: **{owner_id}**")
    if st.button("Open application"):
        st.session_state["view"] = "form"
        st.rerun()

# ---------------------------
# Form
# ---------------------------
elif not state.locked:
    for section, descriptors in engine.catalog.sections().items():
        if section:
            section_header(section)
        for d in descriptors:
            render_field(d, state.fields.get(d.name), disabled=state.submitting)

    st.divider()
    consent = st.checkbox("I agree to the terms and conditions", value=state.consent_given)

    c1, c2 = st.columns(2)
    with c1:
        if st.button("Submit application", type="primary", disabled=state.submitting):
            state = engine.submit(consent_given=consent)
            if state.status == Status.SUBMITTED:
                reset_widgets()
                st.success("Application submitted")
                st.rerun()
    with c2:
        if st.button("Back to status"):
            if engine.request_leave():
                st.session_state["view"] = "status"
            else:
                st.session_state["confirm_leave"] = True
            st.rerun()

    for issue in state.issues:
        st.error(f"{issue.field}: {issue.message}")

# ---------------------------
# After submission
# ---------------------------
else:
    if state.finished:
        st.info("Your response has been recorded. Nothing else is needed from you.")
    else:
        st.info("Your application has been received and can no longer be edited.")
    if state.status == Status.ACCEPTED:
        c1, c2 = st.columns(2)
        with c1:
            if st.button("Confirm attendance", type="primary"):
                engine.confirm_attendance()
                st.rerun()
        with c2:
            if st.button("Decline attendance"):
                engine.decline_attendance()
                st.rerun()

# Footer
st.divider()
