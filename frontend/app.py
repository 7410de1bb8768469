"""LexAid - Streamlit interface.

Thin client for the legal assistant API. All model calls go through the
FastAPI backend. This file handles:
  - Session UUID management (st.session_state)
  - Chat transcript restoration from the backend on page load
  - Streaming chat replies over SSE
  - Document analysis, risk assessment, drafting and research forms
  - Copy/download of results
"""

import json
import os
import time
from uuid import uuid4

import requests
import streamlit as st

# Config
API_URL = os.environ.get("API_URL", "http://localhost:8000")
CHAT_STREAM_ENDPOINT = f"{API_URL}/chat/stream"
HISTORY_ENDPOINT = f"{API_URL}/history"
HEALTH_ENDPOINT = f"{API_URL}/health"
EXTRACT_ENDPOINT = f"{API_URL}/extract"

PAGES = ["Legal Chatbot", "Document Analysis", "Risk Assessment", "Document Generator", "Legal Research"]

SUGGESTED_TOPICS = [
    "Contract interpretation",
    "Privacy policies",
    "Employment law",
    "Intellectual property",
    "Business regulations",
    "Real estate law",
]

DISCLAIMER = (
    "This AI assistant provides general legal information for educational purposes only. "
    "It is not a substitute for professional legal advice. Always consult with a qualified "
    "attorney for advice specific to your situation."
)

st.set_page_config(page_title="LexAid - Legal Assistant", layout="wide")

st.markdown("""
<style>
    .status-badge {
        display: inline-block;
        padding: 2px 8px;
        border-radius: 12px;
        font-size: 0.75rem;
        font-weight: 600;
    }
    .status-ok { background: #d4edda; color: #155724; }
    .status-err { background: #f8d7da; color: #721c24; }
    .risk-low { background: #22c55e; color: white; }
    .risk-medium { background: #eab308; color: white; }
    .risk-high { background: #ef4444; color: white; }
    .risk-none { background: #9ca3af; color: white; }
</style>
""", unsafe_allow_html=True)


def init_session():
    """Initialize session state on first load."""
    if "session_id" not in st.session_state:
        st.session_state.session_id = str(uuid4())
    if "messages" not in st.session_state:
        st.session_state.messages = []
    if "history_loaded" not in st.session_state:
        st.session_state.history_loaded = False
    if "document_text" not in st.session_state:
        st.session_state.document_text = ""
    if "results" not in st.session_state:
        st.session_state.results = {}


def restore_history():
    """Fetch the session transcript from the backend."""
    if st.session_state.history_loaded:
        return

    try:
        resp = requests.get(f"{HISTORY_ENDPOINT}/{st.session_state.session_id}", timeout=5)
        if resp.status_code == 200:
            st.session_state.messages = [
                {"role": m["role"], "content": m["content"]}
                for m in resp.json().get("messages", [])
            ]
    except requests.RequestException:
        pass  # Start with an empty transcript

    st.session_state.history_loaded = True


def clear_chat():
    """Clear the transcript on both sides."""
    try:
        requests.delete(f"{HISTORY_ENDPOINT}/{st.session_state.session_id}", timeout=5)
    except requests.RequestException:
        st.warning("[WARN] Could not reach the backend; cleared locally only.")
    st.session_state.messages = []
    st.toast("Chat cleared: all messages have been removed from the chat.")


def render_message(msg: dict):
    with st.chat_message(msg["role"]):
        st.text(msg["content"])


def send_message(user_input: str, document_text: str | None = None):
    """POST the user message to the streaming endpoint and render the reply live."""
    st.session_state.messages.append({"role": "user", "content": user_input.strip()})
    with st.chat_message("user"):
        st.text(user_input.strip())

    payload = {"session_id": st.session_state.session_id, "message": user_input}
    if document_text is not None:
        payload["document_text"] = document_text

    with st.chat_message("assistant"):
        placeholder = st.empty()
        final_text = None
        streamed = ""
        try:
            resp = requests.post(CHAT_STREAM_ENDPOINT, json=payload, timeout=90, stream=True)
            if resp.status_code == 409:
                st.warning("[BUSY] A response is still being generated. Please wait.")
                st.session_state.messages.pop()
                return
            if resp.status_code != 200:
                st.error(f"[ERROR] Server error ({resp.status_code}). Please try again.")
                st.session_state.messages.pop()
                return

            for line in resp.iter_lines():
                if not line:
                    continue
                decoded_line = line.decode("utf-8")
                if not decoded_line.startswith("data: "):
                    continue
                try:
                    data = json.loads(decoded_line[6:])
                except json.JSONDecodeError:
                    continue

                event_type = data.get("type")
                if event_type == "start":
                    placeholder.caption(data.get("content", "Thinking..."))
                elif event_type == "chunk":
                    streamed += data.get("content", "")
                    placeholder.text(streamed)
                elif event_type == "final_text":
                    final_text = data.get("content", "")
                    placeholder.text(final_text)
                elif event_type == "rejected":
                    placeholder.empty()
                    st.warning("[BUSY] A response is still being generated. Please wait.")
                    st.session_state.messages.pop()
                    return

        except requests.Timeout:
            st.error("[TIMEOUT] Request timed out. Please try again.")
            return
        except requests.ConnectionError:
            st.error("[DISCONNECT] Cannot connect to the backend. Is the API server running?")
            return

    if final_text is not None:
        st.session_state.messages.append({"role": "assistant", "content": final_text})


def upload_document(key: str) -> None:
    """File uploader that sends the file to /extract and stores the text."""
    uploaded = st.file_uploader(
        "Upload a document", type=["pdf", "png", "jpg", "jpeg", "txt"], key=f"upload_{key}"
    )
    if uploaded is None or st.session_state.get(f"processed_{key}") == uploaded.file_id:
        return

    with st.spinner("Processing file..."):
        try:
            resp = requests.post(
                EXTRACT_ENDPOINT,
                files={"file": (uploaded.name, uploaded.getvalue(), uploaded.type)},
                timeout=60,
            )
        except requests.RequestException:
            st.error("[DISCONNECT] Cannot connect to the backend.")
            return

    st.session_state[f"processed_{key}"] = uploaded.file_id
    if resp.status_code == 200:
        st.session_state.document_text = resp.json()["text"]
        st.toast("File processed successfully: the text has been extracted from your document.")
    else:
        detail = resp.json().get("detail", {})
        if isinstance(detail, dict):
            st.error(f"{detail.get('title', 'Error')}: {detail.get('description', '')}")
        else:
            st.error(str(detail))


def call_workflow(path: str, payload: dict, key: str, spinner: str):
    """POST to a workflow endpoint and keep the result in session state."""
    with st.spinner(spinner):
        try:
            resp = requests.post(f"{API_URL}{path}", json=payload, timeout=90)
        except requests.RequestException:
            st.error("[DISCONNECT] Cannot connect to the backend. Is the API server running?")
            return

    data = resp.json()
    if resp.status_code == 200:
        st.session_state.results[key] = data
        note = data["notification"]
        st.toast(f"{note['title']}: {note['description']}")
        return

    detail = data.get("detail", {})
    if isinstance(detail, dict):
        st.error(f"{detail.get('title', 'Error')}: {detail.get('description', '')}")
    else:
        st.error(str(detail))


def render_result(key: str, title: str):
    """Editable result with download, mirroring the copy/edit/download panel."""
    result = st.session_state.results.get(key)
    if not result:
        st.info(f"{title} will appear here.")
        return

    st.subheader(title)
    edited = st.text_area("Result", value=result["text"], height=420, key=f"edit_{key}")
    st.download_button(
        "Download", data=edited, file_name=result["filename"], mime="text/plain",
        key=f"download_{key}",
    )


def document_input(key: str):
    upload_document(key)
    st.session_state.document_text = st.text_area(
        "Document Text", value=st.session_state.document_text, height=240,
        placeholder="Or paste your document text here...", key=f"text_{key}",
    )


def chatbot_page():
    st.header("Legal Chatbot")
    if st.button("Clear Chat", disabled=not st.session_state.messages):
        clear_chat()
        st.rerun()

    if not st.session_state.messages:
        st.caption("How can I help you today? Ask me any legal question.")
    for msg in st.session_state.messages:
        render_message(msg)

    cols = st.columns(3)
    for i, topic in enumerate(SUGGESTED_TOPICS):
        if cols[i % 3].button(topic, key=f"topic_{i}"):
            send_message(topic, document_text="")

    if user_input := st.chat_input("Type your message..."):
        send_message(user_input, document_text="")

    st.caption(f"Disclaimer: {DISCLAIMER}")


def analysis_page():
    st.header("Document Analysis")
    left, right = st.columns(2)
    with left:
        document_input("analysis")
        if st.button("Analyze Document", disabled=not st.session_state.document_text.strip()):
            call_workflow("/documents/analyze", {"document_text": st.session_state.document_text},
                          "analysis", "Analyzing...")
    with right:
        render_result("analysis", "Analysis Results")

    st.subheader("Ask about this document")
    for msg in st.session_state.messages:
        render_message(msg)
    if question := st.chat_input("Ask a question about the document..."):
        send_message(question, document_text=st.session_state.document_text)


def risk_page():
    st.header("Risk & Compliance Assessment")
    left, right = st.columns(2)
    with left:
        document_input("risk")
        if st.button("Assess Risks", disabled=not st.session_state.document_text.strip()):
            call_workflow("/documents/risk", {"document_text": st.session_state.document_text},
                          "risk", "Assessing Risks...")
    with right:
        result = st.session_state.results.get("risk")
        if result:
            score = result.get("risk_score") or {}
            if score.get("parsed"):
                value = score["value"]
                css = "risk-low" if value <= 3 else "risk-medium" if value <= 7 else "risk-high"
                st.markdown(
                    f"### Risk Score: {value}/10 "
                    f'<span class="status-badge {css}">{result["risk_level"]}</span>',
                    unsafe_allow_html=True,
                )
                st.progress(value * 10)
            else:
                st.markdown(
                    '### Risk Score: unverified <span class="status-badge risk-none">Unscored</span>',
                    unsafe_allow_html=True,
                )
                st.caption("The assessment did not contain a risk score. Read the findings below.")
        render_result("risk", "Risk Assessment Results")


GENERATOR_FIELDS = {
    "nda": [("disclosingParty", "Disclosing Party *"), ("receivingParty", "Receiving Party *"),
            ("purpose", "Purpose"), ("duration", "Duration (years)"), ("governingLaw", "Governing Law")],
    "employment": [("employer", "Employer *"), ("employee", "Employee *"), ("position", "Position *"),
                   ("startDate", "Start Date"), ("salary", "Salary"), ("benefits", "Benefits")],
    "service": [("serviceProvider", "Service Provider *"), ("client", "Client *"),
                ("services", "Services *"), ("paymentTerms", "Payment Terms"),
                ("startDate", "Start Date"), ("endDate", "End Date")],
    "custom": [("requirements", "Describe your document requirements *")],
}

GENERATOR_DEFAULTS = {"duration": "2", "salary": "50000"}


def generator_page():
    st.header("Document Generator")
    left, right = st.columns(2)
    with left:
        document_type = st.selectbox(
            "Document Type", list(GENERATOR_FIELDS),
            format_func=lambda t: {"nda": "Non-Disclosure Agreement", "employment": "Employment Contract",
                                   "service": "Service Agreement", "custom": "Custom Document"}[t],
        )
        fields = {}
        for name, label in GENERATOR_FIELDS[document_type]:
            widget = st.text_area if name in ("requirements", "services", "benefits") else st.text_input
            fields[name] = widget(label, value=GENERATOR_DEFAULTS.get(name, ""),
                                  key=f"gen_{document_type}_{name}")
        if st.button("Generate Document"):
            call_workflow("/documents/generate", {"document_type": document_type, "fields": fields},
                          "generation", "Generating...")
    with right:
        render_result("generation", "Generated Document")


def research_page():
    st.header("Legal Research")
    left, right = st.columns(2)
    with left:
        query = st.text_area("Research Query", placeholder="Describe the legal issue...")
        jurisdiction = st.selectbox("Jurisdiction", ["india", "us-federal", "us-state", "eu", "uk",
                                                     "canada", "australia", "international"])
        state = st.text_input("State / Region")
        timeframe = st.selectbox("Timeframe", ["all", "5", "10", "20"],
                                 format_func=lambda t: "All Time" if t == "all" else f"Last {t} Years")
        if st.button("Search Precedents"):
            call_workflow("/research", {"query": query, "jurisdiction": jurisdiction,
                                        "state": state, "timeframe": timeframe},
                          "research", "Searching...")
    with right:
        render_result("research", "Research Results")


def main():
    """Run the Streamlit application."""
    init_session()
    restore_history()

    api_status = "offline"
    try:
        health = requests.get(f"{HEALTH_ENDPOINT}?t={time.time()}", timeout=3).json()
        api_status = health.get("status", "unknown")
    except requests.RequestException:
        pass

    st.title("LexAid")
    st.caption("AI-assisted legal document analysis, drafting and research")

    with st.sidebar:
        page = st.radio("Navigate", PAGES)
        st.divider()
        st.markdown("### Session Info")
        st.code(st.session_state.session_id, language=None)
        if api_status == "healthy":
            st.markdown('<span class="status-badge status-ok">* API Healthy</span>', unsafe_allow_html=True)
        elif api_status == "degraded":
            st.markdown('<span class="status-badge status-err">* API Degraded</span>', unsafe_allow_html=True)
            st.info("[INFO] No language model key configured on the backend.")
        else:
            st.markdown('<span class="status-badge status-err">* API Offline</span>', unsafe_allow_html=True)

        if st.button("Check Connection", use_container_width=True):
            st.rerun()

        st.divider()
        if st.button("[DEL] New Session", use_container_width=True):
            st.session_state.session_id = str(uuid4())
            st.session_state.messages = []
            st.session_state.results = {}
            st.session_state.history_loaded = False
            st.rerun()

    {
        "Legal Chatbot": chatbot_page,
        "Document Analysis": analysis_page,
        "Risk Assessment": risk_page,
        "Document Generator": generator_page,
        "Legal Research": research_page,
    }[page]()


if __name__ == "__main__":
    main()
