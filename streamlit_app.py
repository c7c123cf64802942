"""Web interface using Streamlit."""

import asyncio
import uuid

import streamlit as st

from advisor import ConversationEngine, RAGPipeline, TurnRequest, UserProfile
from advisor.config import config

CONFIDENCE_HIGH = 0.6
CONFIDENCE_MEDIUM = 0.4

MAX_MATCH_PREVIEW_LENGTH = 200

config.setup_logging()
logger = config.get_logger(__name__)


class SessionState:
    """Centralized session state management."""

    @staticmethod
    def initialize() -> None:
        """Initialize all session state variables."""
        defaults = {
            "conversation_id": str(uuid.uuid4()),
            "greeted": False,
            "messages": [],
            "last_reply": None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @staticmethod
    def new_conversation() -> None:
        """Start over with a fresh conversation id."""
        st.session_state.conversation_id = str(uuid.uuid4())
        st.session_state.greeted = False
        st.session_state.messages = []
        st.session_state.last_reply = None


def validate_configuration() -> bool:
    """Validate application configuration and show user feedback.

    Returns:
        bool: True if configuration is valid, False otherwise.
    """
    try:
        config.validate()
    except ValueError as e:
        st.error(f"Configuration Error: {e}")
        return False
    else:
        return True


@st.cache_resource
def get_engine() -> ConversationEngine:
    """Build the engine once per server process and start loading the index.

    Returns:
        ConversationEngine shared by every browser session.
    """
    pipeline = RAGPipeline()
    pipeline.start_warm_up()
    logger.info("Conversation engine created")
    return ConversationEngine(pipeline)


def current_profile() -> UserProfile | None:
    return UserProfile.from_payload({
        key: value
        for key, value in {
            "name": st.session_state.get("profile_name"),
            "county": st.session_state.get("profile_county"),
            "email": st.session_state.get("profile_email"),
        }.items()
        if value
    })


def send_turn(engine: ConversationEngine, message: str, *, first: bool) -> None:
    """Run one chat turn and record it in the transcript."""
    profile = current_profile()
    request = TurnRequest.from_payload({
        "message": message,
        "context": st.session_state.get("page_context", ""),
        "pageUrl": "streamlit",
        "isFirstMessage": first,
        "conversationId": st.session_state.conversation_id,
        "userProfile": profile.to_dict() if profile else None,
    })
    reply = asyncio.run(engine.handle_turn(request))
    if message:
        st.session_state.messages.append({"role": "user", "content": message})
    st.session_state.messages.append({"role": "assistant", "content": reply.response})
    st.session_state.last_reply = reply.to_dict()


def render_sidebar() -> None:
    """Render the sidebar with visitor profile and page context."""
    with st.sidebar:
        st.header("Visitor")
        st.text_input("Name", key="profile_name")
        st.selectbox("County", ["", *config.JURISDICTIONS], key="profile_county")
        st.text_input("Email", key="profile_email")

        st.divider()
        st.subheader("Page Context")
        st.text_input(
            "What page is the visitor on?",
            key="page_context",
            placeholder="e.g. Pasadena debris removal",
        )

        st.divider()
        st.write(f"**Conversation:** `{st.session_state.conversation_id[:8]}`")
        if st.button("New Conversation", use_container_width=True):
            SessionState.new_conversation()
            st.rerun()


def render_reply_details(reply: dict) -> None:
    """Show confidence, source and the optional reply fields."""
    if reply.get("handoffRequired"):
        st.warning(
            "It looks like you'd like to reach a person. A recovery specialist "
            f"will follow up by {reply.get('handoffMethod')}."
        )
    if notification := reply.get("notification"):
        st.info(notification)

    col1, col2, col3 = st.columns(3)
    with col1:
        confidence = reply.get("confidence", 0.0)
        confidence_color = (
            "green"
            if confidence > CONFIDENCE_HIGH
            else "orange"
            if confidence >= CONFIDENCE_MEDIUM
            else "red"
        )
        st.markdown(f"**Confidence:** :{confidence_color}[{confidence:.2f}]")
    with col2:
        st.markdown(f"**Intent:** {reply.get('intent')}")
    with col3:
        if source := reply.get("source"):
            st.markdown(f"**Source:** {source} #{reply.get('chunk_index')}")

    if options := reply.get("clarificationOptions"):
        st.markdown("**Did you mean:**")
        for option in options:
            st.markdown(f"- {option}")

    if alternatives := reply.get("alternatives"):
        with st.expander("Other sources", expanded=False):
            for alternative in alternatives:
                st.markdown(
                    f"**{alternative['source']}** #{alternative['chunk_index']}"
                )
                text = alternative["answer"]
                st.code(
                    text[:MAX_MATCH_PREVIEW_LENGTH] + "..."
                    if len(text) > MAX_MATCH_PREVIEW_LENGTH
                    else text
                )


def render_chat(engine: ConversationEngine) -> None:
    """Render the chat transcript and input."""
    if not st.session_state.greeted:
        send_turn(engine, "", first=True)
        st.session_state.greeted = True

    for message in st.session_state.messages:
        with st.chat_message(message["role"]):
            st.write(message["content"])

    if st.session_state.last_reply:
        render_reply_details(st.session_state.last_reply)

    if question := st.chat_input("Ask about fire recovery..."):
        with st.spinner("Looking through official documents..."):
            send_turn(engine, question, first=False)
        st.rerun()


def render_admin(engine: ConversationEngine) -> None:
    """Render analytics, users, bias log and corpus management."""
    st.subheader("Analytics")
    st.dataframe(engine.analytics_summary(), use_container_width=True)

    st.subheader("Users")
    st.dataframe(engine.list_users(), use_container_width=True)

    st.subheader("Bias & Fairness Log")
    entries = engine.bias_log_tail()
    if entries:
        st.dataframe(entries, use_container_width=True)
    else:
        st.write("No bias warnings logged yet.")

    st.subheader("Documents")
    for jurisdiction, names in engine.list_documents().items():
        with st.expander(f"{jurisdiction} ({len(names)})", expanded=False):
            for name in names:
                st.write(name)

    render_document_upload(engine)

    if st.button("Reindex Documents", use_container_width=True):
        with st.spinner("Reindexing... This may take a few moments."):
            report = engine.reindex()
        st.success(
            f"Indexed {report.chunks} chunks from {report.documents} documents."
        )
        for path, error in report.failures.items():
            st.error(f"{path}: {error}")


def render_document_upload(engine: ConversationEngine) -> None:
    """Save an uploaded document under a jurisdiction and index it."""
    jurisdiction = st.selectbox("Jurisdiction", config.JURISDICTIONS)
    uploaded_file = st.file_uploader(
        "Upload a PDF or TXT document", type=["pdf", "txt"]
    )
    if not (uploaded_file and st.button("Add Document", use_container_width=True)):
        return

    pipeline = engine.knowledge_base
    target = pipeline.documents_dir / jurisdiction / uploaded_file.name
    try:
        target.parent.mkdir(exist_ok=True, parents=True)
        target.write_bytes(uploaded_file.getbuffer())
        with st.spinner(f"Processing '{uploaded_file.name}'..."):
            chunks = pipeline.process_document(target, jurisdiction)
    except (OSError, ValueError, RuntimeError) as e:
        logger.exception("Document processing failed")
        st.error(f"Failed to process document: {e}")
    else:
        st.success(f"Document '{uploaded_file.name}' indexed ({chunks} chunks).")


def main() -> None:
    """Main entry point for the Streamlit web application.

    Sets up the page, initializes session state, and renders the chat and
    admin tabs once configuration is valid.
    """
    st.set_page_config(page_title="Aldeia Recovery Advisor", layout="wide")

    SessionState.initialize()

    st.title("Aldeia Recovery Advisor")
    st.markdown("---")

    render_sidebar()

    if not validate_configuration():
        st.info("Set OPENAI_API_KEY in your environment or .env file to get started.")
        return

    engine = get_engine()
    if not engine.knowledge_base.is_ready:
        st.caption("Knowledge base is still loading...")

    chat_tab, admin_tab = st.tabs(["Chat", "Admin"])
    with chat_tab:
        render_chat(engine)
    with admin_tab:
        render_admin(engine)


if __name__ == "__main__":
    main()
