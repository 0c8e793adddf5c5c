"""
docqa - Streamlit Web Interface

RUN:
    streamlit run app.py

FEATURES:
- Upload documents (TXT, MD, PDF) into the SQLite knowledge base
- List and delete indexed documents
- Ask questions and see answers with cited source chunks
- Service status (database, model service)
"""

import html
import uuid

import streamlit as st

from config.settings import get_settings
from docqa.errors import to_error_response
from docqa.logging_config import configure_logging
from docqa.rag_pipeline import RAGPipeline
from docqa.rate_limit import ASK_RATE_LIMIT, UPLOAD_RATE_LIMIT, RateLimiter


st.set_page_config(
    page_title="Document Q&A",
    page_icon="📚",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    .main-header {
        font-size: 2.5rem;
        font-weight: 700;
        color: #1E3A8A;
        margin-bottom: 0.5rem;
    }
    .sub-header {
        font-size: 1.1rem;
        color: #64748B;
        margin-bottom: 2rem;
    }
    .chunk-box {
        background-color: #FFFBEB;
        border: 1px solid #FCD34D;
        padding: 1rem;
        border-radius: 8px;
        margin: 0.5rem 0;
        font-size: 0.9rem;
    }
</style>
""", unsafe_allow_html=True)


@st.cache_resource
def get_pipeline() -> RAGPipeline:
    """One pipeline (and database connection) shared by all sessions."""
    configure_logging(get_settings().log_level)
    return RAGPipeline()


@st.cache_resource
def get_rate_limiters() -> dict:
    return {
        "ask": RateLimiter(ASK_RATE_LIMIT),
        "upload": RateLimiter(UPLOAD_RATE_LIMIT),
    }


def init_session_state():
    """Initialize session state variables."""
    if "client_id" not in st.session_state:
        st.session_state.client_id = str(uuid.uuid4())
    if "chat_history" not in st.session_state:
        st.session_state.chat_history = []


def show_error(error: Exception):
    body, _ = to_error_response(error)
    st.error(f"❌ {body['error']}")


def render_sidebar(rag: RAGPipeline, limiters: dict):
    st.header("📁 Documents")

    uploaded_files = st.file_uploader(
        "Upload documents",
        type=["txt", "md", "text", "pdf"],
        accept_multiple_files=True,
        help="Text, Markdown or PDF, up to 5MB each"
    )

    if uploaded_files and st.button("📥 Index Documents", type="primary", use_container_width=True):
        for uploaded_file in uploaded_files:
            with st.spinner(f"Indexing {uploaded_file.name}..."):
                try:
                    limiters["upload"].hit(st.session_state.client_id)
                    record = rag.upload_document(
                        uploaded_file.name,
                        uploaded_file.getvalue(),
                        uploaded_file.type,
                    )
                    st.success(f"✅ {record.name}: {record.chunk_count} chunks")
                except Exception as e:
                    show_error(e)

    st.divider()
    st.subheader("📋 Indexed Documents")

    documents = rag.list_documents()
    if not documents:
        st.caption("No documents indexed yet")
        return

    for doc in documents:
        col_name, col_delete = st.columns([4, 1])
        with col_name:
            st.markdown(f"• **{doc.name}**  \n{doc.chunk_count} chunks")
        with col_delete:
            if st.button("🗑️", key=f"delete_{doc.id}", help=f"Delete {doc.name}"):
                try:
                    rag.delete_document(doc.id)
                except Exception as e:
                    show_error(e)
                else:
                    st.rerun()

    stats = rag.get_stats()
    st.caption(f"Total chunks: {stats['total_chunks']}")


def render_status(rag: RAGPipeline):
    st.header("🩺 Status")
    if st.button("Check services", use_container_width=True):
        status = rag.status()
        st.markdown(f"**Overall:** {status['status']}")
        for name, service in status["services"].items():
            icon = "🟢" if service["status"] == "ok" else "🔴"
            line = f"{icon} {name} ({service['responseTime']}ms)"
            if service.get("error"):
                line += f" - {service['error']}"
            st.markdown(line)


def main():
    init_session_state()
    try:
        rag = get_pipeline()
    except ValueError as e:
        # missing Azure credentials
        st.error(f"❌ Configuration error: {e}")
        st.stop()
    except Exception as e:
        show_error(e)
        st.stop()
    limiters = get_rate_limiters()

    st.markdown('<p class="main-header">📚 Document Q&A</p>', unsafe_allow_html=True)
    st.markdown('<p class="sub-header">Ask questions about your documents, answered with cited sources</p>', unsafe_allow_html=True)

    with st.sidebar:
        render_sidebar(rag, limiters)

    col1, col2 = st.columns([2, 1])

    with col1:
        st.header("💬 Ask a Question")

        question = st.text_input(
            "Your question:",
            placeholder="e.g., What is the remote work policy?",
            max_chars=get_settings().upload.max_question_length,
            label_visibility="collapsed"
        )

        col_btn1, col_btn2 = st.columns([1, 3])
        with col_btn1:
            ask_button = st.button("🔍 Ask", type="primary", use_container_width=True)
        with col_btn2:
            show_chunks = st.checkbox("Show sources", value=True)

        if ask_button:
            try:
                limiters["ask"].hit(st.session_state.client_id)
                with st.spinner("Searching and generating answer..."):
                    result = rag.ask(question)
                st.session_state.chat_history.append(result)
            except Exception as e:
                show_error(e)

        for result in reversed(st.session_state.chat_history):
            st.markdown(f"**Q: {result.question}**")
            st.info(result.answer)

            metric_cols = st.columns(3)
            with metric_cols[0]:
                st.metric("⏱️ Time", f"{result.timing.get('total_ms', 0):.0f}ms")
            with metric_cols[1]:
                st.metric("📚 Sources", len(result.sources))
            with metric_cols[2]:
                if result.generation_result:
                    st.metric("📊 Tokens", result.generation_result.usage["total_tokens"])

            if show_chunks and result.sources:
                with st.expander(f"📄 View sources ({len(result.sources)})"):
                    for j, source in enumerate(result.sources, 1):
                        text = html.escape(source["chunkText"])
                        st.markdown(f"""
                        <div class="chunk-box">
                            <strong>Source {j}</strong> (Similarity: {source['similarity']:.0%})<br>
                            <em>{html.escape(source['documentName'])}</em>
                            <hr style="margin: 0.5rem 0;">
                            {text[:500]}{'...' if len(text) > 500 else ''}
                        </div>
                        """, unsafe_allow_html=True)

            st.divider()

    with col2:
        render_status(rag)

        st.header("ℹ️ How It Works")
        st.markdown("""
        1. **📄 Index**: documents are split into overlapping chunks and each chunk is embedded

        2. **🔍 Retrieve**: your question is embedded and compared with every chunk by cosine similarity

        3. **✨ Generate**: the best matching chunks are sent to the chat model, which answers and cites them
        """)


if __name__ == "__main__":
    main()
