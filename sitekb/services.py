"""Composition root: builds the shared components once and tears them down."""

import logging
from dataclasses import dataclass

from config.settings import Settings, get_settings
from sitekb.agent.chat import ChatAgent
from sitekb.agent.voice import LoggingSmsSender, SmsSender
from sitekb.knowledge.base import KnowledgeBase
from sitekb.retrieval.lexical import LexicalScorer
from sitekb.retrieval.resolver import KnowledgeResolver
from sitekb.retrieval.vector_search import VectorSearch
from sitekb.storage.cache import JsonFileCache, MemoryCache
from sitekb.storage.conversation_log import ConversationLog
from sitekb.storage.record_store import RecordStore
from sitekb.storage.session_store import InMemorySessionStore, SessionStore
from sitekb.verification.otp import OtpValidator
from sitekb.verification.state_machine import VerificationStateMachine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a transport layer (CLI, MCP server) needs."""

    settings: Settings
    knowledge: KnowledgeBase
    resolver: KnowledgeResolver
    vector_search: VectorSearch | None
    sessions: SessionStore
    otp: OtpValidator
    machine: VerificationStateMachine
    sms_sender: SmsSender
    conversations: ConversationLog
    chat: ChatAgent

    async def initialize(self) -> None:
        """Load or generate intent embeddings when vector search is enabled."""
        if self.vector_search is not None:
            await self.vector_search.initialize(self.knowledge.intents)

    def close(self) -> None:
        self.sessions.close()
        logger.info("Services shut down")


def _build_vector_search(settings: Settings) -> VectorSearch | None:
    if not settings.sitekb_vector_enabled:
        return None
    from sitekb.embedding.sentence_transformer import SentenceTransformerEmbeddingProvider

    try:
        provider = SentenceTransformerEmbeddingProvider(settings.sitekb_embedding_model)
    except Exception as e:
        logger.warning("Embedding model unavailable, vector search disabled: %s", e)
        return None

    cache = JsonFileCache(settings.embeddings_cache_path) if settings.sitekb_persist else MemoryCache()
    return VectorSearch(provider, cache=cache, delay_seconds=settings.sitekb_embedding_delay_seconds)


def build_services(settings: Settings | None = None, sms_sender: SmsSender | None = None) -> Services:
    """Wire up stores, knowledge, retrieval and verification from settings."""
    settings = settings or get_settings()

    store = RecordStore(settings.tables_path if settings.sitekb_persist else None)
    knowledge = KnowledgeBase(store, chunk_size=settings.sitekb_chunk_size)
    conversations = ConversationLog(store)
    vector_search = _build_vector_search(settings)
    resolver = KnowledgeResolver(
        knowledge,
        scorer=LexicalScorer(
            keyword_match_score=settings.sitekb_keyword_match_score,
            name_match_score=settings.sitekb_name_match_score,
        ),
        vector_search=vector_search,
        min_confidence=settings.sitekb_min_confidence,
    )

    sessions = InMemorySessionStore(default_ttl_seconds=settings.sitekb_session_ttl_seconds)
    otp = OtpValidator(
        sessions,
        ttl_seconds=settings.sitekb_otp_ttl_seconds,
        max_attempts=settings.sitekb_otp_max_attempts,
    )
    machine = VerificationStateMachine(
        sessions,
        otp,
        totp_max_attempts=settings.sitekb_totp_max_attempts,
        max_code_reissues=settings.sitekb_max_code_reissues,
        session_ttl_seconds=settings.sitekb_session_ttl_seconds,
    )

    return Services(
        settings=settings,
        knowledge=knowledge,
        resolver=resolver,
        vector_search=vector_search,
        sessions=sessions,
        otp=otp,
        machine=machine,
        sms_sender=sms_sender or LoggingSmsSender(),
        conversations=conversations,
        chat=ChatAgent(
            knowledge,
            resolver,
            conversations,
            context_min_score=settings.sitekb_chat_context_min_score,
        ),
    )
