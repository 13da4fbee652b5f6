"""
Assistant Module

Conversational doctor matching: session history, the recommendation
service contract and the assistant that ties them together.

Usage:
    from app.core.assistant import MatchingAssistant, get_conversation_store

    assistant = MatchingAssistant(
        store=get_conversation_store(),
        recommender=ClaudeRecommendationService(),
        load_roster=directory.list_doctors,
    )
    session = await assistant.start_session()
    reply = await assistant.send_message(session.session_id, "I have chest pain")
"""

from app.core.assistant.session import (
    ConversationSession,
    ConversationStore,
    Role,
    Turn,
    get_conversation_store,
)
from app.core.assistant.recommender import (
    ClaudeRecommendationService,
    RecommendationRequest,
    RecommendationService,
    to_claude_messages,
)
from app.core.assistant.assistant import MatchingAssistant

__all__ = [
    "ConversationSession",
    "ConversationStore",
    "Role",
    "Turn",
    "get_conversation_store",
    "ClaudeRecommendationService",
    "RecommendationRequest",
    "RecommendationService",
    "to_claude_messages",
    "MatchingAssistant",
]
