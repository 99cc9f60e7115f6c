"""Conversational replies for LeXAssist with keyword-routed fallback.

Gemini answers first. When it cannot, the fallback routes on domain
keywords (tax, legal, audit) and always has a general answer.
"""

from collections.abc import Sequence
from enum import Enum

from lexassist.adapters.gemini_client import ChatTurn, GeminiClient
from lexassist.core.categories import is_indian_jurisdiction
from lexassist.core.interfaces import IResponseGeneratorProtocol
from lexassist.core.models import Message
from lexassist.core.results import ChatReply, ReasoningStep
from lexassist.observability import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are LeXAssist, an AI legal and financial advisor specializing in the {jurisdiction} jurisdiction.
Your purpose is to help users with legal and financial questions by providing helpful, accurate information.
Always be professional, clear, and concise in your responses.
When you don't know something, be transparent about your limitations and suggest alternative resources.
When discussing legal matters, reference specific laws or regulations when applicable.
When discussing financial matters, explain the reasoning behind your suggestions.
Remember that all information needs to be jurisdiction-appropriate for {jurisdiction}."""


class ChatIntent(str, Enum):
    """Topic detected in a user message."""

    TAX = "tax"
    LEGAL = "legal"
    AUDIT = "audit"
    GENERAL = "general"


# Checked in order; the first matching intent wins.
INTENT_KEYWORDS: list[tuple[ChatIntent, tuple[str, ...]]] = [
    (ChatIntent.TAX, ("tax", "deduction", "irs", "gst", "income tax")),
    (ChatIntent.LEGAL, ("legal", "contract", "lawsuit", "agreement", "companies act")),
    (ChatIntent.AUDIT, ("audit", "financial", "fraud", "accounting")),
]


def detect_intent(message: str) -> ChatIntent:
    """Classify a message by the first domain whose keywords it contains."""
    lowered = message.lower()
    for intent, keywords in INTENT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return intent
    return ChatIntent.GENERAL


def _steps(*pairs: tuple[str, str]) -> list[ReasoningStep]:
    return [ReasoningStep(step=step, explanation=explanation) for step, explanation in pairs]


def _tax_reply(indian: bool) -> ChatReply:
    if indian:
        return ChatReply(
            content=(
                "Based on your tax-related question, I can provide guidance according to Indian tax laws. "
                "Under the Income Tax Act of 1961 (as amended) and the GST Act of 2017, several provisions "
                "may be relevant to your situation. The Finance Act of 2023 introduced significant changes, "
                "including updates to tax slabs and deduction limits under Sections 80C and 80D. Would you "
                "like me to analyze a specific tax document according to Indian tax regulations?"
            ),
            reasoning_log=_steps(
                ("Intent Detection", "Identified a tax-related query from keywords."),
                ("Jurisdiction Identification", "Determined the user is in the Indian jurisdiction."),
                ("Regulation Application", "Applied Income Tax Act, GST Act and Finance Act 2023 provisions."),
                ("Response Generation", "Provided India-specific tax information and offered document analysis."),
            ),
        )
    return ChatReply(
        content=(
            "Based on your question about taxes, I can provide some general guidance. Tax regulations are "
            "complex and jurisdiction-specific, but several strategies might apply to your situation. To give "
            "more specific advice I would need details about your financial situation, income sources and "
            "applicable jurisdiction. Would you like me to analyze a specific tax document for you?"
        ),
        reasoning_log=_steps(
            ("Intent Detection", "Identified a tax-related query from keywords."),
            ("Jurisdiction Check", "Found a non-Indian jurisdiction, providing general guidance."),
            ("Response Generation", "Provided general tax information and asked for specific details."),
        ),
    )


def _legal_reply(indian: bool) -> ChatReply:
    if indian:
        return ChatReply(
            content=(
                "Regarding your legal question, please note that this information is not legal advice. In the "
                "Indian legal context, the Indian Contract Act (1872), the Companies Act (2013), the Specific "
                "Relief Act (1963) and the Information Technology Act (2000) may be relevant depending on your "
                "situation. Recent amendments and Supreme Court of India judgments have set important "
                "precedents. Could you share more details about your document or situation?"
            ),
            reasoning_log=_steps(
                ("Intent Detection", "Identified a legal query from keywords."),
                ("Jurisdiction Identification", "Determined the user is in the Indian jurisdiction."),
                ("Disclaimer Addition", "Added the disclaimer required for legal discussions."),
                ("Regulation Application", "Applied the Indian Contract Act, Companies Act and related legislation."),
                ("Response Generation", "Provided India-specific legal information and requested more context."),
            ),
        )
    return ChatReply(
        content=(
            "Regarding your legal question, please note that this information is not legal advice. Legal "
            "matters depend heavily on jurisdiction and specific circumstances. Based on general legal "
            "principles there are several factors to consider. Could you share more details about the "
            "document or situation you are dealing with?"
        ),
        reasoning_log=_steps(
            ("Intent Detection", "Identified a legal query from keywords."),
            ("Jurisdiction Check", "Found a non-Indian jurisdiction."),
            ("Disclaimer Addition", "Added the disclaimer required for legal discussions."),
            ("Response Generation", "Provided general legal information and requested more context."),
        ),
    )


def _audit_reply(indian: bool) -> ChatReply:
    if indian:
        return ChatReply(
            content=(
                "I understand you're asking about financial auditing in the Indian context. Forensic audits in "
                "India are governed by the Standards on Auditing issued by ICAI, the Companies Act of 2013 and "
                "the Prevention of Money Laundering Act of 2002. I can analyze financial statements, transaction "
                "records and GST filings to identify potential issues under Indian law. Would you like to upload "
                "financial documents for analysis?"
            ),
            reasoning_log=_steps(
                ("Intent Detection", "Identified a forensic audit query from keywords."),
                ("Jurisdiction Identification", "Determined the user is in the Indian jurisdiction."),
                ("Regulation Application", "Applied ICAI standards, Companies Act 2013 and PMLA 2002."),
                ("Response Generation", "Explained India-specific capabilities and offered document upload."),
            ),
        )
    return ChatReply(
        content=(
            "I understand you're asking about financial auditing. Forensic audits are detailed examinations "
            "aimed at uncovering financial irregularities or fraud. I can analyze financial statements, "
            "transaction records and other documents to identify potential issues. Would you like to upload "
            "financial documents for analysis, or do you have more specific questions about the process?"
        ),
        reasoning_log=_steps(
            ("Intent Detection", "Identified a forensic audit query from keywords."),
            ("Jurisdiction Check", "Found a non-Indian jurisdiction."),
            ("Context Building", "Explained forensic audit capabilities."),
            ("Response Generation", "Offered document upload and further questions."),
        ),
    )


def _general_reply(indian: bool) -> ChatReply:
    if indian:
        return ChatReply(
            content=(
                "Thank you for your question. I'm LeXAssist, your AI-powered legal and financial advisor with "
                "specialized knowledge of Indian laws and regulations. I can help with forensic audits under "
                "ICAI standards, tax optimization under the Income Tax Act and GST regulations, and legal "
                "document analysis. Which of these areas are you interested in, or would you like to upload a "
                "document for analysis?"
            ),
            reasoning_log=_steps(
                ("Intent Detection", "Could not identify a specific intent from the query."),
                ("Jurisdiction Identification", "Determined the user is in the Indian jurisdiction."),
                ("Service Introduction", "Introduced India-specific services since intent was unclear."),
                ("Response Generation", "Requested clarification."),
            ),
        )
    return ChatReply(
        content=(
            "Thank you for your question. I'm LeXAssist, your AI-powered legal and financial advisor. I can "
            "help with forensic audits, tax optimization and legal document analysis. Which of these areas are "
            "you interested in, or would you like to upload a document for analysis?"
        ),
        reasoning_log=_steps(
            ("Intent Detection", "Could not identify a specific intent from the query."),
            ("Jurisdiction Check", "Found a non-Indian jurisdiction."),
            ("Service Introduction", "Introduced available services since intent was unclear."),
            ("Response Generation", "Requested clarification."),
        ),
    )


FALLBACK_REPLIES = {
    ChatIntent.TAX: _tax_reply,
    ChatIntent.LEGAL: _legal_reply,
    ChatIntent.AUDIT: _audit_reply,
    ChatIntent.GENERAL: _general_reply,
}


def fallback_reply(user_message: str, jurisdiction: str) -> ChatReply:
    """Deterministic keyword-routed reply. Never empty."""
    intent = detect_intent(user_message)
    return FALLBACK_REPLIES[intent](is_indian_jurisdiction(jurisdiction))


class ResponseGenerator(IResponseGeneratorProtocol):
    """Generates assistant replies, Gemini first with keyword fallback.

    Args:
        client: GeminiClient; None or an unconfigured client uses the fallback only.
    """

    def __init__(self, client: GeminiClient | None) -> None:
        self._client = client

    async def generate(
        self,
        history: Sequence[Message],
        user_message: str,
        jurisdiction: str,
    ) -> ChatReply:
        """Reply to a user message given the prior conversation.

        Args:
            history: Earlier messages of the conversation, oldest first.
            user_message: The message being answered.
            jurisdiction: Region code of the user.

        Returns:
            ChatReply with content and a non-empty reasoning log.
        """
        intent = detect_intent(user_message)
        if self._client is not None and self._client.is_configured:
            try:
                content = await self._client.generate(
                    user_message,
                    history=[ChatTurn(role=message.sender, text=message.content) for message in history],
                    system_instruction=SYSTEM_PROMPT.format(jurisdiction=jurisdiction),
                    temperature=0.7,
                    max_output_tokens=1024,
                )
                return ChatReply(
                    content=content,
                    reasoning_log=_steps(
                        ("Intent Detection", f"Classified the question as {intent.value}."),
                        ("Jurisdiction Context", f"Instructed the model to answer for {jurisdiction}."),
                        ("Conversation Context", f"Included {len(history)} earlier messages."),
                        ("Response Generation", f"Generated the reply with the {self._client.model} model."),
                    ),
                )
            except Exception as exc:
                logger.warning("AI reply failed, using keyword fallback", intent=intent.value, reason=str(exc))

        return fallback_reply(user_message, jurisdiction)
