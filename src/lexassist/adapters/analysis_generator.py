"""Category-dispatched document analysis with Gemini and template fallback.

The generator resolves the category once, asks the Gemini strategy for a
JSON analysis, and falls back to the deterministic template strategy when
the model is unreachable or answers with something that is not a usable
analysis.
"""

import json
import re

from lexassist.adapters.analysis_templates import build_template, template_references
from lexassist.adapters.gemini_client import GeminiClient
from lexassist.core.categories import CategoryProfile, profile_for, resolve_category
from lexassist.core.interfaces import IAnalysisGeneratorProtocol
from lexassist.core.models import DocumentCategory
from lexassist.core.results import AnalysisResult, ReasoningStep
from lexassist.errors import GenerationUnavailableError, MalformedResponseError
from lexassist.observability import get_logger

logger = get_logger(__name__)

MAX_DOCUMENT_CHARS = 30000

ANALYSIS_PROMPT = """You are LeXIntuition, an AI-powered legal and financial analysis engine specialized in the {jurisdiction} jurisdiction.

Analyze the following {category} document ({service_name}).
{prompt_focus}

Document text:
\"\"\"
{document_text}
\"\"\"

Respond ONLY with valid JSON in this exact format:
{{
  "analysis": ["paragraph", "..."],
  "recommendations": ["recommendation", "..."],
  "references": [{{"title": "statute or standard", "url": "optional link"}}],
  "foresight": {{
    "predictions": ["prediction", "..."],
    "risks": [{{"title": "short title", "description": "one or two sentences"}}],
    "opportunities": [{{"title": "short title", "description": "one or two sentences"}}]
  }},
  "reasoning_log": [{{"step": "step name", "explanation": "how this step was derived"}}]
}}

Cover the document's purpose and key terms, risks, financial implications,
compliance considerations specific to {jurisdiction}, and concrete recommendations.
Where you state likelihoods, use percentages between 1 and 100; rate impact as
Low, Medium, High or Critical; give timeframes as quarters such as "Q3 2025".
"""

_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)


def extract_json_object(text: str) -> dict | None:
    """Return the first well-formed JSON object embedded in model output.

    Fenced blocks are tried first, then every opening brace in the raw
    text, so prose before or after the object is ignored.
    """
    decoder = json.JSONDecoder()
    candidates = [match.group(1) for match in _CODE_FENCE.finditer(text)]
    candidates.append(text)
    for candidate in candidates:
        index = candidate.find("{")
        while index != -1:
            try:
                value, _ = decoder.raw_decode(candidate, index)
            except json.JSONDecodeError:
                index = candidate.find("{", index + 1)
                continue
            if isinstance(value, dict):
                return value
            index = candidate.find("{", index + 1)
    return None


class GeminiAnalysisStrategy:
    """Asks Gemini for a JSON analysis and validates its shape.

    Args:
        client: Configured GeminiClient.
    """

    def __init__(self, client: GeminiClient) -> None:
        self._client = client

    async def generate(
        self, document_text: str, profile: CategoryProfile, jurisdiction: str
    ) -> AnalysisResult:
        """Generate an analysis with Gemini.

        Raises:
            GenerationError: If the call fails.
            MalformedResponseError: If no JSON object with analysis paragraphs
                can be recovered from the reply.
        """
        prompt = ANALYSIS_PROMPT.format(
            jurisdiction=jurisdiction,
            category=profile.category.value,
            service_name=profile.service_name,
            prompt_focus=profile.prompt_focus,
            document_text=document_text[:MAX_DOCUMENT_CHARS],
        )
        raw = await self._client.generate(
            prompt,
            temperature=0.2,
            max_output_tokens=4096,
            response_mime_type="application/json",
        )

        payload = extract_json_object(raw)
        if payload is None:
            raise MalformedResponseError("Model output did not contain a JSON object")

        result = AnalysisResult.from_payload(payload)
        if not result.analysis:
            raise MalformedResponseError("Model output contained no analysis paragraphs")

        if not result.references:
            result.references = template_references(profile.category, jurisdiction)
        result.reasoning_log = [
            ReasoningStep(
                step="AI Analysis",
                explanation=f"Analyzed the document with the {self._client.model} model.",
            ),
            ReasoningStep(
                step="Jurisdiction-Specific Analysis",
                explanation=f"Applied {jurisdiction} legal and regulatory frameworks.",
            ),
            *result.reasoning_log,
        ]
        return result


class TemplateAnalysisStrategy:
    """Deterministic, jurisdiction-aware analysis with no external calls."""

    async def generate(
        self, document_text: str, profile: CategoryProfile, jurisdiction: str
    ) -> AnalysisResult:
        return build_template(profile.category, jurisdiction)


class AnalysisGenerator(IAnalysisGeneratorProtocol):
    """Dispatches a document to its category strategy with fallback.

    Args:
        ai_strategy: Preferred strategy; None runs templates only.
        fallback_strategy: Strategy used when the AI strategy fails.
    """

    def __init__(
        self,
        ai_strategy: GeminiAnalysisStrategy | None,
        fallback_strategy: TemplateAnalysisStrategy | None = None,
    ) -> None:
        self._ai_strategy = ai_strategy
        self._fallback_strategy = fallback_strategy or TemplateAnalysisStrategy()

    async def generate(
        self,
        document_text: str,
        category: DocumentCategory | str,
        jurisdiction: str,
    ) -> AnalysisResult:
        """Produce an analysis for a document.

        Args:
            document_text: Extracted text of the document.
            category: Category value; unrecognised values yield an error result.
            jurisdiction: Region code of the document owner.

        Returns:
            A well-formed AnalysisResult.

        Raises:
            GenerationUnavailableError: If both strategies fail.
        """
        resolved = resolve_category(category)
        if resolved is None:
            logger.warning("Unrecognised analysis category", category=str(category))
            return AnalysisResult.error(
                f"Analysis is not available for category '{category}'. "
                "Supported categories are forensic, tax and legal."
            )

        profile = profile_for(resolved)

        if self._ai_strategy is not None:
            try:
                result = await self._ai_strategy.generate(document_text, profile, jurisdiction)
                logger.info(
                    "Analysis generated by AI strategy",
                    category=resolved.value,
                    jurisdiction=jurisdiction,
                    paragraphs=len(result.analysis),
                )
                return result
            except Exception as exc:
                logger.warning(
                    "AI analysis failed, using template fallback",
                    category=resolved.value,
                    reason=str(exc),
                )

        try:
            result = await self._fallback_strategy.generate(document_text, profile, jurisdiction)
        except Exception as exc:
            raise GenerationUnavailableError(
                f"No analysis strategy available for category {resolved.value}"
            ) from exc
        logger.info("Analysis generated by template strategy", category=resolved.value, jurisdiction=jurisdiction)
        return result

