"""Tests for category dispatch, JSON recovery and template fallback."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from lexassist.adapters.analysis_generator import (
    AnalysisGenerator,
    GeminiAnalysisStrategy,
    TemplateAnalysisStrategy,
    extract_json_object,
)
from lexassist.adapters.gemini_client import GeminiClient
from lexassist.core.categories import profile_for
from lexassist.core.models import DocumentCategory
from lexassist.errors import GenerationError, GenerationUnavailableError, MalformedResponseError


@pytest.fixture
def mock_client() -> GeminiClient:
    """Provide a mock Gemini client.

    Returns:
        GeminiClient with generate mocked as AsyncMock.
    """
    client = MagicMock(spec=GeminiClient)
    client.generate = AsyncMock()
    client.model = "gemini-test"
    client.is_configured = True
    return client


class TestExtractJsonObject:
    """Recovery of the first JSON object from model output."""

    def test_plain_object(self) -> None:
        assert extract_json_object('{"analysis": ["A"]}') == {"analysis": ["A"]}

    def test_object_inside_code_fence(self) -> None:
        text = 'Here you go:\n```json\n{"analysis": ["A"]}\n```\nThanks.'

        assert extract_json_object(text) == {"analysis": ["A"]}

    def test_object_surrounded_by_prose(self) -> None:
        text = 'Sure! {not json} The result is {"analysis": ["B"], "recommendations": []} as requested.'

        assert extract_json_object(text) == {"analysis": ["B"], "recommendations": []}

    def test_garbage_returns_none(self) -> None:
        assert extract_json_object("I cannot analyze this document, sorry.") is None
        assert extract_json_object("[1, 2, 3]") is None


class TestGeminiAnalysisStrategy:
    """Validation of the model's answer."""

    @pytest.mark.asyncio
    async def test_valid_answer_is_normalised(self, mock_client: GeminiClient) -> None:
        mock_client.generate.return_value = json.dumps(
            {"analysis": "Single paragraph", "reasoning_log": [{"step": "Read", "explanation": "Read it"}]}
        )
        strategy = GeminiAnalysisStrategy(mock_client)

        result = await strategy.generate("text", profile_for(DocumentCategory.TAX), "IN")

        assert result.analysis == ["Single paragraph"]
        assert [step.step for step in result.reasoning_log][:2] == ["AI Analysis", "Jurisdiction-Specific Analysis"]
        assert result.reasoning_log[-1].step == "Read"
        # Missing references are filled from the jurisdiction templates.
        assert result.references[0].title == "Income Tax Act, 1961 (as amended)"

    @pytest.mark.asyncio
    async def test_prompt_embeds_category_jurisdiction_and_text(self, mock_client: GeminiClient) -> None:
        mock_client.generate.return_value = '{"analysis": ["A"]}'
        strategy = GeminiAnalysisStrategy(mock_client)

        await strategy.generate("Clause 7: indemnity", profile_for(DocumentCategory.LEGAL), "USA")

        prompt = mock_client.generate.call_args.args[0]
        assert "legal" in prompt
        assert "USA" in prompt
        assert "Clause 7: indemnity" in prompt
        assert mock_client.generate.call_args.kwargs["response_mime_type"] == "application/json"

    @pytest.mark.asyncio
    async def test_non_json_answer_raises_malformed(self, mock_client: GeminiClient) -> None:
        mock_client.generate.return_value = "%%% garbage %%%"
        strategy = GeminiAnalysisStrategy(mock_client)

        with pytest.raises(MalformedResponseError):
            await strategy.generate("text", profile_for(DocumentCategory.FORENSIC), "USA")

    @pytest.mark.asyncio
    async def test_empty_analysis_raises_malformed(self, mock_client: GeminiClient) -> None:
        mock_client.generate.return_value = '{"analysis": [], "recommendations": ["x"]}'
        strategy = GeminiAnalysisStrategy(mock_client)

        with pytest.raises(MalformedResponseError):
            await strategy.generate("text", profile_for(DocumentCategory.FORENSIC), "USA")


class TestAnalysisGenerator:
    """Dispatch and fallback behaviour."""

    @pytest.mark.asyncio
    async def test_garbage_from_model_falls_back_to_template(self, mock_client: GeminiClient) -> None:
        mock_client.generate.return_value = "<<<not json at all>>>"
        generator = AnalysisGenerator(GeminiAnalysisStrategy(mock_client))

        result = await generator.generate("text", DocumentCategory.FORENSIC, "USA")

        assert result.analysis
        assert result.recommendations
        assert result.foresight.risks
        assert result.reasoning_log[0].step == "Document Classification"

    @pytest.mark.asyncio
    async def test_transport_failure_falls_back_to_template(self, mock_client: GeminiClient) -> None:
        mock_client.generate.side_effect = GenerationError("timeout")
        generator = AnalysisGenerator(GeminiAnalysisStrategy(mock_client))

        result = await generator.generate("text", "tax", "USA")

        assert result.analysis
        assert result.references[0].title == "IRS Publication 535: Business Expenses"

    @pytest.mark.asyncio
    async def test_template_output_is_deterministic(self) -> None:
        generator = AnalysisGenerator(None)

        first = await generator.generate("text", DocumentCategory.LEGAL, "IN")
        second = await generator.generate("other text", DocumentCategory.LEGAL, "IN")

        assert first == second

    @pytest.mark.asyncio
    async def test_template_references_follow_jurisdiction(self) -> None:
        generator = AnalysisGenerator(None)

        indian = await generator.generate("text", DocumentCategory.FORENSIC, "india")
        general = await generator.generate("text", DocumentCategory.FORENSIC, "USA")

        assert "Prevention of Money Laundering Act, 2002" in [ref.title for ref in indian.references]
        assert "AICPA Forensic Accounting Standards" in [ref.title for ref in general.references]

    @pytest.mark.asyncio
    async def test_unrecognised_category_returns_error_result(self) -> None:
        generator = AnalysisGenerator(None)

        result = await generator.generate("text", "invoice", "USA")

        assert len(result.analysis) == 1
        assert "invoice" in result.analysis[0]
        assert result.recommendations == []

    @pytest.mark.asyncio
    async def test_both_strategies_failing_raises_unavailable(self, mock_client: GeminiClient) -> None:
        mock_client.generate.side_effect = GenerationError("down")
        fallback = MagicMock(spec=TemplateAnalysisStrategy)
        fallback.generate = AsyncMock(side_effect=RuntimeError("templates missing"))
        generator = AnalysisGenerator(GeminiAnalysisStrategy(mock_client), fallback)

        with pytest.raises(GenerationUnavailableError):
            await generator.generate("text", DocumentCategory.TAX, "USA")

    @pytest.mark.asyncio
    async def test_unexpected_reply_shape_falls_back_to_template(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": ["blocked"]}))
        async with httpx.AsyncClient(transport=transport) as http_client:
            client = GeminiClient(http_client, api_key="test-key", model="gemini-test")
            generator = AnalysisGenerator(GeminiAnalysisStrategy(client))

            result = await generator.generate("text", DocumentCategory.TAX, "USA")

        assert result == await TemplateAnalysisStrategy().generate("text", profile_for(DocumentCategory.TAX), "USA")

    @pytest.mark.asyncio
    async def test_unexpected_strategy_exception_falls_back_to_template(self, mock_client: GeminiClient) -> None:
        mock_client.generate.side_effect = AttributeError("'str' object has no attribute 'get'")
        generator = AnalysisGenerator(GeminiAnalysisStrategy(mock_client))

        result = await generator.generate("text", DocumentCategory.LEGAL, "USA")

        assert result.analysis
        assert result.reasoning_log[0].step == "Document Classification"
