"""Tests for normalisation of analysis payloads returned by the model."""

from lexassist.core.results import AnalysisResult, ChatReply, ReasoningStep


class TestAnalysisResultParsing:
    """AnalysisResult.from_payload tolerates the shapes the model produces."""

    def test_missing_fields_default_to_empty(self) -> None:
        result = AnalysisResult.from_payload({})

        assert result.analysis == []
        assert result.recommendations == []
        assert result.references == []
        assert result.foresight.predictions == []
        assert result.foresight.risks == []
        assert result.reasoning_log == []

    def test_non_dict_payload_yields_empty_result(self) -> None:
        result = AnalysisResult.from_payload(["not", "an", "object"])

        assert result.analysis == []

    def test_single_analysis_string_becomes_list(self) -> None:
        result = AnalysisResult.from_payload({"analysis": "One paragraph."})

        assert result.analysis == ["One paragraph."]

    def test_invalid_entries_are_dropped(self) -> None:
        result = AnalysisResult.from_payload(
            {
                "analysis": ["Valid", 3, None, "  "],
                "references": ["Income Tax Act, 1961", {"title": "GST Act", "url": 7}, {"url": "#"}],
            }
        )

        assert result.analysis == ["Valid"]
        assert [reference.title for reference in result.references] == ["Income Tax Act, 1961", "GST Act"]
        assert result.references[1].url is None

    def test_legacy_key_spellings_are_accepted(self) -> None:
        result = AnalysisResult.from_payload(
            {
                "analysis": ["A"],
                "lexIntuition": {"predictions": ["Scrutiny likely by Q3 2025"]},
                "reasoningLog": [{"step": "Classification", "reasoning": "Looked at headings"}],
            }
        )

        assert result.foresight.predictions == ["Scrutiny likely by Q3 2025"]
        assert result.reasoning_log == [ReasoningStep(step="Classification", explanation="Looked at headings")]

    def test_bare_risk_strings_become_titled_items(self) -> None:
        result = AnalysisResult.from_payload(
            {"foresight": {"risks": ["Late filing penalty"], "opportunities": [{"description": "Claim 80C"}]}}
        )

        assert result.foresight.risks[0].title == "Risk Factor"
        assert result.foresight.risks[0].description == "Late filing penalty"
        assert result.foresight.opportunities[0].title == "Opportunity"

    def test_error_result_has_single_paragraph(self) -> None:
        result = AnalysisResult.error("Unsupported category")

        assert result.analysis == ["Unsupported category"]
        assert result.recommendations == []

    def test_to_payload_uses_snake_case_keys(self) -> None:
        payload = AnalysisResult.from_payload({"analysis": "A"}).to_payload()

        assert set(payload) == {"analysis", "recommendations", "references", "foresight", "reasoning_log"}


def test_chat_reply_reasoning_payload_is_json_ready() -> None:
    reply = ChatReply(content="Hi", reasoning_log=[ReasoningStep(step="Intent Detection", explanation="general")])

    assert reply.reasoning_payload() == [{"step": "Intent Detection", "explanation": "general"}]
