"""Unit tests for the one-shot document workflows."""

import asyncio

import pytest

from lexaid.workflows.documents import (
    AnalysisWorkflow,
    GenerationWorkflow,
    InputError,
    ResearchWorkflow,
    RiskScore,
    RiskWorkflow,
    WorkflowBusyError,
    generation_parameters,
    jurisdiction_label,
    parse_risk_score,
    risk_level,
    timeframe_label,
)


class TestParseRiskScore:

    @pytest.mark.parametrize("text, expected", [
        ("Overall Risk Score: 7/10", 7),
        ("risk score: 3/10 (moderate)", 3),
        ("RISK SCORE:10/10", 10),
        ("Risk Score: 4 / 10", 4),
    ])
    def test_parses_score(self, text, expected):
        score = parse_risk_score(text)
        assert score.parsed
        assert score.value == expected

    def test_first_match_wins(self):
        assert parse_risk_score("Risk Score: 2/10 ... Risk Score: 9/10").value == 2

    @pytest.mark.parametrize("text", [
        "The document looks balanced.",
        "Risk: 7/10",
        "Risk Score: 15/10",
        "Risk Score: 0/10",
        "",
    ])
    def test_unparsed_is_flagged(self, text):
        score = parse_risk_score(text)
        assert not score.parsed
        assert score.value is None


class TestRiskLevel:

    @pytest.mark.parametrize("value, level", [
        (1, "Low Risk"), (3, "Low Risk"), (4, "Medium Risk"), (7, "Medium Risk"),
        (8, "High Risk"), (10, "High Risk"),
    ])
    def test_levels(self, value, level):
        assert risk_level(RiskScore(value)) == level

    def test_unscored(self):
        assert risk_level(RiskScore()) == "Unscored"


class TestRiskWorkflow:

    def test_stores_parsed_score(self, make_client, nda_text):
        client = make_client(["1. High-risk clauses: none.\nRisk Score: 3/10\n"])
        workflow = RiskWorkflow(client)

        result = asyncio.run(workflow.run(nda_text))

        assert result.ok
        assert result.risk_score == RiskScore(3)
        assert result.risk_level == "Low Risk"
        assert result.filename == "risk_assessment.txt"
        assert nda_text in client.calls[0][0]
        assert workflow.result is result

    def test_missing_score_is_unverified(self, make_client, nda_text):
        workflow = RiskWorkflow(make_client(["No obvious issues."]))
        result = asyncio.run(workflow.run(nda_text))
        assert result.ok
        assert not result.risk_score.parsed
        assert result.risk_level == "Unscored"
        assert "unverified" in result.notification.description

    def test_empty_document_rejected(self, make_client):
        client = make_client()
        with pytest.raises(InputError) as exc:
            asyncio.run(RiskWorkflow(client).run("   "))
        assert exc.value.title == "No document text"
        assert client.calls == []


class TestAnalysisWorkflow:

    def test_success(self, make_client, nda_text):
        workflow = AnalysisWorkflow(make_client(["Document type: NDA"]))
        result = asyncio.run(workflow.run(nda_text))
        assert result.text == "Document type: NDA"
        assert result.notification.title == "Analysis complete"
        assert result.filename == "document_analysis.txt"
        assert result.risk_score is None

    def test_failure_keeps_previous_result(self, make_client, nda_text):
        client = make_client(["first analysis"])
        workflow = AnalysisWorkflow(client)
        first = asyncio.run(workflow.run(nda_text))

        client.fail = True
        failed = asyncio.run(workflow.run(nda_text))

        assert not failed.ok
        assert failed.text == ""
        assert failed.notification.variant == "destructive"
        assert workflow.result is first

    def test_busy_rejected(self, make_client, nda_text):
        client = make_client(["done"])
        workflow = AnalysisWorkflow(client)

        async def scenario():
            client.gate = asyncio.Event()
            first = asyncio.create_task(workflow.run(nda_text))
            await asyncio.sleep(0)
            with pytest.raises(WorkflowBusyError):
                await workflow.run(nda_text)
            client.gate.set()
            return await first

        assert asyncio.run(scenario()).ok
        assert not workflow.busy
        assert len(client.calls) == 1

    def test_generated_text_stored_verbatim(self, make_client):
        drafted = "Signature: ________\nDate: __/__/____\nSection 2 \u2014 \u201cTerm\u201d"
        workflow = GenerationWorkflow(make_client([drafted]))
        result = asyncio.run(workflow.run("custom", {"requirements": "A simple lease"}))
        assert result.text == drafted
        assert workflow.result.text == drafted

    def test_analysis_text_stored_verbatim(self, make_client, nda_text):
        workflow = AnalysisWorkflow(make_client(["**Parties**: A and B"]))
        assert asyncio.run(workflow.run(nda_text)).text == "**Parties**: A and B"


class TestGenerationParameters:

    def test_nda(self):
        label, params = generation_parameters("nda", {
            "disclosingParty": "Acme", "receivingParty": "Beta", "purpose": "Evaluation",
        })
        assert label == "Non-Disclosure Agreement"
        assert params["duration"] == "2 years"
        assert list(params) == ["disclosingParty", "receivingParty", "purpose", "duration", "governingLaw"]

    def test_employment_salary_prefixed(self):
        _, params = generation_parameters("employment", {
            "employer": "Acme", "employee": "Ravi", "position": "Counsel",
        })
        assert params["salary"] == "$50000"

    @pytest.mark.parametrize("doc_type, fields", [
        ("nda", {"disclosingParty": "Acme"}),
        ("employment", {"employer": "Acme", "employee": "Ravi", "position": " "}),
        ("service", {"serviceProvider": "Acme", "client": "Beta"}),
    ])
    def test_missing_required(self, doc_type, fields):
        with pytest.raises(InputError) as exc:
            generation_parameters(doc_type, fields)
        assert exc.value.description == "Please fill in all required fields."

    def test_custom_requires_requirements(self):
        with pytest.raises(InputError) as exc:
            generation_parameters("custom", {"requirements": ""})
        assert exc.value.description == "Please describe your document requirements."

    def test_unknown_type(self):
        with pytest.raises(InputError):
            generation_parameters("lease", {})


class TestGenerationWorkflow:

    def test_prompt_and_filename(self, make_client):
        client = make_client(["SERVICE AGREEMENT ..."])
        workflow = GenerationWorkflow(client)
        result = asyncio.run(workflow.run("service", {
            "serviceProvider": "Acme", "client": "Beta", "services": "Hosting",
        }))
        assert result.filename == "service_document.txt"
        prompt = client.calls[0][0]
        assert "professional Service Agreement" in prompt
        assert "services: Hosting" in prompt


class TestResearch:

    @pytest.mark.parametrize("code, state, label", [
        ("india", "Telangana", "India (Telangana)"),
        ("us-state", "Texas", "United States (Texas)"),
        ("uk", "", "United Kingdom"),
        ("mars", "", "mars"),
    ])
    def test_jurisdiction_label(self, code, state, label):
        assert jurisdiction_label(code, state) == label

    def test_timeframe_label(self):
        assert timeframe_label("10") == "Last 10 Years"
        assert timeframe_label("all") == "All Time"
        assert timeframe_label("3") == "3"

    def test_run(self, make_client):
        client = make_client(["Case A v. B"])
        result = asyncio.run(ResearchWorkflow(client).run(
            "breach of NDA", jurisdiction="india", state="Delhi", timeframe="5"
        ))
        assert result.filename == "legal_research.txt"
        prompt = client.calls[0][0]
        assert '"breach of NDA"' in prompt
        assert "Jurisdiction: India (Delhi)" in prompt
        assert "Timeframe: Last 5 Years" in prompt

    def test_empty_query(self, make_client):
        with pytest.raises(InputError) as exc:
            asyncio.run(ResearchWorkflow(make_client()).run(""))
        assert exc.value.title == "Missing query"
