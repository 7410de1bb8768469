"""One-shot document workflows: analysis, risk, generation, research.

Each workflow validates its form fields, sends a single templated prompt and
keeps the latest successful result. A workflow runs one request at a time.
"""

import re
from dataclasses import dataclass, field
from typing import Callable

import structlog

from lexaid.api.schemas import Notification
from lexaid.core.llm_adapter import CompletionClient
from lexaid.workflows.prompts import (
    build_analysis_prompt,
    build_generation_prompt,
    build_research_prompt,
    build_risk_prompt,
)

logger = structlog.get_logger(__name__)


class InputError(ValueError):
    """A required field is empty. No request is sent."""

    def __init__(self, description: str, title: str = "Missing information"):
        super().__init__(description)
        self.title = title
        self.description = description


class WorkflowBusyError(RuntimeError):
    """The workflow already has a request in flight."""


@dataclass(frozen=True)
class RiskScore:
    """Risk score pulled from a response.

    `value` is None and `parsed` False when the response had no
    "Risk Score: N/10" line; no substitute number is ever made up.
    """
    value: int | None = None

    @property
    def parsed(self) -> bool:
        return self.value is not None


_RISK_SCORE_PATTERN = re.compile(r"Risk Score:\s*(\d+)\s*/\s*10", re.IGNORECASE)


def parse_risk_score(text: str) -> RiskScore:
    """Extract the first "Risk Score: N/10" (case-insensitive) with 1 <= N <= 10."""
    match = _RISK_SCORE_PATTERN.search(text or "")
    if match:
        value = int(match.group(1))
        if 1 <= value <= 10:
            return RiskScore(value)
        logger.warning("risk.score_out_of_range", value=value)
        return RiskScore()

    logger.warning("risk.score_unparsed", text_len=len(text or ""))
    return RiskScore()


def risk_level(score: RiskScore) -> str:
    if not score.parsed:
        return "Unscored"
    if score.value <= 3:
        return "Low Risk"
    if score.value <= 7:
        return "Medium Risk"
    return "High Risk"


@dataclass
class WorkflowResult:
    """Outcome of one workflow run."""
    text: str
    ok: bool
    filename: str
    notification: Notification
    risk_score: RiskScore | None = None
    risk_level: str | None = None


class DocumentWorkflow:
    """Shared request lifecycle for the one-shot workflows."""

    name = "document"
    filename = "document.txt"
    success = Notification(title="Done", description="Your request completed successfully.")
    failure = Notification(
        title="Error", description="There was an error processing your request. Please try again.",
        variant="destructive",
    )

    def __init__(self, client: CompletionClient):
        self.client = client
        self.result: WorkflowResult | None = None
        self._running = False

    @property
    def busy(self) -> bool:
        return self._running

    def _finalize(self, text: str) -> WorkflowResult:
        return WorkflowResult(text=text, ok=True, filename=self.filename, notification=self.success)

    async def _execute(self, prompt: str) -> WorkflowResult:
        if self._running:
            logger.info("workflow.rejected_busy", workflow=self.name)
            raise WorkflowBusyError(f"{self.name} workflow is already running")

        logger.info("workflow.start", workflow=self.name, prompt_len=len(prompt))
        self._running = True
        try:
            completion = await self.client.acomplete(prompt)
        finally:
            self._running = False

        if not completion.ok:
            logger.error("workflow.backend_failed", workflow=self.name,
                         kind=completion.error.kind, error=completion.error.detail)
            return WorkflowResult(text="", ok=False, filename=self.filename, notification=self.failure)

        text = completion.text
        self.result = self._finalize(text)
        logger.info("workflow.complete", workflow=self.name, result_len=len(text))
        return self.result


def _require_document(document_text: str, verb: str) -> str:
    if not document_text or not document_text.strip():
        raise InputError(f"Please upload a document or enter text to {verb}.", title="No document text")
    return document_text


class AnalysisWorkflow(DocumentWorkflow):
    name = "analysis"
    filename = "document_analysis.txt"
    success = Notification(title="Analysis complete",
                           description="Your document has been analyzed successfully.")
    failure = Notification(title="Error analyzing document",
                           description="There was an error analyzing your document. Please try again.",
                           variant="destructive")

    async def run(self, document_text: str) -> WorkflowResult:
        return await self._execute(build_analysis_prompt(_require_document(document_text, "analyze")))


class RiskWorkflow(DocumentWorkflow):
    name = "risk"
    filename = "risk_assessment.txt"
    success = Notification(title="Risk assessment complete",
                           description="Your document has been analyzed for potential risks.")
    failure = Notification(title="Error assessing risks",
                           description="There was an error analyzing your document. Please try again.",
                           variant="destructive")

    def _finalize(self, text: str) -> WorkflowResult:
        score = parse_risk_score(text)
        result = super()._finalize(text)
        result.risk_score = score
        result.risk_level = risk_level(score)
        if not score.parsed:
            result.notification = Notification(
                title="Risk assessment complete",
                description="No risk score was found in the assessment; the score is unverified.",
            )
        return result

    async def run(self, document_text: str) -> WorkflowResult:
        return await self._execute(build_risk_prompt(_require_document(document_text, "assess")))


@dataclass(frozen=True)
class DocumentType:
    """A generator form: label, required fields and parameter mapping."""
    label: str
    required: tuple[str, ...]
    parameters: Callable[[dict[str, str]], dict[str, str]]
    missing_message: str = "Please fill in all required fields."
    defaults: dict[str, str] = field(default_factory=dict)


DOCUMENT_TYPES: dict[str, DocumentType] = {
    "nda": DocumentType(
        label="Non-Disclosure Agreement",
        required=("disclosingParty", "receivingParty"),
        defaults={"duration": "2"},
        parameters=lambda f: {
            "disclosingParty": f["disclosingParty"],
            "receivingParty": f["receivingParty"],
            "purpose": f.get("purpose", ""),
            "duration": f"{f['duration']} years",
            "governingLaw": f.get("governingLaw", ""),
        },
    ),
    "employment": DocumentType(
        label="Employment Contract",
        required=("employer", "employee", "position"),
        defaults={"salary": "50000"},
        parameters=lambda f: {
            "employer": f["employer"],
            "employee": f["employee"],
            "position": f["position"],
            "startDate": f.get("startDate", ""),
            "salary": "$" + f["salary"],
            "benefits": f.get("benefits", ""),
        },
    ),
    "service": DocumentType(
        label="Service Agreement",
        required=("serviceProvider", "client", "services"),
        parameters=lambda f: {
            "serviceProvider": f["serviceProvider"],
            "client": f["client"],
            "services": f["services"],
            "paymentTerms": f.get("paymentTerms", ""),
            "startDate": f.get("startDate", ""),
            "endDate": f.get("endDate", ""),
        },
    ),
    "custom": DocumentType(
        label="Custom Document",
        required=("requirements",),
        missing_message="Please describe your document requirements.",
        parameters=lambda f: {"requirements": f["requirements"]},
    ),
}


def generation_parameters(document_type: str, fields: dict[str, str]) -> tuple[str, dict[str, str]]:
    """Validate generator form values and map them to prompt parameters.

    Args:
        document_type: Key of DOCUMENT_TYPES.
        fields: Raw form values (camelCase keys as used by the form).

    Returns:
        Tuple of (document label, ordered parameters).

    Raises:
        InputError: If the type is unknown or a required field is blank.
    """
    doc_type = DOCUMENT_TYPES.get(document_type)
    if doc_type is None:
        raise InputError(f"Unknown document type: {document_type}")

    values = {**doc_type.defaults, **{k: v for k, v in fields.items() if v is not None}}
    if any(not values.get(name, "").strip() for name in doc_type.required):
        raise InputError(doc_type.missing_message)
    return doc_type.label, doc_type.parameters(values)


class GenerationWorkflow(DocumentWorkflow):
    name = "generation"
    success = Notification(title="Document generated",
                           description="Your legal document has been generated successfully.")
    failure = Notification(title="Error generating document",
                           description="There was an error generating your document. Please try again.",
                           variant="destructive")

    async def run(self, document_type: str, fields: dict[str, str]) -> WorkflowResult:
        label, parameters = generation_parameters(document_type, fields)
        self.filename = f"{document_type}_document.txt"
        return await self._execute(build_generation_prompt(label, parameters))


JURISDICTIONS = {
    "us-federal": "United States (Federal)",
    "us-state": "United States ({state})",
    "eu": "European Union",
    "uk": "United Kingdom",
    "canada": "Canada",
    "australia": "Australia",
    "international": "International Law",
    "india": "India ({state})",
}

TIMEFRAMES = {
    "all": "All Time",
    "5": "Last 5 Years",
    "10": "Last 10 Years",
    "20": "Last 20 Years",
}


def jurisdiction_label(jurisdiction: str, state: str = "") -> str:
    """Display name for a jurisdiction code; unknown codes pass through."""
    template = JURISDICTIONS.get(jurisdiction)
    if template is None:
        return jurisdiction
    return template.format(state=state)


def timeframe_label(timeframe: str) -> str:
    return TIMEFRAMES.get(timeframe, timeframe)


class ResearchWorkflow(DocumentWorkflow):
    name = "research"
    filename = "legal_research.txt"
    success = Notification(title="Research complete",
                           description="Legal precedents have been found for your query.")
    failure = Notification(title="Error researching precedents",
                           description="There was an error processing your query. Please try again.",
                           variant="destructive")

    async def run(
        self, query: str, jurisdiction: str = "india", state: str = "", timeframe: str = "all"
    ) -> WorkflowResult:
        if not query or not query.strip():
            raise InputError("Please enter a research query.", title="Missing query")
        prompt = build_research_prompt(
            query.strip(), jurisdiction_label(jurisdiction, state), timeframe_label(timeframe)
        )
        return await self._execute(prompt)
