"""Prompt templates for the legal assistant.

Each builder is a pure function from form values to prompt text, so the
templates can be checked without a backend.
"""

PLAIN_TEXT_RULES = """Generate the response without any bold or special characters.
Use only characters supported by a normal text editor like notepad.
Avoid special characters, smart quotes, em-dashes, or any other characters that might not display correctly in basic text editors."""

CHAT_SYSTEM_PROMPT = """You are an expert legal AI assistant specialized in contract law, compliance, and regulations.

Provide a helpful, accurate response about the legal query. If you're unsure, state clearly what you don't know.
If the question is about specific jurisdiction laws that you're not confident about, indicate that limitation.
Provide information based on the Indian constitution only.

{rules}"""

ANALYSIS_TEMPLATE = """You are an expert legal AI assistant. Analyze the following legal document:

{document}

Provide a comprehensive analysis including:
1. Document type and purpose
2. Key parties involved
3. Main clauses and their implications
4. Summary of rights and obligations
5. Important dates and deadlines

Format your response in a well-structured manner with markdown headings.
{rules}"""

RISK_TEMPLATE = """You are an expert legal AI assistant. Conduct a thorough risk assessment of the following legal document:

{document}

Provide:
1. Identification of high-risk clauses (with clause number/reference)
2. Missing important clauses or protections
3. Ambiguous or vague language that could create legal uncertainties
4. Compliance issues with common regulations
5. Overall risk score (1-10, where 10 is highest risk), written exactly as "Risk Score: N/10"
6. Specific recommendations to mitigate identified risks

Format your response in a well-structured manner with markdown headings.
{rules}"""

GENERATION_TEMPLATE = """You are an expert legal document generator. Create a professional {document_type} with the following parameters:

{parameters}

The document should:
1. Follow standard legal formatting and structure
2. Include all necessary clauses for this type of agreement
3. Be compliant with common legal requirements
4. Use clear, precise legal language
5. Include proper signature blocks and date fields

Format your response in a well-structured manner with markdown headings.
{rules}"""

RESEARCH_TEMPLATE = """You are an expert legal research assistant. The user is looking for legal precedents and case law related to:

"{query}"

Jurisdiction: {jurisdiction}
Timeframe: {timeframe}

Provide:
1. Most relevant case names and citations (at least 3-5 if available)
2. Brief summary of each case's ruling and significance
3. How these precedents might apply to similar situations
4. Any conflicting rulings or jurisdictional differences
Provide information based on the Indian constitution only.

Format your response in a well-structured manner with markdown.
{rules}"""


def build_chat_system_prompt() -> str:
    """System instruction for the conversational assistant."""
    return CHAT_SYSTEM_PROMPT.format(rules=PLAIN_TEXT_RULES)


def build_analysis_prompt(document_text: str) -> str:
    return ANALYSIS_TEMPLATE.format(document=document_text, rules=PLAIN_TEXT_RULES)


def build_risk_prompt(document_text: str) -> str:
    return RISK_TEMPLATE.format(document=document_text, rules=PLAIN_TEXT_RULES)


def build_generation_prompt(document_type: str, parameters: dict[str, str]) -> str:
    """Build the drafting prompt.

    Args:
        document_type: Human label, e.g. "Non-Disclosure Agreement".
        parameters: Ordered field name -> value pairs, rendered one per line.

    Returns:
        Formatted prompt string.
    """
    lines = "\n".join(f"{key}: {value}" for key, value in parameters.items())
    return GENERATION_TEMPLATE.format(
        document_type=document_type, parameters=lines, rules=PLAIN_TEXT_RULES
    )


def build_research_prompt(query: str, jurisdiction: str, timeframe: str) -> str:
    return RESEARCH_TEMPLATE.format(
        query=query, jurisdiction=jurisdiction, timeframe=timeframe, rules=PLAIN_TEXT_RULES
    )
