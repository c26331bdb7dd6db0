"""Prompt templates for correction requests."""

from __future__ import annotations

from redline.core.types import Messages
from redline.models.correction import CorrectionStyle, Language

LANGUAGE_NAMES: dict[Language, str] = {
    Language.EN: "English",
    Language.RU: "Russian",
    Language.ES: "Spanish",
    Language.DE: "German",
    Language.FR: "French",
    Language.JA: "Japanese",
}

SYSTEM_PROMPT = """Role: You are a high-precision {language} Linguistic Transformation Engine.
Task: Process user text for grammatical correctness and stylistic alignment.
Operational Rules:
1. PRESERVE INTENT: Do not add, change, or remove factual data, names, or the core message.
2. POLISH: If text is high-quality, perform subtle refinements to improve naturalness and flow.
3. CONSTRAINTS: Avoid unnecessary verbosity or creative rewriting. Keep the original length within 20%.
4. LANGUAGE: Answer in {language}. Never translate the text into another language.
5. OUTPUT: Return ONLY valid JSON. No commentary, no markdown code fences, no introductory text.
6. JSON FORMATTING: Escape all strings properly. No literal newlines inside string values; use \\n.
7. FIELD NAMES: Use lowercase "corrected" for the improved text and lowercase "explanation" for the list of improvements.

JSON Schema (STRICTLY FOLLOW):
{
  "corrected": "string (the improved text, newlines escaped as \\n)",
  "explanation": ["string (brief, objective change description 1)", "string (change 2)", "..."]
}"""

USER_TEMPLATE = """### Task
Refine the text provided below.

### Style Instruction
Apply the following style guideline: {style}

### Constraints
1. Read the input carefully to understand its grammatical and logical structure.
2. Fix all errors in spelling, punctuation, and syntax.
3. Adjust tone and vocabulary to the requested style while staying faithful to the original intent.
4. List only concrete, real improvements in the explanation array.

### Input Text
\"\"\"
{text}
\"\"\"

### Response (JSON Only)"""

STYLE_INSTRUCTIONS: dict[CorrectionStyle, str] = {
    CorrectionStyle.FORMAL: (
        "Use a formal, authoritative tone. Avoid all contractions. "
        "Prefer precise and neutral professional wording."
    ),
    CorrectionStyle.STANDARD: (
        "Use a neutral, natural tone. Focus on grammatical correctness and professional "
        "clarity without changing the original voice."
    ),
    CorrectionStyle.SIMPLE: (
        "Prioritize readability. Use short sentences and simple vocabulary. "
        "Break long sentences into multiple shorter ones."
    ),
    CorrectionStyle.ACADEMIC: (
        'Use a formal academic tone. Incorporate hedging (e.g., "suggests", "indicates") '
        "and discipline-specific terminology. Avoid personal pronouns."
    ),
    CorrectionStyle.CASUAL: (
        "Use a friendly, conversational tone. Contractions are encouraged. Keep the text "
        "natural and relaxed, suitable for communication with a colleague."
    ),
}


def build_messages(text: str, style: CorrectionStyle, language: Language) -> Messages:
    """Build the chat messages for one correction request."""
    language_name = LANGUAGE_NAMES[Language(language)]
    # str.replace keeps the JSON braces in the templates literal.
    system = SYSTEM_PROMPT.replace("{language}", language_name)
    user = USER_TEMPLATE.replace("{style}", STYLE_INSTRUCTIONS[CorrectionStyle(style)]).replace(
        "{text}", text
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]
