import sys
import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from openai import AsyncOpenAI, OpenAIError

from app.core.config import settings
from app.core.errors import CategorizationError

# Logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    stream=sys.stdout,
    force=True,
)
logger = logging.getLogger(__name__)

MAX_OUTPUT_TOKENS = 200
SHORT_PROMPT_CONTENT_CHARS = 1000
CORRECTION_SNIPPET_CHARS = 50

CATEGORIZATION_SCHEMA = {
    "name": "categorization",
    "strict": True,
    "schema": {
        "type": "object",
        "properties": {
            "category": {"type": "string"},
            "confidence": {"type": "number"},
            "reasoning": {"type": "string"},
            "alternatives": {"type": "array", "items": {"type": "string"}},
        },
        "required": ["category", "confidence", "reasoning", "alternatives"],
        "additionalProperties": False,
    },
}

_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=settings.OPENAI_API_KEY, max_retries=0)
    return _client


@dataclass
class UserCorrection:
    original_content: str
    suggested_folder: str
    accepted_folder: str


@dataclass
class ContentAnalysis:
    """What the model sees: text or an image, plus the user's folder context."""

    content: str = ""
    image_data_url: Optional[str] = None
    existing_folders: List[str] = field(default_factory=list)
    user_corrections: List[UserCorrection] = field(default_factory=list)


@dataclass
class CategorizationResult:
    suggested_folder: str
    confidence: float
    reasoning: str
    alternatives: List[str]


def build_categorization_prompt(analysis: ContentAnalysis, short: bool = False) -> str:
    """
    Build the user prompt. The short variant drops folder and correction
    context and clips the content, for the retry after an empty or
    truncated answer.
    """
    if analysis.image_data_url:
        subject = "Content to categorize: the attached image."
    else:
        content = analysis.content
        if short:
            content = content[:SHORT_PROMPT_CONTENT_CHARS]
        subject = f'Content to categorize: "{content}"'

    prompt = (
        "Analyze this content and suggest the most appropriate category/folder "
        f"name for organizing it.\n\n{subject}\n\n"
    )

    if not short and analysis.existing_folders:
        prompt += (
            "Refer these existing categories/folders for more context: "
            f"{', '.join(analysis.existing_folders)}\n\n"
        )

    if not short and analysis.user_corrections:
        lines = [
            f'"{c.original_content[:CORRECTION_SNIPPET_CHARS]}..." -> suggested: '
            f'"{c.suggested_folder}" -> user chose: "{c.accepted_folder}"'
            for c in analysis.user_corrections
        ]
        prompt += "User's past corrections (learn from these patterns):\n" + "\n".join(lines) + "\n\n"

    prompt += (
        "Return ONLY a compact JSON object with exactly these keys and types:\n"
        '{"category": string, "confidence": number between 0 and 1, '
        '"reasoning": string, "alternatives": string[]}\n'
        "No extra text, no code fences."
    )
    return prompt


def parse_categorization_response(text: str) -> CategorizationResult:
    """Strictly validate the model's JSON answer."""
    raw = text.strip()
    if raw.startswith("```"):
        raw = raw[raw.find("{") : raw.rfind("}") + 1]  # grab only inner JSON
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CategorizationError(f"Model response is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise CategorizationError("Response is not a JSON object")

    category = data.get("category")
    confidence = data.get("confidence")
    reasoning = data.get("reasoning")
    alternatives = data.get("alternatives")

    if not isinstance(category, str) or not category.strip():
        raise CategorizationError("Invalid category")
    if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
        raise CategorizationError("Invalid confidence")
    if not 0 <= confidence <= 1:
        raise CategorizationError("Invalid confidence")
    if not isinstance(reasoning, str):
        raise CategorizationError("Invalid reasoning")
    if alternatives is not None and not isinstance(alternatives, list):
        raise CategorizationError("Invalid alternatives")

    return CategorizationResult(
        suggested_folder=category.strip(),
        confidence=float(confidence),
        reasoning=reasoning,
        alternatives=[a for a in (alternatives or []) if isinstance(a, str)],
    )


def _build_messages(analysis: ContentAnalysis, short: bool) -> list:
    prompt = build_categorization_prompt(analysis, short=short)
    if analysis.image_data_url:
        user_content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": analysis.image_data_url}},
        ]
    else:
        user_content = prompt
    return [
        {
            "role": "system",
            "content": "You organize a user's notes and images into folders.",
        },
        {"role": "user", "content": user_content},
    ]


async def _request_categorization(analysis: ContentAnalysis, short: bool) -> tuple[str, Optional[str]]:
    try:
        completion = await get_client().chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=_build_messages(analysis, short),
            temperature=0.3,
            top_p=0.95,
            max_tokens=MAX_OUTPUT_TOKENS,
            response_format={"type": "json_schema", "json_schema": CATEGORIZATION_SCHEMA},
        )
    except OpenAIError as e:
        logger.error(f"Categorization request failed: {e}", exc_info=True)
        raise CategorizationError(f"Model request failed: {e}")

    if not completion.choices:
        raise CategorizationError("Model returned no choices")
    choice = completion.choices[0]
    return str(choice.message.content or ""), choice.finish_reason


async def categorize_content(analysis: ContentAnalysis) -> CategorizationResult:
    """
    Ask the model for a folder name.

    An empty answer, or one cut off by the token limit, is retried once with
    the short prompt. Anything else that does not parse fails the call.
    """
    text, finish = await _request_categorization(analysis, short=False)
    logger.debug(f"Model raw response preview: {text[:500]!r} finish={finish}")

    if not text.strip() or finish == "length":
        logger.warning(f"Empty or truncated model response (finish={finish}), retrying with short prompt")
        text, finish = await _request_categorization(analysis, short=True)
        if not text.strip():
            raise CategorizationError(f"Empty response from model. finishReason={finish}")

    return parse_categorization_response(text)
