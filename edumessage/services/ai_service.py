"""Question analysis backed by Google Gemini.

Every prompt asks the model for a single JSON object. The first ``{...}``
block in the reply is parsed; when the model call or the parse fails, a
fallback object with the same keys is returned so the UI always has
something to render. A missing API key is the one failure that raises.
"""

import json
import logging
import re

import google.generativeai as genai

from edumessage.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "General"
DEFAULT_LEVEL = "intermediate"

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


class AIServiceError(Exception):
    """Raised when the AI backend cannot be used at all."""


# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

CATEGORIZE_PROMPT = """
Analyze the following student question and classify it.

Question: "{question}"
Subject: {subject}

Pick exactly one category and explain why:
1. concept - understanding a basic concept
2. problem_solving - a specific problem or task
3. practice - labs, exercises or hands-on work
4. advanced - material beyond the current lesson
5. exam_prep - tests and assessment
6. guidance - study direction or careers
7. other - none of the above

Respond with JSON only:
{{
  "category": "chosen category",
  "confidence": 0.85,
  "reasoning": "why this category fits",
  "keywords": ["keyword1", "keyword2", "keyword3"]
}}
"""

FOLLOW_UP_PROMPT = """
A student asked the question below. Suggest follow-up questions a teacher
could ask in return.

Original question: "{question}"
Subject: {subject}
Learner level: {level}

Include two comprehension checks, two questions that push deeper thinking
and one practical application question.

Respond with JSON only:
{{
  "understanding_check": ["question 1", "question 2"],
  "deeper_thinking": ["question 1", "question 2"],
  "practical_application": ["question"],
  "explanation": "how these questions help the student learn"
}}
"""

PATTERN_PROMPT = """
Analyze the patterns in the following student questions.

Questions:
{questions}

Subject: {subject}
Period: {time_range}

Cover the main topics of interest, where students struggle, their overall
level of understanding and how teaching could improve.

Respond with JSON only:
{{
  "main_topics": ["topic1", "topic2", "topic3"],
  "difficulty_areas": ["area1", "area2"],
  "comprehension_level": "beginner/intermediate/advanced",
  "learning_gaps": ["gap1", "gap2"],
  "teaching_suggestions": ["suggestion1", "suggestion2", "suggestion3"],
  "additional_resources": ["resource1", "resource2"]
}}
"""

ANSWER_PROMPT = """
Draft a teacher's answer to the student question below.

Question: "{question}"
Subject: {subject}
Learner level: {level}
Context: {context}

Give a clear explanation, concrete examples or analogies, links to related
concepts and material for further study.

Respond with JSON only:
{{
  "main_answer": "the answer",
  "examples": ["example1", "example2"],
  "analogies": "an analogy that helps understanding",
  "related_concepts": ["concept1", "concept2"],
  "additional_resources": ["resource1", "resource2"],
  "follow_up_activities": ["activity1", "activity2"]
}}
"""


# ---------------------------------------------------------------------------
# Fallbacks
# ---------------------------------------------------------------------------

def categorize_fallback() -> dict:
    return {
        "category": "other",
        "confidence": 0.5,
        "reasoning": "The question could not be analyzed.",
        "keywords": [],
    }


def follow_up_fallback() -> dict:
    return {
        "understanding_check": ["Is there anything about this concept you are still unsure of?"],
        "deeper_thinking": ["How could you apply this in everyday life?"],
        "practical_application": ["What was hardest when you tried it yourself?"],
        "explanation": "Follow-up questions could not be generated.",
    }


def pattern_fallback() -> dict:
    return {
        "main_topics": ["Analysis failed"],
        "difficulty_areas": ["Analysis failed"],
        "comprehension_level": "intermediate",
        "learning_gaps": ["Analysis failed"],
        "teaching_suggestions": ["Please run the analysis again."],
        "additional_resources": [],
    }


def empty_pattern_analysis() -> dict:
    """Result used when there are no questions to analyze."""
    return {
        "main_topics": [],
        "difficulty_areas": [],
        "comprehension_level": "no data",
        "learning_gaps": [],
        "teaching_suggestions": ["There are no questions to analyze yet."],
        "additional_resources": [],
    }


def answer_fallback() -> dict:
    return {
        "main_answer": "An answer draft could not be generated.",
        "examples": [],
        "analogies": "",
        "related_concepts": [],
        "additional_resources": [],
        "follow_up_activities": [],
    }


# ---------------------------------------------------------------------------
# Model access
# ---------------------------------------------------------------------------

def _get_model():
    if not settings.gemini_api_key:
        raise AIServiceError("GEMINI_API_KEY is not configured")
    genai.configure(api_key=settings.gemini_api_key)
    return genai.GenerativeModel(settings.gemini_model)


def extract_json(text: str) -> dict:
    """Parse the first {...} block of a model reply."""
    match = _JSON_BLOCK.search(text or "")
    if not match:
        raise ValueError("Invalid response format")
    data = json.loads(match.group(0))
    if not isinstance(data, dict):
        raise ValueError("Invalid response format")
    return data


async def _generate(prompt: str, fallback, label: str) -> dict:
    model = _get_model()
    try:
        response = await model.generate_content_async(prompt)
        return extract_json(response.text)
    except Exception as e:
        logger.error(f"Gemini {label} failed: {e}")
        return fallback()


# ---------------------------------------------------------------------------
# Public functions
# ---------------------------------------------------------------------------

async def categorize_question(question: str, subject: str | None = None) -> dict:
    prompt = CATEGORIZE_PROMPT.format(question=question, subject=subject or DEFAULT_SUBJECT)
    return await _generate(prompt, categorize_fallback, "categorization")


async def generate_follow_up_questions(
    question: str, subject: str | None = None, level: str | None = None,
) -> dict:
    prompt = FOLLOW_UP_PROMPT.format(
        question=question,
        subject=subject or DEFAULT_SUBJECT,
        level=level or DEFAULT_LEVEL,
    )
    return await _generate(prompt, follow_up_fallback, "follow-up generation")


async def analyze_question_patterns(
    questions: list[dict], subject: str | None, time_range: str,
) -> dict:
    """questions: [{"question": str, "created_at": str}], newest first."""
    lines = "\n".join(
        f"{i}. {q['question']} ({q['created_at']})" for i, q in enumerate(questions, start=1)
    )
    prompt = PATTERN_PROMPT.format(
        questions=lines, subject=subject or DEFAULT_SUBJECT, time_range=time_range,
    )
    return await _generate(prompt, pattern_fallback, "pattern analysis")


async def generate_answer_suggestions(
    question: str, subject: str | None = None, level: str | None = None, context: str | None = None,
) -> dict:
    prompt = ANSWER_PROMPT.format(
        question=question,
        subject=subject or DEFAULT_SUBJECT,
        level=level or DEFAULT_LEVEL,
        context=context or "",
    )
    return await _generate(prompt, answer_fallback, "answer suggestion")
