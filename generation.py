"""
Quiz generation through an LLM.

The model is asked for a bare JSON array of questions. Its reply is treated as
untrusted text: ``parse_quiz_items`` extracts the array, checks every item and
only then is the quiz stored.
"""
import json
import logging
import re
from typing import Any, Dict, List, Sequence

import httpx
from openai import OpenAI, OpenAIError
from pydantic import BaseModel, TypeAdapter, ValidationError

from database import Database, serialize_document, utcnow
from errors import GenerationFormatError, GenerationServiceError
from grading import UNSOLVED
from schemas import Quiz, QuizItem

logger = logging.getLogger(__name__)

MULTIPLE_CHOICE = "Multiple Choice"
TRUE_OR_FALSE = "True or False"

# 60s for the whole request, 10s to connect
DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)

_FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_items_adapter = TypeAdapter(List[QuizItem])


class QuizCriteria(BaseModel):
    topic: str
    difficulty: str
    quantity: int
    quiz_type: str
    user: str


def build_prompt(criteria: QuizCriteria, item_types: Sequence[str]) -> str:
    example = [{
        "type": MULTIPLE_CHOICE,
        "question": "What is the capital of France?",
        "options": ["Berlin", "Paris", "Madrid", "Rome"],
        "answer": "Paris",
    }]
    return (
        f'Generate a {criteria.difficulty} level quiz on "{criteria.topic}" '
        f"with {criteria.quiz_type} questions.\n"
        f"- Number of Questions: {criteria.quantity}\n"
        "- Return ONLY a valid JSON array. No extra text.\n"
        "- Each question must have:\n"
        f'    - "type": one of {" / ".join(item_types)}\n'
        '    - "question": the text of the question\n'
        f'    - "options": array of choices (required for {MULTIPLE_CHOICE}, '
        f'["True", "False"] for {TRUE_OR_FALSE})\n'
        '    - "answer": the correct answer, copied exactly from the options\n'
        f"Example Output:\n{json.dumps(example, indent=2)}\n"
        "Do not include explanations, code blocks, or markdown. Just return raw JSON data."
    )


def extract_json_text(raw: str) -> str:
    match = _FENCED_BLOCK.search(raw)
    return match.group(1).strip() if match else raw.strip()


def parse_quiz_items(raw: str, item_types: Sequence[str]) -> List[Dict[str, Any]]:
    """Validate generator output and return the item list ready for storage."""
    try:
        data = json.loads(extract_json_text(raw or ""))
    except json.JSONDecodeError as e:
        raise GenerationFormatError(f"Invalid JSON format received from AI: {e.msg}") from e

    if not isinstance(data, list) or not data:
        raise GenerationFormatError("AI response is not a non-empty JSON array")
    if not all(isinstance(entry, dict) for entry in data):
        raise GenerationFormatError("Every quiz item must be a JSON object")

    try:
        items = _items_adapter.validate_python(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise GenerationFormatError(f"Invalid quiz item at {location}: {first['msg']}") from e

    allowed = set(item_types)
    for index, item in enumerate(items):
        if item.type not in allowed:
            raise GenerationFormatError(f"Item {index} has unsupported type '{item.type}'")
        if item.type == MULTIPLE_CHOICE and not item.options:
            raise GenerationFormatError(f"Item {index} is multiple choice but has no options")
        if item.options and item.answer not in item.options:
            raise GenerationFormatError(f"Item {index} answer is not one of its options")

    return [item.model_dump(include={"type", "question", "options", "answer"}) for item in items]


class QuizWriter:
    """Thin wrapper over the OpenAI chat completions API."""

    def __init__(self, client: OpenAI, model: str):
        self.client = client
        self.model = model

    @classmethod
    def from_api_key(cls, api_key: str, model: str) -> "QuizWriter":
        return cls(OpenAI(api_key=api_key, timeout=DEFAULT_TIMEOUT), model)

    def write(self, prompt: str) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": "You write quizzes as strict JSON."},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.7,
            )
        except OpenAIError as e:
            raise GenerationServiceError(f"Quiz generation request failed: {e}") from e

        if not response.choices:
            raise GenerationFormatError("AI returned no choices")
        content = response.choices[0].message.content
        if not content:
            raise GenerationFormatError("AI returned an empty response")
        return content

    def close(self) -> None:
        self.client.close()


class QuizService:
    def __init__(self, database: Database, writer, item_types: Sequence[str]):
        self.database = database
        self.writer = writer
        self.item_types = list(item_types)

    def create_quiz(self, criteria: QuizCriteria) -> Dict[str, Any]:
        raw = self.writer.write(build_prompt(criteria, self.item_types))
        items = parse_quiz_items(raw, self.item_types)

        doc = Quiz(
            user=criteria.user,
            topic=criteria.topic,
            difficulty=criteria.difficulty,
            quiz_type=criteria.quiz_type,
            quantity=criteria.quantity,
            quizzes=items,
            status=UNSOLVED,
        ).model_dump(exclude_none=True)
        doc["created_at"] = utcnow()

        result = self.database.quizzes.insert_one(doc)
        logger.info("Stored quiz %s with %d items for %s", result.inserted_id, len(items), criteria.user)
        return serialize_document(doc)
