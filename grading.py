"""
Answer grading and quiz statistics.
"""
import logging
from typing import Any, Dict, List

from pymongo import ReturnDocument

from database import Database, parse_object_id, serialize_document, serialize_documents, utcnow
from errors import NotFoundError
from schemas import SubmittedAnswer, normalize_email

logger = logging.getLogger(__name__)

CORRECT = "correct"
WRONG = "wrong"
SOLVED = "solved"
UNSOLVED = "unsolved"


class QuizGrader:
    def __init__(self, database: Database):
        self.database = database

    def _find(self, quiz_id: str) -> Dict[str, Any]:
        oid = parse_object_id(quiz_id)
        quiz = self.database.quizzes.find_one({"_id": oid}) if oid else None
        if not quiz:
            raise NotFoundError("Quiz not found")
        return quiz

    def get_quiz(self, quiz_id: str) -> Dict[str, Any]:
        return serialize_document(self._find(quiz_id))

    def grade(self, quiz_id: str, answers: List[SubmittedAnswer]) -> Dict[str, Any]:
        """
        Grade a submission position by position.

        Item i is correct only when answers[i] names the same question and
        gives the stored answer. Unanswered items count as wrong and surplus
        answers are ignored. A new submission overwrites earlier grading.
        """
        quiz = self._find(quiz_id)
        items = quiz.get("quizzes", [])

        updates = {}
        correct = 0
        for i, item in enumerate(items):
            submitted = answers[i] if i < len(answers) else None
            user_answer = submitted.user_answer if submitted else None
            is_correct = (
                submitted is not None
                and submitted.question == item.get("question")
                and user_answer == item.get("answer")
            )
            if is_correct:
                correct += 1
            updates[f"quizzes.{i}.user_answer"] = user_answer
            updates[f"quizzes.{i}.outcome"] = CORRECT if is_correct else WRONG

        incorrect = len(items) - correct
        updates.update(
            correct_count=correct,
            incorrect_count=incorrect,
            status=SOLVED,
            solved_at=utcnow(),
        )

        # One $set for the whole submission keeps the document consistent
        # when two submissions for the same quiz race.
        updated = self.database.quizzes.find_one_and_update(
            {"_id": quiz["_id"]},
            {"$set": updates},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFoundError("Quiz not found")

        logger.info("Graded quiz %s: %d/%d correct", quiz["_id"], correct, len(items))
        return {
            "quiz": serialize_document(updated),
            "correct": correct,
            "incorrect": incorrect,
        }


def format_percent(correct: int, possible: int) -> str:
    if possible <= 0:
        return "0%"
    return f"{(100 * correct) // possible}%"


class StatsService:
    def __init__(self, database: Database):
        self.database = database

    def user_stats(self, email: str) -> Dict[str, Any]:
        email = normalize_email(email)
        quizzes =list(self.database.quizzes.find({"user": email}))
        solved = list(self.database.quizzes.find({"user": email, "status": SOLVED}))

        total_correct = sum(q.get("correct_count") or 0 for q in solved)
        total_questions = sum(len(q.get("quizzes") or []) for q in solved)

        return {
            "total_quizzes": len(quizzes),
            "solved_quizzes": len(solved),
            "total_correct": total_correct,
            "total_questions": total_questions,
            "average": format_percent(total_correct, total_questions),
            "quizzes": serialize_documents(quizzes),
            "solved": serialize_documents(solved),
        }

    def admin_stats(self) -> Dict[str, Any]:
        return {
            "users": serialize_documents(self.database.users.find()),
            "quizzes": serialize_documents(self.database.quizzes.find()),
            "solved_quizzes": serialize_documents(self.database.quizzes.find({"status": SOLVED})),
        }
