"""Grading of a frozen question snapshot against a candidate's answer map."""
from dataclasses import dataclass
from typing import List


class EmptyQuestionSet(ValueError):
    pass


@dataclass(frozen=True)
class GradeResult:
    records: List[dict]
    correct_count: int
    total_questions: int
    score: int
    passing_score: int
    passed: bool


def compute_score(correct, total):
    """round(100 * correct / total), halves rounded up, clamped to [0, 100]."""
    if total <= 0:
        raise EmptyQuestionSet("cannot score a test with no questions")
    # integer arithmetic, no float rounding surprises
    score = (200 * correct + total) // (2 * total)
    return min(100, max(0, score))


def grade(questions, answers, passing_score):
    """
    Unanswered questions count as incorrect. Letters compare case-insensitively.
    Returns per-question records in snapshot order.
    """
    if not questions:
        raise EmptyQuestionSet("cannot score a test with no questions")

    answers = {str(k): v for k, v in (answers or {}).items()}
    records = []
    for question in questions:
        qid = str(question["id"])
        selected = (answers.get(qid) or "").strip()
        correct = (question.get("correct_answer") or "").strip()
        records.append({
            "question_id": question["id"],
            "selected_answer": selected.upper(),
            "correct_answer": correct.upper(),
            "is_correct": bool(selected) and selected.lower() == correct.lower(),
        })

    correct_count = sum(1 for r in records if r["is_correct"])
    score = compute_score(correct_count, len(records))
    return GradeResult(
        records=records,
        correct_count=correct_count,
        total_questions=len(records),
        score=score,
        passing_score=passing_score,
        passed=score >= passing_score,
    )
