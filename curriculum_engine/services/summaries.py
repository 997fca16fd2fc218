"""Template-composed teacher and student summaries for a review analysis."""

from __future__ import annotations

from collections.abc import Sequence

from curriculum_engine.storage.misconceptions_repo import MisconceptionEntry


def to_sentence_list(items: Sequence[str], conjunction: str = "and") -> str:
  """Join items as an English list: "a", "a and b", "a, b, and c"."""
  if not items:
    return ""
  if len(items) == 1:
    return items[0]
  if len(items) == 2:
    return f"{items[0]} {conjunction} {items[1]}"
  return f"{', '.join(items[:-1])}, {conjunction} {items[-1]}"


def _first_name(name: str) -> str:
  return name.split(" ")[0]


def build_teacher_summary(student_name: str, misconceptions: Sequence[MisconceptionEntry], strengths: Sequence[str]) -> str:
  name = student_name or "This student"
  if not misconceptions:
    if not strengths:
      return f"{name} demonstrated solid understanding during this activity."
    return f"{name} showed strong understanding of {to_sentence_list([item.lower() for item in strengths])}."

  statements = []
  for entry in misconceptions:
    concept = (entry.concept or "this concept").lower()
    detail = entry.misconception or entry.correct_understanding or "needs additional clarification."
    statements.append(f"{_first_name(name)} is struggling with {concept}: {detail}")
  return " ".join(statements)


def build_student_summary(student_name: str, strengths: Sequence[str], misconceptions: Sequence[MisconceptionEntry]) -> str:
  name_fragment = f"{_first_name(student_name)}, " if student_name else ""
  if strengths:
    highlight = f"You explained {to_sentence_list([item.lower() for item in strengths])} really well"
  else:
    highlight = "You made a thoughtful effort"

  if not misconceptions:
    return f"{name_fragment}{highlight}! Keep building on this momentum."

  primary = misconceptions[0]
  concept = primary.concept.lower() if primary.concept else "this idea"
  correction = primary.correct_understanding or "Take a moment to review the correct explanation and compare it with your response."
  return f"{name_fragment}{highlight}, however let's take another look at {concept}. {correction}"
