"""Unit tests for teacher and student review summaries."""

from __future__ import annotations

from curriculum_engine.services.summaries import build_student_summary, build_teacher_summary, to_sentence_list
from curriculum_engine.storage.misconceptions_repo import MisconceptionEntry


def _entry(concept: str, misconception: str = "", correct: str = "") -> MisconceptionEntry:
  return MisconceptionEntry(concept=concept, misconception=misconception, evidence="", severity="medium", correct_understanding=correct)


def test_sentence_list_formats() -> None:
  assert to_sentence_list([]) == ""
  assert to_sentence_list(["ratios"]) == "ratios"
  assert to_sentence_list(["ratios", "rates"]) == "ratios and rates"
  assert to_sentence_list(["a", "b", "c"], "or") == "a, b, or c"


def test_teacher_summary_without_findings() -> None:
  assert build_teacher_summary("", [], []) == "This student demonstrated solid understanding during this activity."
  assert build_teacher_summary("Ada Lovelace", [], ["Ratios", "Unit Rates"]) == "Ada Lovelace showed strong understanding of ratios and unit rates."


def test_teacher_summary_lists_each_struggle_by_first_name() -> None:
  summary = build_teacher_summary("Ada Lovelace", [_entry("Ratios", "Treats ratios as differences."), _entry("", correct="Percent means per hundred.")], [])
  assert summary == "Ada is struggling with ratios: Treats ratios as differences. Ada is struggling with this concept: Percent means per hundred."


def test_student_summary_praises_strengths_and_redirects_first_misconception() -> None:
  summary = build_student_summary("Ada Lovelace", ["Ratios"], [_entry("Percents", correct="Percent means per hundred.")])
  assert summary == "Ada, You explained ratios really well, however let's take another look at percents. Percent means per hundred."


def test_student_summary_without_name_or_findings() -> None:
  assert build_student_summary("", [], []) == "You made a thoughtful effort! Keep building on this momentum."
