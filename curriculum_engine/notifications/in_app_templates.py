"""Copy for in-app notifications, keyed by versioned template id."""

from __future__ import annotations

from string import Template
from typing import Any

ANALYSIS_COMPLETE_TEMPLATE = "curriculum_analysis_complete_v1"

TEMPLATES: dict[str, tuple[Template, Template]] = {
  ANALYSIS_COMPLETE_TEMPLATE: (
    Template("Curriculum Analysis Complete"),
    Template('Your curriculum "${title}" has been analyzed and is ready to view. Click to see the insights!'),
  ),
}


def render_in_app_template(*, template_id: str, data: dict[str, Any]) -> tuple[str, str]:
  """Return ``(title, body)`` for the template, failing on unknown ids or missing placeholders."""
  try:
    title, body = TEMPLATES[template_id]
  except KeyError:
    raise ValueError(f"Unknown in-app template: {template_id}") from None
  missing = sorted({*title.get_identifiers(), *body.get_identifiers()} - data.keys())
  if missing:
    raise ValueError(f"Missing placeholders for template '{template_id}': {', '.join(missing)}")
  values = {key: str(value) for key, value in data.items()}
  return title.substitute(values), body.substitute(values)
