"""Canned resolution suggestions offered to team members.

Picks one of a small set of templates filled in with the ticket's course,
unit and topic. No model is called.
"""

import random

SOLUTION_TEMPLATES = [
    "Review the {topic} content in {unit} and update any outdated information. "
    "Cross-reference with the latest curriculum standards.",
    "Check for technical issues in the {course} platform. Verify all links and "
    "multimedia content are working correctly.",
    "Update the {unit} materials to include clearer explanations and additional "
    "examples for better understanding.",
    "Implement user feedback by adding interactive elements to the {topic} "
    "section to improve engagement.",
    "Review and optimize the content structure in {unit} to ensure logical flow "
    "and better learning outcomes.",
]

PREVENTIVE_TEMPLATES = [
    "Establish regular content review cycles for {course} to catch issues early.",
    "Implement automated testing for all interactive elements in {unit}.",
    "Create a feedback collection system for students to report issues quickly.",
    "Set up monitoring alerts for technical issues in the learning platform.",
    "Develop a content quality checklist for all new materials added to {course}.",
]


def build_suggestions(
    form_data: dict,
    rng: random.Random | None = None,
) -> dict[str, str]:
    """Return {"proposed_solution", "preventive_measures"} for a ticket."""
    rng = rng or random.Random()
    context = {
        "course": form_data.get("course") or "the course",
        "unit": form_data.get("unit") or "this unit",
        "topic": form_data.get("topic") or "this topic",
    }
    return {
        "proposed_solution": rng.choice(SOLUTION_TEMPLATES).format(**context),
        "preventive_measures": rng.choice(PREVENTIVE_TEMPLATES).format(**context),
    }
