"""
Persona section for an LLM system prompt
"""
from src.persona.models import NoteType, SchedulingStyle, UserPersona
from utils.date_utils import round_half_up

PROMPT_STYLE_LABELS = {
    SchedulingStyle.CONSERVATIVE.value: "conservative (protect routines, keep slack time)",
    SchedulingStyle.MODERATE.value: "moderate (balanced placement)",
    SchedulingStyle.AGGRESSIVE.value: "aggressive (minimize idle time)",
}


def build_persona_prompt_section(persona: UserPersona) -> str:
    hours = persona.active_hours
    style = persona.scheduling_style

    lines = [
        "## User profile (learned from calendar history)",
        f"- Active hours: {hours.work_start} - {hours.work_end}",
        f"- Lunch: {hours.lunch_start} - {hours.lunch_end}",
        f"- Average events per day: {persona.avg_daily_events}",
        f"- Preferred gap between events: {persona.buffer_preference} min",
        f"- Scheduling style: {PROMPT_STYLE_LABELS.get(style, style)}",
    ]

    if persona.routines:
        lines.append("- Routines:")
        for routine in persona.routines[:8]:
            lines.append(
                f"  - {routine.keyword}: {routine.days_label()} "
                f"{routine.typical_start}-{routine.typical_end} "
                f"(confidence {round_half_up(routine.confidence * 100)}%)"
            )

    # only drifts seen at least twice are worth mentioning
    drift_notes = [n for n in persona.notes if n.type == NoteType.DRIFT.value and n.count >= 2]
    if drift_notes:
        lines.append("- Recent changes:")
        for note in drift_notes:
            lines.append(f"  - {note.content} (observed {note.count} times)")

    lines.append("")
    lines.append("### Scheduling guidance")
    lines.append(f"- For a \"lunch appointment\", suggest times around the usual lunch start ({hours.lunch_start}).")
    lines.append("- Ask for confirmation before creating an event that overlaps a routine.")

    if style == SchedulingStyle.CONSERVATIVE.value:
        lines.append(f"- Keep at least {persona.buffer_preference} min free before and after events.")
        lines.append("- When a routine might be affected, offer alternative times first.")
    elif style == SchedulingStyle.AGGRESSIVE.value:
        lines.append("- Free time may be used freely.")
        lines.append("- Prefer efficient placement over keeping slack time.")

    return "\n".join(lines) + "\n"
