"""Static chapter beat table for structured films and freeform arc phases."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ChapterBeat:
    """One fixed position in the 18-chapter screenplay structure."""

    number: int
    chapter_type: str
    title: str
    target_words: int
    phase: str
    instructions: str


HOOK_CHAPTER_NUMBER = 1
CLIMAX_CHAPTER_NUMBER = 16

STRUCTURED_BEATS: tuple[ChapterBeat, ...] = (
    ChapterBeat(
        1,
        "hook",
        "The Hook",
        150,
        "hook",
        "Open with a vivid glimpse of the ending: a single charged moment from the climax, "
        "shown without context. Leave the audience with a question, not an answer. "
        "Invent the story's recurring artifact and let it appear in this moment.",
    ),
    ChapterBeat(
        2,
        "intro_1",
        "Before the Fall",
        600,
        "setup",
        "Rewind to before anything went wrong. Introduce the protagonist in their ordinary "
        "world, their wants and their blind spots.",
    ),
    ChapterBeat(
        3,
        "intro_2",
        "Quiet Routines & Hidden Cracks",
        600,
        "setup",
        "Show daily routines and the relationships around the protagonist. Plant small "
        "signs that something is already fragile.",
    ),
    ChapterBeat(
        4,
        "intro_3",
        "The Life They Thought They Had",
        600,
        "setup",
        "Deepen what the protagonist stands to lose. End on a quiet note of false security.",
    ),
    ChapterBeat(
        5,
        "inciting_incident",
        "The First Disturbance",
        800,
        "catalyst",
        "Deliver the event that breaks the ordinary world. It must be concrete, visual and "
        "impossible to ignore.",
    ),
    ChapterBeat(
        6,
        "early_dev_1",
        "Shockwaves",
        800,
        "escalation",
        "Show the immediate fallout of the disturbance on every main character.",
    ),
    ChapterBeat(
        7,
        "early_dev_2",
        "Attempts to Restore Control",
        800,
        "escalation",
        "The protagonist tries to fix things the old way and it only partly works.",
    ),
    ChapterBeat(
        8,
        "early_dev_3",
        "Complications & Subplots",
        800,
        "escalation",
        "Introduce a complication and a secondary thread that will matter later.",
    ),
    ChapterBeat(
        9,
        "middle_dev_1",
        "The Deepening Storm",
        900,
        "crisis",
        "Raise the stakes. Allies waver and the antagonist's pressure becomes personal.",
    ),
    ChapterBeat(
        10,
        "middle_dev_2",
        "Truths Rising from the Past",
        900,
        "crisis",
        "Surface a buried truth from a character's past that reframes earlier events.",
    ),
    ChapterBeat(
        11,
        "middle_dev_3",
        "The Breaking Point",
        900,
        "crisis",
        "Push the protagonist to their lowest point. Something essential is lost.",
    ),
    ChapterBeat(
        12,
        "plot_twist",
        "The Plot Twist",
        1500,
        "revelation",
        "Reveal the twist that changes the meaning of everything so far. It must be "
        "surprising yet consistent with what came before. Let the artifact carry the reveal.",
    ),
    ChapterBeat(
        13,
        "climax_build_1",
        "Aftermath of the Truth",
        900,
        "pre-climax",
        "Show characters absorbing the twist and choosing sides.",
    ),
    ChapterBeat(
        14,
        "climax_build_2",
        "Final Preparations",
        900,
        "pre-climax",
        "The protagonist commits to a plan and pays a price to prepare for it.",
    ),
    ChapterBeat(
        15,
        "climax_build_3",
        "Walking into the Storm",
        900,
        "pre-climax",
        "Move everyone into position for the confrontation. Tension, no release.",
    ),
    ChapterBeat(
        16,
        "climax",
        "The Climax",
        1200,
        "climax",
        "Play out the confrontation in full. The moment glimpsed in the opening hook must "
        "occur here, now with its complete context and consequences.",
    ),
    ChapterBeat(
        17,
        "resolution_1",
        "The Dust Settles",
        700,
        "resolution",
        "Show the immediate aftermath and what each surviving character has become.",
    ),
    ChapterBeat(
        18,
        "resolution_2",
        "The Final Reflection",
        600,
        "resolution",
        "Close on a reflective final image that echoes the opening. Resolve the artifact.",
    ),
)

_BEATS_BY_NUMBER = {beat.number: beat for beat in STRUCTURED_BEATS}


def structured_beat(chapter_number: int) -> ChapterBeat:
    """Return the fixed beat for a structured chapter number (1..18)."""
    try:
        return _BEATS_BY_NUMBER[chapter_number]
    except KeyError:
        raise ValueError(f"Structured films have chapters 1..{len(STRUCTURED_BEATS)}, got {chapter_number}") from None


def structured_chapter_type(chapter_number: int) -> str:
    return structured_beat(chapter_number).chapter_type


_FREEFORM_GUIDANCE = {
    "opening": "This is the opening chapter. Establish the world, the protagonist and the central tension.",
    "early": "This is an early chapter. Develop the characters and complicate their goals.",
    "middle": "This is a middle chapter. Escalate the conflict and deepen the stakes.",
    "late": "This is a late chapter. Drive toward the climax and force hard choices.",
    "final": "This is the final chapter. Resolve the central conflict and close every major thread.",
}


def freeform_phase(chapter_number: int, chapter_count: int) -> str:
    """Map a chapter position onto opening / early / middle / late / final."""
    if chapter_number <= 1:
        return "opening"
    if chapter_number >= chapter_count:
        return "final"
    ratio = (chapter_number - 1) / (chapter_count - 1)
    if ratio < 0.34:
        return "early"
    if ratio < 0.67:
        return "middle"
    return "late"


def freeform_guidance(chapter_number: int, chapter_count: int) -> str:
    return _FREEFORM_GUIDANCE[freeform_phase(chapter_number, chapter_count)]
