"""Room Personas - Interviewer script and respondent variants for room sessions.

The initiator always follows the same interview script. The respondent is
given one variant per session, picked at random when the session starts.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from .history_view import SpeakerRole

INTERVIEWER_PROMPT = """You are Dr. Emily Carter, a primary care physician seeing a new patient.

Your behavior:
- Ask exactly one clear question per reply
- Keep every reply to two or three sentences
- Open by greeting the patient and asking what brings them in
- Move from the main complaint to duration, severity, related symptoms, history, then next steps
- Use plain, warm language and acknowledge what the patient tells you
- Stay in character; never mention being an AI"""

RESPONDENT_PROMPT_TEMPLATE = """You are a patient seeing this doctor for the first time today.

Your behavior:
- Speak naturally, the way a real person would, in two or three sentences
- Answer what you are asked and now and then add a small relevant detail
- Sound a little worried, in proportion to your symptoms
- Occasionally ask the doctor a short question back
- Never use lists and never mention being an AI

Your situation today:
{profile}"""


@dataclass(frozen=True)
class RespondentVariant:
    """One randomized respondent profile."""

    id: str
    summary: str
    profile: str

    def instructions(self) -> str:
        return RESPONDENT_PROMPT_TEMPLATE.format(profile=self.profile.strip())


_DEFAULT_VARIANTS: List[RespondentVariant] = [
    RespondentVariant(
        id="dry-cough-fever",
        summary="Dry cough and low fever for three days",
        profile=(
            "You have had a dry cough and a temperature around 99.8F for three days. "
            "You feel worn out with mild body aches and wonder if it is flu or COVID."
        ),
    ),
    RespondentVariant(
        id="left-chest-pain",
        summary="Sharp left-sided chest pain on deep breaths",
        profile=(
            "For two days you have felt a sharp pain on the left side of your chest, worst when you breathe in deeply. "
            "You are 34 and otherwise healthy, and you are afraid it is your heart."
        ),
    ),
    RespondentVariant(
        id="swollen-knee",
        summary="Swollen right knee after a hiking slip",
        profile=(
            "Your right knee has been swollen and sore for a week since you slipped on a hike. "
            "Walking is fine but stairs hurt, and icing it has not helped much."
        ),
    ),
    RespondentVariant(
        id="behind-eye-headache",
        summary="Two-day headache behind the eyes",
        profile=(
            "You have had a pounding headache behind your eyes for two days, and bright light makes it worse. "
            "Painkillers only take the edge off for a few hours."
        ),
    ),
    RespondentVariant(
        id="stomach-cramps",
        summary="Stomach cramps after a restaurant meal",
        profile=(
            "Since eating at a new restaurant yesterday you have had stomach cramps and nausea. "
            "You threw up once this morning and are struggling to keep water down."
        ),
    ),
    RespondentVariant(
        id="poor-sleep-fatigue",
        summary="Months of poor sleep and daytime fatigue",
        profile=(
            "For about three months you have been waking at 3am and cannot get back to sleep. "
            "Work has been stressful and you feel exhausted and short-tempered during the day."
        ),
    ),
]


class PersonaCatalog:
    """The interviewer script plus the pool of respondent variants."""

    def __init__(
        self,
        variants: Optional[Sequence[RespondentVariant]] = None,
        *,
        interviewer_prompt: str = INTERVIEWER_PROMPT,
    ) -> None:
        pool = list(variants) if variants is not None else list(_DEFAULT_VARIANTS)
        if not pool:
            raise ValueError("At least one respondent variant is required.")
        self.interviewer_prompt = interviewer_prompt
        self._variants: Dict[str, RespondentVariant] = {variant.id: variant for variant in pool}

    @property
    def variants(self) -> List[RespondentVariant]:
        return list(self._variants.values())

    def choose(self, rng: Optional[random.Random] = None) -> RespondentVariant:
        return (rng or random).choice(self.variants)

    def instructions_for(self, role: SpeakerRole, variant: RespondentVariant) -> str:
        if role is SpeakerRole.INITIATOR:
            return self.interviewer_prompt
        return variant.instructions()


def get_default_catalog() -> PersonaCatalog:
    return PersonaCatalog()
