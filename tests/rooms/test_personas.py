import random

import pytest

from parley_agents.rooms import PersonaCatalog, RespondentVariant, SpeakerRole, get_default_catalog
from parley_agents.rooms.personas import INTERVIEWER_PROMPT


def test_default_catalog_has_distinct_variants():
    catalog = get_default_catalog()

    ids = [variant.id for variant in catalog.variants]
    assert len(ids) == 6
    assert len(set(ids)) == len(ids)
    assert catalog.interviewer_prompt == INTERVIEWER_PROMPT


def test_choose_is_reproducible_with_seeded_rng():
    catalog = get_default_catalog()

    first = [catalog.choose(random.Random(7)).id for _ in range(3)]
    assert len(set(first)) == 1
    assert catalog.choose(random.Random(7)) in catalog.variants


def test_instructions_depend_on_role():
    variant = RespondentVariant(id="v", summary="Sore throat", profile="  Your throat hurts.  ")
    catalog = PersonaCatalog([variant], interviewer_prompt="Interview the patient.")

    assert catalog.instructions_for(SpeakerRole.INITIATOR, variant) == "Interview the patient."
    respondent = catalog.instructions_for(SpeakerRole.RESPONDENT, variant)
    assert respondent.endswith("Your situation today:\nYour throat hurts.")


def test_empty_variant_pool_is_rejected():
    with pytest.raises(ValueError):
        PersonaCatalog([])
