import pytest

from intolescan.models import EvalResponse, Profile, Verdict
from intolescan.verdict import (
    active_intolerances,
    apply_advice,
    evaluate_for_profile,
    needs_escalation,
    not_found_verdict,
)

GLUTEN = Profile(name="Radka", intolerances=["gluten"])


def test_wheat_flour_is_avoid_for_gluten(make_product):
    product = make_product(ingredient_text="wheat flour, water, salt")
    verdict = evaluate_for_profile(product, GLUTEN)
    assert verdict.status == "avoid"
    assert any("Gluten" in n for n in verdict.notes)


def test_gluten_free_claim_is_safe(make_product):
    product = make_product(ingredient_text="rice, water, salt", label_claims="gluten-free")
    verdict = evaluate_for_profile(product, GLUTEN)
    assert verdict.status == "safe"
    assert verdict.notes == ["Declared free of: Gluten."]


def test_avoid_is_not_lifted_by_a_claim(make_product):
    product = make_product(ingredient_text="barley malt, sugar", label_claims="gluten-free")
    assert evaluate_for_profile(product, GLUTEN).status == "avoid"


def test_allergen_tag_alone_is_a_hard_match(make_product):
    product = make_product(allergen_tags=["en:milk"])
    profile = Profile(intolerances=["milk_protein"])
    assert evaluate_for_profile(product, profile).status == "avoid"


@pytest.mark.parametrize("text,expected", [
    ("wheat flour, butter, sugar, cream", "avoid"),
    ("kakaová hmota, cukor, kakaové maslo", "maybe"),
    ("peanut butter, salt", "maybe"),
])
def test_milk_verdicts_ignore_plant_butters(make_product, text, expected):
    profile = Profile(intolerances=["milk_protein"])
    assert evaluate_for_profile(make_product(ingredient_text=text), profile).status == expected


def test_brazil_nuts_are_not_gluten(make_product):
    product = make_product(ingredient_text="brazílske orechy, soľ")
    assert evaluate_for_profile(product, GLUTEN).status == "maybe"


def test_empty_product_is_maybe(make_product):
    verdict = evaluate_for_profile(make_product(), Profile(intolerances=["milk_protein"]))
    assert verdict.status == "maybe"
    assert verdict.notes == ["No clear risk allergens found for your profile. Check the label."]


def test_empty_profile_falls_back_to_gluten_and_milk(make_product):
    product = make_product(ingredient_text="sugar, whey powder")
    assert active_intolerances(Profile()) == ["gluten", "milk_protein"]
    assert active_intolerances(None) == ["gluten", "milk_protein"]
    assert evaluate_for_profile(product, None).status == "avoid"


def test_traces_downgrade_safe_to_maybe(make_product):
    product = make_product(ingredient_text="rice flour", label_claims="gluten-free",
                           traces="may contain milk")
    profile = Profile(intolerances=["gluten", "milk_protein"])
    verdict = evaluate_for_profile(product, profile)
    assert verdict.status == "maybe"
    assert verdict.notes == ["Declared free of: Gluten.", "Warning: may contain traces of Milk protein."]


def test_traces_alone_never_produce_avoid(make_product):
    product = make_product(ingredient_text="corn, salt", trace_tags=["en:peanuts"])
    verdict = evaluate_for_profile(product, Profile(intolerances=["peanut"]))
    assert verdict.status == "maybe"
    assert verdict.notes[-1] == "Warning: may contain traces of Peanuts."


def test_traces_leave_avoid_alone(make_product):
    product = make_product(ingredient_text="wheat", traces="wheat")
    verdict = evaluate_for_profile(product, GLUTEN)
    assert verdict.status == "avoid"
    assert len(verdict.notes) == 2


def test_notes_follow_category_order(make_product):
    product = make_product(ingredient_text="egg, soy lecithin, wheat flour")
    profile = Profile(intolerances=["soy", "egg", "gluten"])
    verdict = evaluate_for_profile(product, profile)
    assert verdict.notes == [
        "Contains / may contain: Gluten.",
        "Contains / may contain: Soy.",
        "Contains / may contain: Egg.",
    ]


def test_slovak_notes(make_product):
    product = make_product(ingredient_text="pšeničná múka")
    verdict = evaluate_for_profile(product, GLUTEN, lang="sk")
    assert verdict.notes == ["Obsahuje / môže obsahovať: Lepok."]


@pytest.mark.parametrize("status,text,expected", [
    ("maybe", "rice", True),
    ("avoid", "wheat", False),
    ("avoid", "", True),
    ("safe", "   ", True),
    ("safe", "rice", False),
])
def test_needs_escalation(make_product, status, text, expected):
    verdict = Verdict(status=status)
    assert needs_escalation(verdict, make_product(ingredient_text=text)) is expected


def test_missing_product_needs_escalation():
    verdict = not_found_verdict("123")
    assert verdict.status == "maybe"
    assert needs_escalation(verdict, None)


def test_advice_overrides_status_and_appends_notes():
    local = Verdict(status="maybe", notes=["local"])
    merged = apply_advice(local, EvalResponse(status="safe", notes=["ai"]))
    assert merged.status == "safe"
    assert merged.notes == ["local", "ai"]


def test_advice_without_status_keeps_local_status():
    local = Verdict(status="maybe", notes=["local"])
    merged = apply_advice(local, EvalResponse(ok=False, status=None, notes=["AI unavailable"]))
    assert merged.status == "maybe"
    assert merged.notes == ["local", "AI unavailable"]


def test_advice_overrides_a_tag_only_avoid(make_product):
    # allergen tag hit with no ingredient text: avoid, but still escalated
    product = make_product(allergen_tags=["en:gluten"], ingredient_text="")
    local = evaluate_for_profile(product, GLUTEN)
    assert local.status == "avoid"
    assert needs_escalation(local, product)

    merged = apply_advice(local, EvalResponse(status="safe", notes=["Certified gluten-free oats."]))
    assert merged.status == "safe"
    assert merged.notes == ["Contains / may contain: Gluten.", "Certified gluten-free oats."]
