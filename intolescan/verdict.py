"""Local, rule-based verdict for a product against an intolerance profile."""
from typing import Optional

from intolescan.allergens import (
    DEFAULT_INTOLERANCES,
    get_label,
    match_allergens,
    match_free_claim,
    match_tags,
    match_terms,
    normalize_intolerances,
)
from intolescan.models import STATUSES, EvalResponse, ProductRecord, Profile, Verdict

NOTES = {
    "en": {
        "contains": "Contains / may contain: {label}.",
        "free": "Declared free of: {label}.",
        "check_label": "No clear risk allergens found for your profile. Check the label.",
        "traces": "Warning: may contain traces of {label}.",
        "not_found": "Product {code} was not found in the product database.",
    },
    "sk": {
        "contains": "Obsahuje / môže obsahovať: {label}.",
        "free": "Deklarované bez: {label}.",
        "check_label": "Nenašli sa jasné rizikové alergény podľa profilu. Skontroluj etiketu.",
        "traces": "Upozornenie: stopy {label}.",
        "not_found": "Produkt {code} sa nenašiel v databáze.",
    },
    "cs": {
        "contains": "Obsahuje / může obsahovat: {label}.",
        "free": "Deklarováno bez: {label}.",
        "check_label": "Nenalezeny jasné rizikové alergeny podle profilu. Zkontroluj etiketu.",
        "traces": "Upozornění: stopy {label}.",
        "not_found": "Produkt {code} nebyl nalezen v databázi.",
    },
}


def note(kind: str, lang: str = "en", **kwargs) -> str:
    templates = NOTES.get(lang) or NOTES["en"]
    return templates[kind].format(**kwargs)


def active_intolerances(profile: Optional[Profile]) -> list:
    keys = normalize_intolerances(profile.intolerances) if profile else []
    return keys or list(DEFAULT_INTOLERANCES)


def evaluate_for_profile(product: ProductRecord, profile: Optional[Profile], lang: str = "en") -> Verdict:
    """
    Matches a product against the active intolerances.

    ``avoid`` wins over everything else. ``safe`` needs an explicit
    "free of" claim for an active category and no hard match. Anything else
    is ``maybe``. Trace mentions add a warning and turn ``safe`` into
    ``maybe``.
    """
    active = active_intolerances(profile)
    notes = []

    hits = match_allergens(product.ingredient_text, product.allergen_tags, active)
    for key in hits:
        notes.append(note("contains", lang, label=get_label(key, lang)))
    status = "avoid" if hits else "maybe"

    if status != "avoid":
        claims = (product.label_claims or "").lower()
        declared = [key for key in active if match_free_claim(claims, key)]
        for key in declared:
            notes.append(note("free", lang, label=get_label(key, lang)))
        if declared:
            status = "safe"

    if status == "maybe":
        notes.append(note("check_label", lang))

    traces = (product.traces or "").lower()
    for key in active:
        if match_terms(traces, key) or match_tags(product.trace_tags, key):
            notes.append(note("traces", lang, label=get_label(key, lang)))
            if status == "safe":
                status = "maybe"

    return Verdict(status=status, notes=notes)


def not_found_verdict(code: str, lang: str = "en") -> Verdict:
    return Verdict(status="maybe", notes=[note("not_found", lang, code=code)])


def needs_escalation(verdict: Verdict, product: Optional[ProductRecord]) -> bool:
    if verdict.status == "maybe":
        return True
    return product is None or not (product.ingredient_text or "").strip()


def apply_advice(verdict: Verdict, advice: Optional[EvalResponse]) -> Verdict:
    """
    Merges an advisory reply into a local verdict. A valid advisory status
    overrides the local one; without one the local status stands. Advisory
    notes are appended.
    """
    if advice is None:
        return verdict
    status = advice.status if advice.status in STATUSES else verdict.status
    return Verdict(status=status, notes=list(verdict.notes) + list(advice.notes or []))
