# intolerance categories, keyword fragments and matching logic

import re

# Ordered: notes and profile keys follow this order
INTOLERANCES = {
    "gluten": {
        "sk": "Lepok", "cs": "Lepek", "en": "Gluten",
        "terms": ["lepok", "pšenica", "psenica", "pšeničn", "wheat", "jačmeň", "jacmen", "barley",
                  "raž", "rye", "špalda", "spelta", "spelt", "ovos", "gluten", "triticale",
                  "kamut", "pšenice", "ječmen", "žito"],
        "tags": ["gluten"],
        "free_claim": r"gluten[- ]?free|bez lepku|bezlepkov",
    },
    "milk_protein": {
        "sk": "Mliečna bielkovina (APLV)", "cs": "Mléčná bílkovina", "en": "Milk protein",
        "terms": ["mlieko", "mliecna bielkovina", "mliečna bielkovina", "srvátka", "whey", "casein",
                  "kazein", "kazeín", "maslo", "smotana", "syra", "syrový", "tvaroh", "mliečny",
                  "mléko", "máslo", "smetana", "syrovátka", "kasein", "milk", "cheese", "butter",
                  "cream", "ghee"],
        # look like dairy, carry no milk
        "exclude": ["cocoa butter", "cacao butter", "peanut butter", "shea butter", "almond butter",
                    "kakaové maslo", "arašidové maslo", "bambucké maslo", "kakaové máslo",
                    "arašídové máslo", "bambucké máslo", "cream of tartar", "coconut cream"],
        "tags": ["milk"],
        "free_claim": r"milk[- ]?free|dairy[- ]?free|bez mlieka|bez mléka",
    },
    "lactose": {
        "sk": "Laktóza", "cs": "Laktóza", "en": "Lactose",
        "terms": ["laktóza", "laktosa", "lactose"],
        "tags": ["lactose"],
        "free_claim": r"lactose[- ]?free|bez laktózy|bezlaktózov",
    },
    "nuts": {
        "sk": "Orechy stromové", "cs": "Stromové ořechy", "en": "Tree nuts",
        "terms": ["lieskové", "mandle", "vlašské", "kešu", "pekany", "piniové", "pistácie",
                  "brazilské", "hazelnut", "almond", "walnut", "cashew", "pecan", "pistachio",
                  "macadamia"],
        "tags": ["nuts"],
        "free_claim": None,
    },
    "peanut": {
        "sk": "Arašidy", "cs": "Arašídy", "en": "Peanuts",
        "terms": ["arašidy", "arašídy", "arašíd", "arašid", "peanut", "arachis hypogaea", "groundnut"],
        "tags": ["peanuts"],
        "free_claim": None,
    },
    "soy": {
        "sk": "Sója", "cs": "Sója", "en": "Soy",
        "terms": ["sója", "soja", "soy", "sojový", "sójový", "lecitín (sojový)", "sojový lecitín", "soya"],
        "tags": ["soybeans"],
        "free_claim": None,
    },
    "egg": {
        "sk": "Vajce", "cs": "Vejce", "en": "Egg",
        "terms": ["vajce", "vajcia", "vaječný", "vaječné", "albumín", "egg", "ovalbumin", "vejce"],
        "tags": ["eggs"],
        "free_claim": None,
    },
    "sesame": {
        "sk": "Sezam", "cs": "Sezam", "en": "Sesame",
        "terms": ["sezam", "sesame", "sezamové", "tahini"],
        "tags": ["sesame seeds"],
        "free_claim": None,
    },
    "fish": {
        "sk": "Ryby", "cs": "Ryby", "en": "Fish",
        "terms": ["ryba", "ryby", "fish", "losos", "tuniak", "tuna", "kapor", "treska", "cod",
                  "lososový", "salmon", "anchov"],
        "tags": ["fish"],
        "free_claim": None,
    },
    "shellfish": {
        "sk": "Kôrovce/mäkkýše", "cs": "Korýši/Měkkýši", "en": "Shellfish",
        "terms": ["kreveta", "krab", "homár", "mušla", "slávka", "lastúra", "krevet", "krabí",
                  "morský plod", "shrimp", "crab", "lobster", "mussel", "shellfish", "prawn", "oyster"],
        "tags": ["crustaceans", "molluscs"],
        "free_claim": None,
    },
    "celery": {
        "sk": "Zeler", "cs": "Celer", "en": "Celery",
        "terms": ["zeler", "celer", "celery"],
        "tags": ["celery"],
        "free_claim": None,
    },
    "mustard": {
        "sk": "Horčica", "cs": "Hořčice", "en": "Mustard",
        "terms": ["horčica", "horčičné semeno", "horčičný", "mustard", "hořčice"],
        "tags": ["mustard"],
        "free_claim": None,
    },
    "sulphites": {
        "sk": "Oxidy siričité/siričitany", "cs": "Oxidy siřičité/siřičitany", "en": "Sulphites",
        "terms": ["oxid siričitý", "siričitany", "siričitan", "oxid siřičitý", "siřičitany", "sulphites",
                  "sulfites", "sulphite", "sulfite", "sulphur dioxide", "e220", "e221", "e222", "e223",
                  "e224", "e226", "e227", "e228"],
        "tags": ["sulphur dioxide and sulphites"],
        "free_claim": None,
    },
    "lupin": {
        "sk": "Vlčí bôb (lupina)", "cs": "Vlčí bob (lupina)", "en": "Lupin",
        "terms": ["vlčí bôb", "lupina", "lupin", "lupine"],
        "tags": ["lupin"],
        "free_claim": None,
    },
}

# Used when the profile has no intolerances selected
DEFAULT_INTOLERANCES = ["gluten", "milk_protein"]

LANGS = ("sk", "cs", "en")


def is_known(key: str) -> bool:
    return key in INTOLERANCES


def normalize_intolerances(keys) -> list:
    """
    Drops unknown keys and duplicates and returns the rest in table order.
    """
    wanted = {str(k).strip().lower() for k in (keys or [])}
    return [key for key in INTOLERANCES if key in wanted]


def get_label(key: str, lang: str = "en") -> str:
    category = INTOLERANCES[key]
    return category.get(lang) or category["en"]


def _tag_value(tag: str) -> str:
    # "en:sesame-seeds" -> "sesame seeds"
    value = tag.rsplit(":", 1)[-1]
    return value.replace("-", " ").replace("_", " ").strip().lower()


def match_terms(text: str, key: str) -> bool:
    """
    True when any keyword fragment of the category occurs in the text, once
    the category's excluded phrases (e.g. "cocoa butter" for milk) are
    blanked out.
    """
    text_lower = (text or "").lower()
    if not text_lower:
        return False
    category = INTOLERANCES[key]
    for phrase in category.get("exclude", ()):
        text_lower = text_lower.replace(phrase, " ")
    return any(term.lower() in text_lower for term in category["terms"])


def match_tags(tags, key: str) -> bool:
    """
    True when an allergen tag names the category: its key, one of its
    localized labels or one of its Open Food Facts tag aliases.
    """
    category = INTOLERANCES[key]
    names = {key, key.replace("_", " ")}
    names.update(category[lang].lower() for lang in LANGS)
    names.update(category["tags"])
    return any(_tag_value(t) in names for t in (tags or []) if t)


def match_free_claim(claims: str, key: str) -> bool:
    pattern = INTOLERANCES[key]["free_claim"]
    if not pattern or not claims:
        return False
    return re.search(pattern, claims, flags=re.IGNORECASE) is not None


def match_allergens(text: str, tags, active) -> list:
    """
    Returns the active categories hard-matched by the ingredient text or the
    allergen tags, in table order.
    """
    matched = []
    for key in normalize_intolerances(active):
        if match_terms(text, key) or match_tags(tags, key):
            matched.append(key)
    return matched
