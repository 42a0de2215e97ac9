from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from intolescan.allergens import normalize_intolerances

Status = Literal["safe", "avoid", "maybe"]
STATUSES = ("safe", "avoid", "maybe")


def _first_text(*values) -> str:
    for v in values:
        if isinstance(v, str) and v.strip():
            return v.strip()
    return ""


def _as_list(value) -> List[str]:
    if isinstance(value, list):
        return [str(v) for v in value if v]
    if isinstance(value, str) and value.strip():
        return [v.strip() for v in value.split(",") if v.strip()]
    return []


class Profile(BaseModel):
    name: str = ""
    intolerances: List[str] = Field(default_factory=list)

    @field_validator("intolerances", mode="before")
    @classmethod
    def _known_only(cls, value):
        return normalize_intolerances(value if isinstance(value, (list, tuple, set)) else [])

    def toggled(self, key: str) -> "Profile":
        if key in self.intolerances:
            keys = [k for k in self.intolerances if k != key]
        else:
            keys = self.intolerances + [key]
        return Profile(name=self.name, intolerances=keys)


class ProductRecord(BaseModel):
    code: str
    name: str = "Unknown product"
    brand: str = ""
    ingredient_text: str = ""
    allergen_tags: List[str] = Field(default_factory=list)
    label_claims: str = ""
    traces: str = ""
    trace_tags: List[str] = Field(default_factory=list)
    last_modified: Optional[datetime] = None

    model_config = {"frozen": True}

    @classmethod
    def from_off(cls, code: str, product: Dict[str, Any], langs=("sk", "cs", "en")) -> "ProductRecord":
        """
        Builds a record from an Open Food Facts ``product`` object, resolving
        the localized field fallbacks once.
        """
        product = product or {}
        name = _first_text(
            product.get("product_name"),
            *[product.get(f"product_name_{lang}") for lang in langs],
            product.get("generic_name"),
            *[product.get(f"generic_name_{lang}") for lang in langs],
        ) or "Unknown product"
        ingredient_text = _first_text(
            *[product.get(f"ingredients_text_{lang}") for lang in langs],
            product.get("ingredients_text"),
        )
        allergen_tags = _as_list(product.get("allergens_tags")) or _as_list(product.get("allergens_hierarchy"))
        trace_tags = _as_list(product.get("traces_tags"))
        traces = _first_text(product.get("traces")) or ", ".join(trace_tags)
        labels = product.get("labels") or ""
        if not isinstance(labels, str):
            labels = ""
        label_claims = " ".join(p for p in [labels, traces, " ".join(trace_tags)] if p)
        last_modified = None
        ts = product.get("last_modified_t")
        if isinstance(ts, (int, float)) and ts > 0:
            last_modified = datetime.fromtimestamp(ts, tz=timezone.utc)
        return cls(
            code=str(product.get("code") or code),
            name=name,
            brand=_first_text(product.get("brands")),
            ingredient_text=ingredient_text,
            allergen_tags=allergen_tags,
            label_claims=label_claims,
            traces=traces,
            trace_tags=trace_tags,
            last_modified=last_modified,
        )


class Verdict(BaseModel):
    status: Status = "maybe"
    notes: List[str] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    code: str
    name: str = "Unknown product"
    brand: str = ""
    status: Status = "maybe"
    ts: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("ts")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


# Request model for /api/eval
class EvalRequest(BaseModel):
    code: str
    name: str = ""
    ingredients: str = ""
    allergens: str = ""
    lang: str = "sk"
    intolerances: List[str] = Field(default_factory=list)
    # older clients send the whole profile instead of "intolerances"
    profile: Optional[Profile] = None

    @field_validator("intolerances", mode="before")
    @classmethod
    def _known_only(cls, value):
        return normalize_intolerances(value if isinstance(value, (list, tuple, set)) else [])

    @model_validator(mode="after")
    def _intolerances_from_profile(self):
        if not self.intolerances and self.profile is not None:
            self.intolerances = list(self.profile.intolerances)
        return self

    @classmethod
    def for_product(cls, code: str, product: Optional[ProductRecord], profile: Optional[Profile],
                    lang: str = "sk") -> "EvalRequest":
        return cls(
            code=code,
            name=product.name if product else "",
            ingredients=product.ingredient_text if product else "",
            allergens=", ".join(product.allergen_tags) if product else "",
            lang=lang,
            intolerances=profile.intolerances if profile else [],
        )


class EvalResponse(BaseModel):
    ok: bool = True
    status: Optional[Status] = None
    notes: List[str] = Field(default_factory=list)


class ScanResult(BaseModel):
    code: str
    product: Optional[ProductRecord] = None
    verdict: Verdict
    escalated: bool = False
