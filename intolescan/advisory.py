"""
Advisory escalation: a second opinion from a hosted language model.

``evaluate_product`` is the server side (it holds the API key and talks to
the model). ``EvalClient`` is the client side that calls a deployed
``/api/eval`` handler. Both always return an ``EvalResponse`` and never raise.
"""
import logging
from typing import Optional

import openai
import requests
from openai import OpenAI

from intolescan import config
from intolescan.allergens import get_label
from intolescan.models import STATUSES, EvalRequest, EvalResponse
from intolescan.utils import clip, extract_json

logger = logging.getLogger(__name__)

MAX_NOTES = 5
INSUFFICIENT_DATA = "Insufficient data."

SYSTEM_PROMPT = (
    "You are a food advisor for people with coeliac disease and food intolerances. "
    "Return strict JSON only, in the form "
    '{"status": "safe|avoid|maybe", "notes": ["..."]}.'
)


def build_prompt(request: EvalRequest) -> str:
    labels = [get_label(k, "en") for k in request.intolerances]
    return f"""
Reply language: {request.lang}
Product code: {request.code}
Name: {request.name or '-'}
Ingredients: {request.ingredients or '-'}
Allergens (database): {request.allergens or '-'}
User intolerances: {', '.join(labels) or 'gluten, milk protein'}

Task: decide whether this product is safe for this particular user.
If there is a clear reason it is unsuitable (e.g. milk protein for a milk-protein allergy,
gluten for coeliac disease), answer "avoid".
If the declaration clearly confirms it is safe (e.g. gluten-free and milk-free), answer "safe".
Otherwise answer "maybe". Give at most {MAX_NOTES} short notes.
""".strip()


def parse_reply(raw) -> EvalResponse:
    parsed = extract_json(raw)
    if parsed is None:
        return EvalResponse(status="maybe", notes=[INSUFFICIENT_DATA])
    status = parsed.get("status")
    if status not in STATUSES:
        status = "maybe"
    notes = parsed.get("notes")
    if isinstance(notes, list):
        notes = [str(n).strip() for n in notes if str(n).strip()][:MAX_NOTES]
    else:
        notes = []
    return EvalResponse(status=status, notes=notes or [INSUFFICIENT_DATA])


def make_client(api_key: str, timeout: Optional[float] = None) -> OpenAI:
    return OpenAI(api_key=api_key, timeout=timeout or config.AI_TIMEOUT, max_retries=0)


def evaluate_product(request: EvalRequest, client=None, api_key: Optional[str] = None,
                     model: Optional[str] = None) -> EvalResponse:
    api_key = api_key or config.OPENAI_API_KEY
    if not api_key and client is None:
        logger.info("Advisory: OPENAI_API_KEY is not set, skipping the model call")
        return EvalResponse(status="maybe", notes=["AI not configured: OPENAI_API_KEY is missing on the server."])

    client = client or make_client(api_key)
    try:
        response = client.chat.completions.create(
            model=model or config.OPENAI_MODEL,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(request)},
            ],
            response_format={"type": "json_object"},
            temperature=0.2,
        )
    except openai.APIStatusError as e:
        logger.warning(f"Advisory: model call for {request.code} failed with HTTP {e.status_code}")
        return EvalResponse(status="maybe", notes=[f"AI request failed (HTTP {e.status_code}).",
                                                   clip(e.message)])
    except openai.OpenAIError as e:
        # timeouts and connection errors
        logger.warning(f"Advisory: model call for {request.code} failed: {e}")
        return EvalResponse(status="maybe", notes=["AI request failed.", clip(e)])
    except Exception as e:
        logger.error(f"Advisory: unexpected error for {request.code}: {e}")
        return EvalResponse(status="maybe", notes=["AI request failed.", clip(e)])

    try:
        raw = response.choices[0].message.content
    except (AttributeError, IndexError, TypeError):
        raw = None
    return parse_reply(raw)


class EvalClient:
    """Calls a deployed /api/eval handler."""

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None, session=None):
        self.url = url or config.EVAL_URL
        self.timeout = timeout or config.AI_TIMEOUT
        self.session = session or requests.Session()

    def evaluate(self, request: EvalRequest) -> EvalResponse:
        if not self.url:
            return EvalResponse(ok=False, status="maybe", notes=["AI not configured: no evaluation URL."])
        try:
            resp = self.session.post(self.url, json=request.model_dump(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Advisory: request to {self.url} failed: {e}")
            return EvalResponse(ok=False, status="maybe",
                                notes=["AI request failed (network or timeout). Verdict is based on the database only."])

        if not resp.ok:
            notes = [f"AI evaluation unavailable (HTTP {resp.status_code})."]
            body = clip(resp.text)
            if body:
                notes.append(body)
            return EvalResponse(ok=False, status="maybe", notes=notes)

        try:
            data = resp.json()
        except ValueError:
            data = None
        if not isinstance(data, dict) or not data.get("ok"):
            return EvalResponse(ok=False, status="maybe",
                                notes=["AI reply was not usable. Verdict is based on the database only."])

        status = data.get("status") if data.get("status") in STATUSES else None
        notes = data.get("notes") if isinstance(data.get("notes"), list) else []
        return EvalResponse(ok=True, status=status, notes=[str(n) for n in notes])

    __call__ = evaluate


def default_advisor():
    """Remote handler when EVAL_URL is configured, otherwise the model directly."""
    if config.EVAL_URL:
        return EvalClient(config.EVAL_URL)
    return evaluate_product
