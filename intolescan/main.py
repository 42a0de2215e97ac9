import logging
import re
from typing import List

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from intolescan import config
from intolescan.advisory import evaluate_product
from intolescan.models import EvalRequest, EvalResponse, Profile, ScanResult
from intolescan.openfood_api import fetch_product
from intolescan.verdict import apply_advice, evaluate_for_profile, needs_escalation, not_found_verdict

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def origin_regex(origins) -> str:
    # "http://localhost" also allows "http://localhost:5173"
    alternatives = "|".join(re.escape(o.rstrip("/")) for o in origins)
    return rf"^(?:{alternatives})(?::\d+)?$"


app = FastAPI(
    title="IntoleScan API",
    description="Product evaluation for people with food intolerances",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origin_regex=origin_regex(config.ALLOW_ORIGINS),
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(RequestValidationError)
async def bad_body(request: Request, exc: RequestValidationError):
    logger.info(f"Rejected request to {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=400, content={"ok": False, "error": "Bad JSON body"})


@app.post("/api/eval", response_model=EvalResponse)
def eval_product(body: EvalRequest):
    # Downstream model failures still answer 200 with status "maybe"
    return evaluate_product(body)


@app.options("/api/eval")
def eval_preflight():
    return Response(status_code=204)


@app.api_route("/api/eval", methods=["GET", "PUT", "PATCH", "DELETE"])
def eval_method_not_allowed():
    return JSONResponse(status_code=405, content={"ok": False, "error": "Method not allowed"},
                        headers={"Allow": "POST, OPTIONS"})


@app.get("/scan/barcode/{code}", response_model=ScanResult)
def scan_barcode(code: str, intolerances: List[str] = Query(None), lang: str = Query(None)):
    lang = lang or config.NOTES_LANG
    profile = Profile(intolerances=intolerances or [])

    # 1. Open Food Facts
    product = fetch_product(code)

    # 2. Local rules, or a "not found" verdict instead of a 404
    verdict = evaluate_for_profile(product, profile, lang) if product else not_found_verdict(code, lang)

    # 3. Model opinion when the rules are inconclusive
    escalated = needs_escalation(verdict, product)
    if escalated:
        advice = evaluate_product(EvalRequest.for_product(code, product, profile, lang=lang))
        verdict = apply_advice(verdict, advice)

    return ScanResult(code=code, product=product, verdict=verdict, escalated=escalated)


@app.get("/api/health")
def health():
    return {"status": "healthy"}
