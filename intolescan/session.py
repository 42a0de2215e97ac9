"""
The scan-to-verdict pipeline and the state it owns.

A ``ScanSession`` holds the profile, the history, the last result and the
last error. A new search supersedes any search still in flight: when a stale
search returns, its result is dropped and nothing it produced is stored.
"""
import itertools
import logging
from typing import Callable, List, Optional

from intolescan import config
from intolescan.advisory import default_advisor
from intolescan.db import HistoryStore, ProfileStore
from intolescan.models import EvalRequest, EvalResponse, HistoryEntry, ProductRecord, Profile, ScanResult
from intolescan.openfood_api import fetch_product
from intolescan.verdict import apply_advice, evaluate_for_profile, needs_escalation, not_found_verdict

logger = logging.getLogger(__name__)


class ScanSession:
    def __init__(self, profile_store: Optional[ProfileStore] = None, history_store: Optional[HistoryStore] = None,
                 lookup: Optional[Callable[[str], Optional[ProductRecord]]] = None,
                 advisor: Optional[Callable[[EvalRequest], EvalResponse]] = None,
                 lang: Optional[str] = None):
        self.profile_store = profile_store or ProfileStore()
        self.history_store = history_store or HistoryStore()
        self.lookup = lookup or fetch_product
        self.advisor = advisor or default_advisor()
        self.lang = lang or config.NOTES_LANG
        self.profile: Optional[Profile] = self.profile_store.load()
        self.history: List[HistoryEntry] = self.history_store.load()
        self.result: Optional[ScanResult] = None
        self.error: Optional[str] = None
        self.loading = False
        self._tokens = itertools.count(1)
        self._current = 0

    # ---------- profile ----------
    def toggle_intolerance(self, key: str) -> Profile:
        self.profile = self.profile_store.toggle(key)
        return self.profile

    def complete_profile(self, name: str = "") -> Profile:
        self.profile = self.profile_store.complete(name)
        return self.profile

    def reset_profile(self) -> None:
        self.profile_store.clear()
        self.profile = None

    # ---------- history ----------
    def clear_history(self) -> None:
        self.history_store.clear()
        self.history = []

    # ---------- pipeline ----------
    def _is_current(self, token: int) -> bool:
        return token == self._current

    def search(self, code: str) -> Optional[ScanResult]:
        code = (code or "").strip()
        if not code:
            return None

        token = next(self._tokens)
        self._current = token
        self.loading = True
        self.error = None
        self.result = None

        product = self.lookup(code)
        if not self._is_current(token):
            logger.info(f"Dropping superseded search for {code}")
            return None

        if product is None:
            verdict = not_found_verdict(code, self.lang)
        else:
            verdict = evaluate_for_profile(product, self.profile, self.lang)

        escalated = needs_escalation(verdict, product)
        if escalated:
            request = EvalRequest.for_product(code, product, self.profile, lang=self.lang)
            advice = self.advisor(request)
            if not self._is_current(token):
                logger.info(f"Dropping superseded search for {code}")
                return None
            verdict = apply_advice(verdict, advice)

        result = ScanResult(code=code, product=product, verdict=verdict, escalated=escalated)
        if product is not None:
            self.history = self.history_store.add(HistoryEntry(
                code=code, name=product.name, brand=product.brand, status=verdict.status,
            ))
        self.result = result
        self.loading = False
        return result

    def scan(self, scanner, timeout: Optional[float] = None) -> Optional[ScanResult]:
        """Takes the first accepted code from a scanner and searches it."""
        self.error = None
        code = scanner.scan_once(timeout=timeout)
        if scanner.error:
            self.error = scanner.error
        if not code:
            return None
        return self.search(code)
