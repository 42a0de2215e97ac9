# Local JSON storage for the profile and the scan history

import json
import logging
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from intolescan import config
from intolescan.allergens import DEFAULT_INTOLERANCES, is_known
from intolescan.models import HistoryEntry, Profile

logger = logging.getLogger(__name__)

PROFILE_DOC = "profile.json"
HISTORY_DOC = "history.json"


class JsonDocument:
    """A single JSON file; unreadable or malformed content reads as None."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def read(self):
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable document {self.path}: {e}")
            return None

    def write(self, data) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        tmp.replace(self.path)

    def remove(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class ProfileStore:
    def __init__(self, data_dir: Optional[Path] = None):
        self.doc = JsonDocument(Path(data_dir or config.DATA_DIR) / PROFILE_DOC)

    def load(self) -> Optional[Profile]:
        data = self.doc.read()
        if not isinstance(data, dict):
            return None
        try:
            return Profile.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed profile: {e}")
            return None

    def save(self, profile: Optional[Profile]) -> None:
        if profile is None:
            self.doc.remove()
            return
        self.doc.write(profile.model_dump())

    def clear(self) -> None:
        self.doc.remove()

    def toggle(self, key: str, name: str = "") -> Profile:
        if not is_known(key):
            raise ValueError(f"unknown intolerance: {key}")
        current = self.load() or Profile(name=name)
        profile = current.toggled(key)
        self.save(profile)
        return profile

    def complete(self, name: str = "") -> Profile:
        """
        Finishes onboarding: a blank name becomes "Me" and an empty selection
        becomes the default gluten + milk protein pair.
        """
        current = self.load()
        intolerances = current.intolerances if current and current.intolerances else list(DEFAULT_INTOLERANCES)
        profile = Profile(name=(name or "").strip() or (current.name if current else "") or "Me",
                          intolerances=intolerances)
        self.save(profile)
        return profile


class HistoryStore:
    def __init__(self, data_dir: Optional[Path] = None, limit: Optional[int] = None):
        self.doc = JsonDocument(Path(data_dir or config.DATA_DIR) / HISTORY_DOC)
        self.limit = limit or config.HISTORY_LIMIT

    def load(self) -> List[HistoryEntry]:
        data = self.doc.read()
        if not isinstance(data, list):
            return []
        entries = []
        seen = set()
        for item in data:
            try:
                entry = HistoryEntry.model_validate(item)
            except ValidationError:
                continue
            entries.append(entry)
        entries.sort(key=lambda e: e.ts, reverse=True)
        unique = []
        for entry in entries:
            if entry.code in seen:
                continue
            seen.add(entry.code)
            unique.append(entry)
        return unique[:self.limit]

    def save(self, entries: List[HistoryEntry]) -> None:
        self.doc.write([e.model_dump(mode="json") for e in entries[:self.limit]])

    def add(self, entry: HistoryEntry) -> List[HistoryEntry]:
        """Puts the entry at the front, replacing any older entry for the same code."""
        entries = [entry] + [e for e in self.load() if e.code != entry.code]
        entries = entries[:self.limit]
        self.save(entries)
        return entries

    def clear(self) -> None:
        self.doc.remove()
