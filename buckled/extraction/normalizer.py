from __future__ import annotations

import re
from dataclasses import dataclass

# Whole-word misspelling fixes, applied in order.
_CORRECTIONS: dict[str, str] = {
    "oild": "oil",
    "oile": "oil",
    "oill": "oil",
    "braek": "brake",
    "brack": "brake",
    "tyre": "tire",
    "tyres": "tires",
    "battary": "battery",
    "battrey": "battery",
    "batter": "battery",
    "transmision": "transmission",
    "transmition": "transmission",
    "maintnance": "maintenance",
    "maintanance": "maintenance",
    "replacment": "replacement",
    "replacemnt": "replacement",
    "inspekshun": "inspection",
    "inspecshun": "inspection",
    "chekup": "checkup",
    "checkup": "check up",
    "airconditioner": "air conditioner",
    "aircon": "air conditioning",
    "ac": "air conditioning",
}

# Canonical services, most specific first: ties resolve to the earlier entry.
CANONICAL_SERVICES: dict[str, str] = {
    "oil change": "Oil Change",
    "brake pads": "Brake Pad Replacement",
    "brake pad": "Brake Pad Replacement",
    "brake service": "Brake Service",
    "brakes": "Brake Service",
    "brake": "Brake Service",
    "tire rotation": "Tire Rotation",
    "tires": "Tire Service",
    "tire": "Tire Service",
    "battery replacement": "Battery Replacement",
    "battery": "Battery Replacement",
    "transmission": "Transmission Service",
    "cabin air filter": "Cabin Air Filter Replacement",
    "cabin filter": "Cabin Air Filter Replacement",
    "air filter": "Air Filter Replacement",
    "tune up": "Tune Up",
    "tuneup": "Tune Up",
    "inspection": "Vehicle Inspection",
    "check up": "Vehicle Inspection",
    "checkup": "Vehicle Inspection",
    "air conditioning": "AC Service",
    "air conditioner": "AC Service",
    "ac service": "AC Service",
    "oil": "Oil Change",
}

_FILLER_WORDS = frozenset({"my", "our", "your", "the", "a", "an"})
_PUNCTUATION = re.compile(r"[^\w\s'-]")
_CORRECTION_PATTERNS = [
    (re.compile(rf"\b{re.escape(typo)}\b"), fix) for typo, fix in _CORRECTIONS.items()
]

_WINDOW_THRESHOLD = 0.8
_CORRECTION_PENALTY = 5
_CORRECTION_FLOOR = 85
_MATCHED_CAP = 95
_UNMATCHED_FLOOR = 60
_UNMATCHED_PENALTY = 15


@dataclass(frozen=True)
class NormalizedService:
    corrected: str
    standardized: str
    confidence: float


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(
                min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost)
            )
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Normalized edit similarity in [0, 1]; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def title_case(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split())


def _clean(text: str) -> str:
    text = _PUNCTUATION.sub(" ", text.lower())
    return " ".join(word for word in text.split() if word not in _FILLER_WORDS)


def _same_word(word: str, key: str) -> bool:
    return word == key or word == f"{key}s" or f"{word}s" == key


def _key_score(words: list[str], key: str) -> float:
    """
    Score one canonical key against the corrected words.

    Single-word keys need the word itself (or its plural) so that "tired" or
    "shakes" never pass for "tire" or "brakes". Longer keys are fuzzy-matched
    against each same-length word window and must clear a higher bar.
    """
    key_words = key.split()
    size = len(key_words)
    if size == 1:
        return 1.0 if any(_same_word(word, key) for word in words) else 0.0
    if len(words) <= size:
        score = similarity(" ".join(words), key)
    else:
        score = max(
            similarity(" ".join(words[start : start + size]), key)
            for start in range(len(words) - size + 1)
        )
    return score if score >= _WINDOW_THRESHOLD else 0.0


def normalize_service(text: str) -> NormalizedService:
    """
    Correct common misspellings and map free text to a canonical service name.

    "brake pads are squeeking" still scores 1.0 for "brake pads" because the
    key is compared with the two-word window at the start of the text.
    """
    corrected = _clean(text)
    confidence: float = 100

    for pattern, fix in _CORRECTION_PATTERNS:
        replaced = pattern.sub(fix, corrected)
        if replaced != corrected:
            corrected = replaced
            confidence = max(_CORRECTION_FLOOR, confidence - _CORRECTION_PENALTY)

    words = corrected.split()
    best_match: str | None = None
    best_score = 0.0
    for key, canonical in CANONICAL_SERVICES.items():
        score = _key_score(words, key)
        if score > best_score:
            best_match, best_score = canonical, score

    if best_match is not None:
        return NormalizedService(
            corrected=corrected,
            standardized=best_match,
            confidence=min(_MATCHED_CAP, round(confidence + best_score * 10)),
        )

    return NormalizedService(
        corrected=corrected,
        standardized=title_case(corrected) or "General Service",
        confidence=max(_UNMATCHED_FLOOR, confidence - _UNMATCHED_PENALTY),
    )
