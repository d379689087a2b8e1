"""
Fuzzy comparison of artist and venue names.
"""
import re
import unicodedata

DEFAULT_SUBSTRING_SCORE = 0.8

_QUALIFIER_RE = re.compile(r"[(\[]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def base_name(name: str) -> str:
    """Drop qualifiers: "Jamie xx (18+ Event)" -> "Jamie xx"."""
    if not name:
        return ""
    return _QUALIFIER_RE.split(name, maxsplit=1)[0].strip()


def normalize_name(name: str) -> str:
    """Lowercase, fold accents and keep only letters and digits."""
    if not name:
        return ""
    folded = unicodedata.normalize("NFKD", name)
    folded = "".join(c for c in folded if not unicodedata.combining(c))
    return _NON_ALNUM_RE.sub("", folded.lower())


def has_qualifier(name: str) -> bool:
    return bool(name) and bool(_QUALIFIER_RE.search(name))


def name_similarity(a: str, b: str, substring_score: float = DEFAULT_SUBSTRING_SCORE) -> float:
    """
    Score two names in [0, 1].

    Equal after normalization scores 1.0, containment scores
    ``substring_score``, anything else falls back to the overlap of the two
    unique-character sets. The fallback ignores order on purpose and only
    separates candidates that the other signals leave tied.
    """
    norm_a = normalize_name(a)
    norm_b = normalize_name(b)
    if not norm_a or not norm_b:
        return 0.0

    if norm_a == norm_b:
        return 1.0

    if norm_a in norm_b or norm_b in norm_a:
        return substring_score

    chars_a = set(norm_a)
    chars_b = set(norm_b)
    return len(chars_a & chars_b) / max(len(chars_a), len(chars_b))


def venues_overlap(a: str, b: str) -> bool:
    """True when one normalized venue name equals or contains the other."""
    norm_a = normalize_name(a)
    norm_b = normalize_name(b)
    return bool(norm_a) and bool(norm_b) and (norm_a in norm_b or norm_b in norm_a)


class NameSimilarityScorer:
    """``name_similarity`` bound to a configured substring score."""

    def __init__(self, substring_score: float = DEFAULT_SUBSTRING_SCORE):
        self.substring_score = substring_score

    def score(self, a: str, b: str) -> float:
        return name_similarity(a, b, self.substring_score)

    __call__ = score
