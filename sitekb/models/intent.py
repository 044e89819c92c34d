"""Intent data model and ingestion-time normalization."""

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Intent:
    """A canonical support topic with trigger phrases and canned responses.

    Always built through normalize_intent() so that the scoring components
    only ever see one shape: lowercase name, keyword and pattern tuples, and
    at least one non-empty response.
    """

    name: str
    responses: tuple[str, ...]
    keywords: tuple[str, ...] = ()
    patterns: tuple[str, ...] = ()
    id: str | None = field(default=None, compare=False)

    def __post_init__(self):
        if not self.name:
            raise ValueError("name must not be empty")
        if not self.responses or not all(r.strip() for r in self.responses):
            raise ValueError(f"intent '{self.name}' must have at least one non-empty response")

    @property
    def response(self) -> str:
        """The primary response, used as the resolved answer."""
        return self.responses[0]

    def to_record(self) -> dict:
        record = {
            "name": self.name,
            "keywords": list(self.keywords),
            "patterns": list(self.patterns),
            "responses": list(self.responses),
        }
        if self.id:
            record["id"] = self.id
        return record


def _clean_list(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        value = [value]
    return tuple(str(v).strip() for v in value if v is not None and str(v).strip())


def normalize_intent(raw: dict) -> Intent | None:
    """Resolve the loose stored intent shape into an Intent.

    Accepts either ``response`` (a string) or ``responses`` (a list), and
    missing ``keywords``/``patterns``. Returns None when the record has no
    name or no usable response, so it never reaches scoring.
    """
    name = str(raw.get("name") or "").strip().lower()
    if not name:
        logger.debug("Dropping intent without a name: %r", raw)
        return None

    responses = _clean_list(raw.get("responses"))
    if not responses:
        responses = _clean_list(raw.get("response"))
    if not responses:
        logger.warning("Dropping intent '%s': no non-empty response", name)
        return None

    return Intent(
        name=name,
        responses=responses,
        keywords=_clean_list(raw.get("keywords")),
        patterns=_clean_list(raw.get("patterns")),
        id=raw.get("id"),
    )


def normalize_intents(records: list[dict]) -> list[Intent]:
    """Normalize a whole intent collection, skipping unusable records."""
    intents = []
    for raw in records:
        intent = normalize_intent(raw)
        if intent is not None:
            intents.append(intent)
    return intents
