"""Interpretation of caller utterances: spoken codes, consent, callback times.

All functions are pure and never raise on odd input; "nothing detected"
is returned as None or Consent.AMBIGUOUS.
"""

import re

from sitekb.models.enums import Consent

CODE_LENGTH = 6

NUMBER_WORDS = {
    "zero": "0", "oh": "0", "o": "0",
    "one": "1", "won": "1",
    "two": "2", "to": "2", "too": "2",
    "three": "3", "tree": "3",
    "four": "4", "for": "4", "fore": "4",
    "five": "5",
    "six": "6", "sic": "6",
    "seven": "7",
    "eight": "8", "ate": "8",
    "nine": "9", "niner": "9",
}

TOKEN_SEPARATORS = re.compile(r"[\s,.\-]+")

NEGATIVE_PHRASES = (
    "no", "not", "can't", "cannot", "busy", "bad time", "later",
    "call back", "not now", "don't", "nope",
)
POSITIVE_PHRASES = (
    "yes", "yeah", "yep", "sure", "okay", "ok", "good", "fine", "perfect",
    "go ahead", "please", "of course",
)

SENSITIVE_PHRASES = (
    "balance", "account number", "account status", "status", "my account",
)


def _phrase_pattern(phrases: tuple[str, ...]) -> re.Pattern:
    alternatives = "|".join(re.escape(p) for p in sorted(phrases, key=len, reverse=True))
    return re.compile(rf"(?<![\w'])(?:{alternatives})(?![\w'])", re.IGNORECASE)


NEGATIVE_PATTERN = _phrase_pattern(NEGATIVE_PHRASES)
POSITIVE_PATTERN = _phrase_pattern(POSITIVE_PHRASES)
SENSITIVE_PATTERN = _phrase_pattern(SENSITIVE_PHRASES)

_WEEKDAYS = "monday|tuesday|wednesday|thursday|friday|saturday|sunday"
TIME_PHRASE = re.compile(
    r"\b(?:"
    r"tomorrow|today|tonight|this (?:morning|afternoon|evening)"
    rf"|(?:next |on )?(?:{_WEEKDAYS})"
    r"|(?:in the )?(?:morning|afternoon|evening)"
    r"|next week"
    r"|in (?:\d+|an?|a few|a couple of) (?:minutes?|hours?|days?)"
    r"|(?:at )?\d{1,2}(?::\d{2})?\s*(?:am|pm|a\.m\.|p\.m\.)"
    r"|(?:at )?\d{1,2}:\d{2}"
    r")",
    re.IGNORECASE,
)


def _clean(text: str | None) -> str:
    return (text or "").strip().lower()


def extract_spoken_digits(text: str | None) -> str | None:
    """Decode a 6-digit code from keypad or speech-to-text output.

    A string carrying exactly six digit characters is taken as is.
    Otherwise tokens are mapped one by one (number words to one digit,
    digit runs to their digits) and the result must be exactly six digits.

    >>> extract_spoken_digits("one two three four five six")
    '123456'
    >>> extract_spoken_digits("my code is 4 8 3 9 2 1")
    '483921'
    """
    text = _clean(text)
    if not text:
        return None

    digits_only = re.sub(r"\D", "", text)
    if len(digits_only) == CODE_LENGTH:
        return digits_only

    digits = []
    for token in TOKEN_SEPARATORS.split(text):
        if not token:
            continue
        if token.isdigit():
            digits.append(token)
        elif token in NUMBER_WORDS:
            digits.append(NUMBER_WORDS[token])

    code = "".join(digits)
    return code if len(code) == CODE_LENGTH else None


def classify_consent(text: str | None) -> Consent:
    """Classify an answer to "is this a good time?".

    Negative phrases are checked first so "no, not now, sorry" and
    "yes but call me later" both read as a decline.
    """
    text = _clean(text)
    if not text:
        return Consent.AMBIGUOUS
    if NEGATIVE_PATTERN.search(text):
        return Consent.NEGATIVE
    if POSITIVE_PATTERN.search(text):
        return Consent.AFFIRMATIVE
    return Consent.AMBIGUOUS


def extract_callback_time(text: str | None) -> str | None:
    """Text from the first time phrase to the end of the utterance, if any."""
    if not text:
        return None
    match = TIME_PHRASE.search(text)
    if match is None:
        return None
    return text[match.start():].strip().rstrip(".!?") or None


def is_sensitive_request(text: str | None) -> bool:
    """Whether the utterance asks for account-level information."""
    return bool(SENSITIVE_PATTERN.search(_clean(text)))
