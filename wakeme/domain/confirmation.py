"""Classify call transcripts as "traveler confirmed awake" or not."""

import re

CONFIRMATION_PHRASES: tuple[str, ...] = (
    "i'm awake",
    "i am awake",
    "yes i'm up",
    "i'm up",
    "awake",
    "yes",
    "okay i'm ready",
    "ready",
)

# Speaker labels used by voice vendors for the bot side of the conversation.
ASSISTANT_PREFIXES = ("ai", "assistant", "bot", "agent")

_SPEAKER_RE = re.compile(r"^\s*([A-Za-z]+)\s*:\s*(.*)$")
_PUNCT_RE = re.compile(r"[^\w\s']")
_SPACE_RE = re.compile(r"\s+")

_PHRASE_RE = re.compile(
    r"\b(?:"
    + "|".join(re.escape(p) for p in sorted(CONFIRMATION_PHRASES, key=len, reverse=True))
    + r")\b"
)


def normalize_text(text: str) -> str:
    """Lower-case, unify apostrophes and drop punctuation."""
    text = text.lower().replace("’", "'").replace("‘", "'").replace("`", "'")
    text = _PUNCT_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


def extract_caller_speech(transcript: str) -> str:
    """Drop lines spoken by the assistant from a speaker-labelled transcript.

    Unlabelled lines are kept as caller speech.
    """
    caller_lines = []
    for line in transcript.splitlines():
        match = _SPEAKER_RE.match(line)
        if match and match.group(1).lower() in ASSISTANT_PREFIXES:
            continue
        caller_lines.append(match.group(2) if match else line)
    return "\n".join(caller_lines)


def is_awake_confirmation(transcript: str | None) -> bool:
    """True if the caller said one of the confirmation phrases."""
    if not transcript or not transcript.strip():
        return False
    speech = normalize_text(extract_caller_speech(transcript))
    if not speech:
        return False
    return _PHRASE_RE.search(speech) is not None
