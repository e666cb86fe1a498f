"""
Detection of non-speech artifacts emitted by the speech engine.

Whisper fills silence and music with tokens like "[Music]", "(applause)"
or a row of musical notes. None of those belong in a transcript.
"""

import re


# One bracketed / parenthesized / starred span; group 1..3 hold its content
_MARKER = r"\[([^\[\]]*)\]|\(([^()]*)\)|\*([^*]*)\*"
_MARKER_RE = re.compile(_MARKER)

# A whole line made of markers only, e.g. "[Music] [Applause]"
_MARKERS_ONLY_RE = re.compile(rf"^(?:\s*(?:{_MARKER}))+\s*$")

# Text wrapped in musical notes, e.g. "♪ la la la ♪"
_MUSIC_RE = re.compile(r"^[♪♫♬]+.*[♪♫♬]+$", re.DOTALL)

# Words that mark a bracketed span as a sound description, not speech
NON_SPEECH_WORDS = frozenset({
    "music", "applause", "laughter", "laughing", "laughs", "silence", "blank_audio",
    "inaudible", "noise", "static", "sound", "sounds", "foreign", "cough", "coughing",
    "sigh", "sighs", "breathing", "clapping", "cheering", "beep", "beeping",
    "chime", "chimes", "ringing", "typing", "click", "clicking", "background",
    "humming", "singing", "whistling", "crosstalk", "unintelligible",
})


def _is_tag(content: str) -> bool:
    """
    A span is a tag when it is one upper-case token ("BLANK_AUDIO") or
    names a sound ("upbeat music", "speaking in foreign language").
    """
    content = content.strip()
    if not content:
        return True
    if re.fullmatch(r"[A-Z0-9_]+", content):
        return True
    words = re.findall(r"[a-z_]+", content.lower())
    return any(word in NON_SPEECH_WORDS for word in words)


def is_hallucination(text: str) -> bool:
    """
    Check whether text is a known non-speech artifact.

    Examples:
        "[Music]"              -> True
        "[Music] [Applause]"   -> True
        "♪♪ ..."               -> True
        "(we should ship it)"  -> False
        "Hello team"           -> False
    """
    text = text.strip()
    if not text:
        return True

    if _MARKERS_ONLY_RE.match(text):
        spans = [next(g for g in m.groups() if g is not None) for m in _MARKER_RE.finditer(text)]
        if all(_is_tag(span) for span in spans):
            return True

    if _MUSIC_RE.match(text):
        return True

    # Only symbols and punctuation
    return not any(ch.isalnum() for ch in text)
