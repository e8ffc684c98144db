"""
Response Parser Module.

Recovers a single JSON object from free-form model output. Models are
told to answer with bare JSON, but responses still arrive wrapped in
markdown fences, surrounded by prose, or cut off at the token limit
while emitting the last line item.

Steps:
    1. Strip markdown code fences
    2. Take the text from the first "{" to its matching "}"
    3. If there is no matching "}", repair the truncated tail
    4. json.loads the candidate

The repair is deliberately shallow: drop the incomplete trailing
"key": value fragment and close whatever brackets are still open.
Truncation inside a string that contains a comma, or inside the first
key, is not recovered.
"""

import json
import re
from typing import Any, Dict

from invoice_lens.utils.logger import get_logger
from invoice_lens.utils.exceptions import NoJsonFoundError

logger = get_logger(__name__)

_FENCE_JSON = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE_BARE = re.compile(r"```\s*")

# ,"key": partial-value  (or ,"partial-key) running to the end of the text
_TRAILING_FRAGMENT = re.compile(r',\s*"[^"]*"?\s*:?\s*[^,}\]]*$')
_TRAILING_COMMA = re.compile(r',\s*$')

_CLOSERS = {"{": "}", "[": "]"}

# Characters of cleaned text quoted when no object is found
_NO_JSON_EXCERPT = 300


def strip_code_fences(text: str) -> str:
    """Remove ```json and bare ``` markers anywhere in the text."""
    text = _FENCE_JSON.sub("", text)
    text = _FENCE_BARE.sub("", text)
    return text.strip()


def find_object_end(text: str, start: int) -> int:
    """
    Find the brace that closes the object opened at ``start``.

    Args:
        text: Cleaned response text.
        start: Index of the opening "{".

    Returns:
        Index of the matching "}", or -1 if the text ends first.
    """
    depth = 0
    for index in range(start, len(text)):
        char = text[index]
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index
    return -1


def closing_sequence(text: str) -> str:
    """
    Build the closers needed to balance every still-open "{" and "[".

    Closers are emitted innermost first. Brackets inside string literals
    are ignored.

    Example:
        >>> closing_sequence('{"lineItems":[{"description":"x"')
        '}]}'
    """
    stack = []
    in_string = False
    escaped = False

    for char in text:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char in _CLOSERS:
            stack.append(char)
        elif char in ("}", "]") and stack:
            stack.pop()

    return "".join(_CLOSERS[opener] for opener in reversed(stack))


def repair_truncated(candidate: str) -> str:
    """
    Best-effort repair of a JSON object cut off before its closing brace.

    Args:
        candidate: Text from the first "{" to the end of the response.

    Returns:
        Candidate with the trailing fragment removed and closers appended.
    """
    repaired = _TRAILING_FRAGMENT.sub("", candidate)
    repaired = _TRAILING_COMMA.sub("", repaired)
    return repaired + closing_sequence(repaired)


def parse(raw_text: str) -> Dict[str, Any]:
    """
    Extract the JSON object from a model response.

    Args:
        raw_text: Raw completion text.

    Returns:
        The parsed object.

    Raises:
        NoJsonFoundError: If there is no "{" in the text or the candidate
                          (after any repair) is not valid JSON. The error
                          carries ``raw_text`` for manual recovery.

    Example:
        >>> parse('Sure!\\n```json\\n{"invoiceNo": "INV-9"}\\n```')
        {'invoiceNo': 'INV-9'}
    """
    raw_text = raw_text or ""
    text = strip_code_fences(raw_text)

    start = text.find("{")
    if start == -1:
        raise NoJsonFoundError(
            "No JSON object in response:\n" + text[:_NO_JSON_EXCERPT],
            raw_text=raw_text
        )

    end = find_object_end(text, start)

    if end == -1:
        candidate = repair_truncated(text[start:])
        logger.warning(
            f"Response truncated after {len(text) - start} chars; "
            f"repaired tail: {candidate[-40:]!r}"
        )
    else:
        candidate = text[start:end + 1]

    try:
        parsed = json.loads(candidate)
    except json.JSONDecodeError as e:
        raise NoJsonFoundError(
            f"Could not parse JSON from response: {e.msg} (char {e.pos})",
            raw_text=raw_text
        )

    logger.debug(f"Parsed JSON object with {len(parsed)} keys")
    return parsed
