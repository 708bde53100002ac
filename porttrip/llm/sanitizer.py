# llm/sanitizer.py
"""
Answer Sanitizer
Cleans raw model text before it is shown:

1. Collapse spacing: drop bullet-only lines, squeeze 3+ newlines to 2
2. Demote fake numbered headings ("2. Getting there:" over a bullet
   list) to bold labels so they don't start an ordered list
3. Renumber ordered lists 1, 2, 3 ... restarting after every break
   (blank line, bullet, markdown heading, bold label)

Pure and deterministic; sanitize_answer(sanitize_answer(x)) == sanitize_answer(x).
"""

import re
from typing import List

_EMPTY_BULLET = re.compile(r"^[ \t]*[-•][ \t]*$")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")

_FAKE_HEADING = re.compile(r"^[ \t]*\d+[.)][ \t]*([A-Z][^\n]{0,60}?):?[ \t]*$")
_NUMBERED = re.compile(r"^([ \t]*)(\d+)[.)][ \t]+(.*)$")

_BULLET = re.compile(r"^[ \t]*[-•]([ \t]|$)")
_HEADING = re.compile(r"^[ \t]*#{1,6}\s")
_BOLD_LABEL = re.compile(r"^[ \t]*\*\*.*\*\*:?[ \t]*$")


def _is_blank(line: str) -> bool:
    return not line.strip()


def _is_break(line: str) -> bool:
    return (
        _is_blank(line)
        or bool(_BULLET.match(line))
        or bool(_HEADING.match(line))
        or bool(_BOLD_LABEL.match(line))
    )


def collapse_spacing(text: str) -> str:
    """Remove bullet-only lines, then squeeze runs of blank lines"""
    lines = [line for line in text.split("\n") if not _EMPTY_BULLET.match(line)]
    return _EXTRA_NEWLINES.sub("\n\n", "\n".join(lines))


def demote_fake_headings(text: str) -> str:
    """
    Turn "<n>. <Capitalized phrase>[:]" (or "<n>) ...") into "**<phrase>:**" when the
    next line is a bullet, blank or heading line and the line does not
    continue a numbered list.

    Example:
        "1. Getting there:\\n- Metro L3" -> "**Getting there:**\\n- Metro L3"
    """
    lines = text.split("\n")
    out: List[str] = []

    for i, line in enumerate(lines):
        match = _FAKE_HEADING.match(line)
        if match and i + 1 < len(lines):
            next_line = lines[i + 1]
            followed_by_block = (
                _is_blank(next_line)
                or bool(_BULLET.match(next_line))
                or bool(_HEADING.match(next_line))
            )
            continues_list = bool(out) and bool(_NUMBERED.match(out[-1]))
            if followed_by_block and not continues_list:
                out.append(f"**{match.group(1).strip()}:**")
                continue
        out.append(line)

    return "\n".join(out)


def renumber_lists(text: str) -> str:
    """
    Renumber every contiguous ordered list from 1

    Example:
        "5. A\\n9. B\\n1. C" -> "1. A\\n2. B\\n3. C"
    """
    lines = text.split("\n")
    counter = 0

    for i, line in enumerate(lines):
        match = _NUMBERED.match(line)
        if match:
            counter += 1
            indent, _, content = match.groups()
            lines[i] = f"{indent}{counter}. {content}"
        elif _is_break(line):
            counter = 0

    return "\n".join(lines)


def sanitize_answer(text: str) -> str:
    """
    Run all sanitizer passes in order

    Args:
        text: Raw model output

    Returns:
        str: Display-ready text
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n")
    text = collapse_spacing(text)
    text = demote_fake_headings(text)
    return renumber_lists(text)
