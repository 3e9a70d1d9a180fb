import re
import pandas as pd
from normalizer import normalize_code

# Course-code-like tokens: 1-4 letters, optional space, 1-3 digits, optional
# decimal suffix ("CS 102", "MA111.5").
CODE_RE = re.compile(r'\b([A-Za-z]{1,4})\s?(\d{1,3}(?:\.\d+)?)\b')

# Full token scan: course codes, parentheses, and the and/or keywords.
TOKEN_RE = re.compile(
    r'\b[A-Za-z]{1,4}\s?\d{1,3}(?:\.\d+)?\b|\(|\)|\band\b|\bor\b',
    re.IGNORECASE,
)

# "/" and "|" read as "or".
OR_SYMBOLS_RE = re.compile(r'[/|]')

OPERATORS = {"and", "or"}
PRECEDENCE = {"or": 1, "and": 2}


def _is_blank(prereq_text) -> bool:
    if prereq_text is None:
        return True
    if isinstance(prereq_text, float) and pd.isna(prereq_text):
        return True
    return not str(prereq_text).strip()


def extract_prereq_codes(prereq_text) -> list[str]:
    """Every canonical course code mentioned anywhere in the text, first-seen order."""
    if _is_blank(prereq_text):
        return []
    found: list[str] = []
    for match in CODE_RE.finditer(str(prereq_text)):
        canon = normalize_code(f"{match.group(1)} {match.group(2)}")
        if canon and canon not in found:
            found.append(canon)
    return found


def tokenize_prereqs(prereq_text) -> list[str]:
    """
    Best-effort token extraction.

    Returns canonical course codes, "and", "or", "(" and ")". Any other text
    is dropped, so "Take CS 101 and (MA 111 / MA 113) first" becomes
    ["CS101", "and", "(", "MA111", "or", "MA113", ")"].
    """
    if _is_blank(prereq_text):
        return []
    normalized = OR_SYMBOLS_RE.sub(" or ", str(prereq_text))
    tokens: list[str] = []
    for match in TOKEN_RE.finditer(normalized):
        raw = match.group(0)
        lower = raw.lower()
        if lower in OPERATORS or raw in ("(", ")"):
            tokens.append(lower)
            continue
        canon = normalize_code(raw)
        if canon:
            tokens.append(canon)
    return tokens


def rpn_from_tokens(tokens: list[str]) -> list[str]:
    """
    Infix -> postfix (shunting-yard). "and" binds tighter than "or";
    unmatched ")" is ignored and leftover "(" never reaches the output.
    """
    output: list[str] = []
    ops: list[str] = []

    for token in tokens:
        if token in OPERATORS:
            while ops and ops[-1] in OPERATORS and PRECEDENCE[ops[-1]] >= PRECEDENCE[token]:
                output.append(ops.pop())
            ops.append(token)
        elif token == "(":
            ops.append(token)
        elif token == ")":
            while ops and ops[-1] != "(":
                output.append(ops.pop())
            if ops:
                ops.pop()
        else:
            output.append(token)

    while ops:
        op = ops.pop()
        if op in OPERATORS:
            output.append(op)
    return output


def dnf_from_rpn(rpn: list[str]) -> list[list[str]] | None:
    """
    Evaluates a postfix stream into DNF clauses.

    A literal pushes [[code]], "or" concatenates its operands' clause lists,
    "and" takes the cross product (each left clause joined with each right
    clause). Returns None when the stream does not reduce to exactly one
    clause list.
    """
    stack: list[list[list[str]]] = []
    for token in rpn:
        if token not in OPERATORS:
            stack.append([[token]])
            continue
        if len(stack) < 2:
            return None
        right = stack.pop()
        left = stack.pop()
        if token == "or":
            stack.append(left + right)
        else:
            stack.append([l + r for l in left for r in right])
    if len(stack) != 1:
        return None
    return stack[0]


def _dedupe(codes: list[str]) -> list[str]:
    return list(dict.fromkeys(codes))


def parse_prereq_groups(prereq_text) -> list[list[str]]:
    """
    Parses free-text prerequisites into DNF groups.

    Each group is a list of canonical codes that must ALL be taken; the
    course is satisfied when ANY group is. [] means no prerequisites.

      "MA 111 and (CS 102 or CS 111.5)" -> [["MA111", "CS102"], ["MA111", "CS1115"]]

    Malformed expressions (dangling operators) fall back to a single group
    holding every code found in the text.
    """
    tokens = tokenize_prereqs(prereq_text)
    if not tokens:
        return []
    dnf = dnf_from_rpn(rpn_from_tokens(tokens))
    if not dnf:
        codes = extract_prereq_codes(prereq_text)
        return [codes] if codes else []
    return [_dedupe(group) for group in dnf]


def is_fallback_formula(prereq_text) -> bool:
    """True when the text has tokens but did not parse into a clean DNF."""
    tokens = tokenize_prereqs(prereq_text)
    if not tokens:
        return False
    return not dnf_from_rpn(rpn_from_tokens(tokens))


def prereq_course_codes(groups: list[list[str]]) -> list[str]:
    """All codes referenced by a parsed formula, first-seen order."""
    return _dedupe([code for group in groups for code in group])


def prereqs_satisfied(groups: list[list[str]], available_codes: set) -> bool:
    """
    Returns True if at least one group is fully contained in available_codes.
    An empty formula is always satisfied.
    """
    if not groups:
        return True
    return any(all(code in available_codes for code in group) for group in groups)


def missing_prereqs(groups: list[list[str]], available_codes: set) -> list[str]:
    """
    Codes still missing, or [] when satisfied.

    No single group is preferred: the union of missing codes across every
    group is reported, in first-seen order.
    """
    if prereqs_satisfied(groups, available_codes):
        return []
    missing: list[str] = []
    for group in groups:
        for code in group:
            if code not in available_codes and code not in missing:
                missing.append(code)
    return missing


def build_prereq_check_string(groups: list[list[str]], available_codes: set) -> str:
    """
    Returns a human-readable string showing which prereqs are met.
    Examples:
      "CS101 ✓"
      "CS101 ✓ and MA111 ✗"
      "(CS101 ✓ and MA111 ✗) or (CS101 ✓ and MA113 ✓)"
    """
    if not groups:
        return "No prerequisites"

    def label_code(code: str) -> str:
        return f"{code} ✓" if code in available_codes else f"{code} ✗"

    parts = [" and ".join(label_code(c) for c in group) for group in groups]
    if len(parts) == 1:
        return parts[0]
    return " or ".join(
        f"({part})" if len(group) > 1 else part
        for part, group in zip(parts, groups)
    )
