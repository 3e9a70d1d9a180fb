import math
import re

# Anything that is not a letter or digit is dropped from a canonical code.
NON_CODE_CHARS = re.compile(r'[^A-Z0-9]')

# Credit strings like "3", "3.0", "3 credits", "1.5 cr." keep only the leading number.
CREDIT_NUMBER = re.compile(r"-?\d*\.?\d+")


def normalize_code(raw) -> str:
    """
    Canonicalizes a course code: upper-case letters and digits only.

    'cs 101', 'CS-101', 'CS101' and ' cs101 ' all become 'CS101'.
    Returns '' for None or input without any letters/digits.
    """
    if raw is None:
        return ""
    return NON_CODE_CHARS.sub("", str(raw).strip().upper())


def parse_credits(val) -> float:
    """Parses a credit value, treating anything unparsable as 0."""
    if val is None or isinstance(val, bool):
        return 0.0
    if isinstance(val, (int, float)):
        return float(val) if math.isfinite(val) else 0.0
    match = CREDIT_NUMBER.search(str(val))
    if match is None:
        return 0.0
    return float(match.group(0))


def round_credits(val: float) -> float:
    return round(float(val), 2) + 0.0


def normalize_input(raw_str: str, catalog_codes: set) -> dict:
    """
    Splits comma/newline/semicolon-separated input and canonicalizes each code.

    Returns:
      {
        "valid":          ["CS101", "MA111"],   # canonical + found in catalog
        "invalid":        ["!!!"],              # nothing left after canonicalizing
        "not_in_catalog": ["CS999"]             # canonical but unknown course
      }
    """
    if not raw_str or not str(raw_str).strip():
        return {"valid": [], "invalid": [], "not_in_catalog": []}

    tokens = re.split(r'[,\n;]+', str(raw_str))
    valid = []
    invalid = []
    not_in_catalog = []
    seen: set[str] = set()

    for token in tokens:
        token = token.strip()
        if not token:
            continue
        normalized = normalize_code(token)
        if not normalized:
            if token not in seen:
                invalid.append(token)
                seen.add(token)
        elif normalized in seen:
            pass  # deduplicate silently
        elif normalized not in catalog_codes:
            not_in_catalog.append(normalized)
            seen.add(normalized)
        else:
            valid.append(normalized)
            seen.add(normalized)

    return {"valid": valid, "invalid": invalid, "not_in_catalog": not_in_catalog}
