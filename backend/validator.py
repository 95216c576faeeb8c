"""
Statement validation and sanitizing.

Invalid statements never reach the calculator: in lenient mode they are
skipped and counted, in strict mode the first one aborts the batch.
"""

import copy
import math
import re
import logging
from typing import Dict, List, Mapping

from backend.durations import parse_timestamp, to_iso

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

REQUIRED_SECTIONS = ("overview", "modules", "assessments", "engagement")
BUNDLE_COLLECTIONS = (
    ("modules", "completed"),
    ("assessments", "quizzes"),
    ("assessments", "assignments"),
    ("engagement", "video_interactions"),
)


class StatementValidationError(ValueError):
    """Raised in strict mode for the first statement that fails validation."""

    def __init__(self, index: int, errors: List[str], statement_id=None):
        self.index = index
        self.errors = list(errors)
        self.statement_id = statement_id
        ref = f"statement {index}" + (f" ({statement_id})" if statement_id else "")
        super().__init__(f"Invalid {ref}: {'; '.join(self.errors)}")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _check_score(score, errors: List[str]) -> None:
    if not isinstance(score, Mapping):
        errors.append("Result score must be an object")
        return
    scaled = score.get("scaled")
    if scaled is not None:
        if not _is_number(scaled):
            errors.append("Scaled score must be a finite number")
        elif scaled < -1 or scaled > 1:
            errors.append("Scaled score must be between -1 and 1")
    for key in ("raw", "min", "max"):
        if score.get(key) is not None and not _is_number(score[key]):
            errors.append(f"Score {key} must be a finite number")
    raw = score.get("raw")
    max_s = score.get("max")
    if _is_number(raw) and _is_number(max_s) and raw > max_s:
        errors.append("Raw score cannot exceed max score")


def validate_statement(statement: Mapping) -> Dict:
    """Check one statement's structure. Returns {is_valid, errors, warnings}."""
    errors: List[str] = []
    warnings: List[str] = []

    actor = statement.get("actor")
    if not actor:
        errors.append("Missing required field: actor")
    elif not isinstance(actor, Mapping):
        errors.append("Actor must be an object")
    elif not actor.get("mbox") and not actor.get("account"):
        errors.append("Actor must have mbox or account")
    elif actor.get("account") is not None and not isinstance(actor["account"], Mapping):
        errors.append("Actor account must be an object")

    verb = statement.get("verb")
    if not verb:
        errors.append("Missing required field: verb")
    elif not isinstance(verb, Mapping):
        errors.append("Verb must be an object")
    elif not verb.get("id"):
        errors.append("Verb must have id")

    obj = statement.get("object")
    if not obj:
        errors.append("Missing required field: object")
    elif not isinstance(obj, Mapping):
        errors.append("Object must be an object")
    else:
        if not obj.get("id"):
            errors.append("Object must have id")
        definition = obj.get("definition")
        if definition is not None and not isinstance(definition, Mapping):
            errors.append("Object definition must be an object")

    if not statement.get("timestamp"):
        warnings.append("Missing timestamp - will be set by LRS")

    result = statement.get("result")
    if result is not None and not isinstance(result, Mapping):
        errors.append("Result must be an object")
    elif result and result.get("score") is not None:
        _check_score(result["score"], errors)

    return {"is_valid": not errors, "errors": errors, "warnings": warnings}


def _trim_language_map(values) -> None:
    if not isinstance(values, dict):
        return
    for lang, text in values.items():
        if isinstance(text, str):
            values[lang] = text.strip()


def sanitize_statement(statement: Mapping) -> Dict:
    """
    Return a normalized copy: canonical UTC timestamp (dropped when
    unparsable) and trimmed display/name/description text.
    """
    sanitized = copy.deepcopy(dict(statement))

    if "timestamp" in sanitized:
        ts = parse_timestamp(sanitized["timestamp"])
        if ts is None:
            logger.debug(f"Dropping unparsable timestamp {sanitized['timestamp']!r}")
            del sanitized["timestamp"]
        else:
            sanitized["timestamp"] = to_iso(ts)

    verb = sanitized.get("verb")
    if isinstance(verb, dict):
        _trim_language_map(verb.get("display"))

    definition = (sanitized.get("object") or {}).get("definition")
    if isinstance(definition, dict):
        _trim_language_map(definition.get("name"))
        _trim_language_map(definition.get("description"))

    return sanitized


def validate_batch(statements: List[Mapping], strict: bool = False) -> Dict:
    """
    Validate and sanitize a batch.

    Returns {valid, invalid_count, warning_count, errors}; `errors` lists
    {index, statement_id, errors} for every skipped statement.
    Raises StatementValidationError on the first invalid statement when strict.
    """
    valid: List[Dict] = []
    rejected: List[Dict] = []
    warning_count = 0

    for index, stmt in enumerate(statements or []):
        if not isinstance(stmt, Mapping):
            result = {"is_valid": False, "errors": ["Statement must be an object"], "warnings": []}
            stmt_id = None
        else:
            result = validate_statement(stmt)
            stmt_id = stmt.get("id")
        if not result["is_valid"]:
            if strict:
                raise StatementValidationError(index, result["errors"], stmt_id)
            rejected.append({"index": index, "statement_id": stmt_id, "errors": result["errors"]})
            continue
        warning_count += len(result["warnings"])
        valid.append(sanitize_statement(stmt))

    if rejected:
        logger.warning(f"Skipped {len(rejected)} invalid statements out of {len(statements)}")

    return {
        "valid": valid,
        "invalid_count": len(rejected),
        "warning_count": warning_count,
        "errors": rejected,
    }


def deduplicate_statements(statements: List[Dict]) -> List[Dict]:
    """Keep the first occurrence of each statement id; id-less statements always stay."""
    seen = set()
    unique: List[Dict] = []
    for stmt in statements:
        stmt_id = stmt.get("id")
        if stmt_id:
            if stmt_id in seen:
                continue
            seen.add(stmt_id)
        unique.append(stmt)
    if len(unique) < len(statements):
        logger.debug(f"Removed {len(statements) - len(unique)} duplicate statements")
    return unique


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def validate_raw_bundle(bundle: Mapping) -> Dict:
    """Check the raw dashboard bundle handed over by the LRS client."""
    errors: List[str] = []
    warnings: List[str] = []

    for section in REQUIRED_SECTIONS:
        if section not in bundle or bundle[section] is None:
            errors.append(f"Missing required section: {section}")

    for section, key in BUNDLE_COLLECTIONS:
        collection = (bundle.get(section) or {}).get(key)
        if collection is None:
            warnings.append(f"Missing collection: {section}.{key}")
        elif not isinstance(collection, list):
            errors.append(f"{section}.{key} must be a list")

    overview = bundle.get("overview") or {}
    email = overview.get("user_email")
    if email and not is_valid_email(email):
        errors.append("Invalid email format in overview")
    if "total_statements" in overview and not isinstance(overview["total_statements"], int):
        warnings.append("Invalid total_statements in overview")

    return {"is_valid": not errors, "errors": errors, "warnings": warnings}
