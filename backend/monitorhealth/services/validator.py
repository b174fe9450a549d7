"""Validator service - evaluates probe responses against monitor rules.

Custom checks use a restricted comparison grammar (`<path> <op> <literal>`)
parsed with a regular expression. Nothing in a rule is ever executed.
"""
import json
import logging
import operator
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..exceptions import ValidationError
from ..schemas.monitor import ValidationRules

logger = logging.getLogger(__name__)

# Checked in this order so two-character operators win over their prefixes
OPERATORS = (">=", "<=", "===", "!==", ">", "<")

_CONDITION_PATTERN = re.compile(
    r"^\s*(?P<left>[^<>=!]+?)\s*(?P<op>>=|<=|===|!==|>|<)\s*(?P<right>.*?)\s*$",
    re.DOTALL,
)
_NUMBER_PATTERN = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
_OPERATOR_CHARS = frozenset("<>=!")

_RELATIONAL = {
    ">": operator.gt,
    "<": operator.lt,
    ">=": operator.ge,
    "<=": operator.le,
}

PREVIEW_LENGTH = 200

# Sentinel for a path that does not resolve
_MISSING = object()


@dataclass
class ResponseSnapshot:
    """The parts of an HTTP response the rules look at."""
    status_code: int
    reason: str = ""
    headers: Dict[str, str] = field(default_factory=dict)  # lower-case names
    data: Any = None  # decoded JSON value, or text when the body is not JSON

    def header(self, name: str, default: str = "unknown") -> str:
        return self.headers.get(name.lower()) or default


@dataclass
class ValidationResult:
    """Outcome of evaluating a rule set."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class Condition:
    """Parsed custom check. A condition without an operator is an existence check."""
    left: str
    operator: Optional[str] = None
    right: Union[int, float, str, None] = None


def to_json(data: Any) -> str:
    """Compact JSON serialisation used for body samples and substring checks."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False, default=str)


def _step(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current[key] if key in current else _MISSING
    if isinstance(current, (list, str)):
        if key == "length":
            return len(current)
        if key.isdigit() and int(key) < len(current):
            return current[int(key)]
    return _MISSING


def _lookup(data: Any, path: str) -> Any:
    current = data
    for key in path.split("."):
        current = _step(current, key)
        if current is _MISSING:
            return _MISSING
    return current


def get_nested_value(data: Any, path: str, default: Any = None) -> Any:
    """Resolve a dot path such as `data.users.0.id` or `items.length`."""
    value = _lookup(data, path)
    return default if value is _MISSING else value


def has_nested_key(data: Any, path: str) -> bool:
    """Whether every segment of a dot path exists (a null value still counts)."""
    return _lookup(data, path) is not _MISSING


def _parse_literal(raw: str) -> Union[int, float, str]:
    raw = raw.strip()
    if _NUMBER_PATTERN.match(raw):
        if any(c in raw for c in ".eE"):
            return float(raw)
        return int(raw)
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "'\"":
        return raw[1:-1]
    return raw


def parse_condition(expression: str) -> Condition:
    """Parse a custom check expression.

    Raises:
        ValidationError: for an empty expression, or one that uses operator
        characters outside the supported grammar (e.g. `==`, `!=`)
    """
    text = (expression or "").strip()
    if not text:
        raise ValidationError("Empty custom check expression")

    match = _CONDITION_PATTERN.match(text)
    if match:
        return Condition(
            left=match.group("left").strip(),
            operator=match.group("op"),
            right=_parse_literal(match.group("right")),
        )

    if _OPERATOR_CHARS & set(text):
        raise ValidationError(
            f"Unsupported expression '{text}', expected <path> <op> <value> with op in {', '.join(OPERATORS)}"
        )
    return Condition(left=text)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strict_equals(left: Any, right: Any) -> bool:
    if left is _MISSING or right is _MISSING:
        return False
    if _is_number(left) and _is_number(right):
        return left == right
    return type(left) is type(right) and left == right


def _compare(left: Any, op: str, right: Any) -> bool:
    if op == "===":
        return _strict_equals(left, right)
    if op == "!==":
        return not _strict_equals(left, right)

    # Numeric strings compare as numbers against a numeric literal
    if isinstance(left, str) and _is_number(right) and _NUMBER_PATTERN.match(left.strip()):
        left = float(left)

    if (_is_number(left) and _is_number(right)) or (isinstance(left, str) and isinstance(right, str)):
        return _RELATIONAL[op](left, right)
    return False


def evaluate_condition(data: Any, expression: str) -> bool:
    """Evaluate a custom check expression against a response body."""
    condition = parse_condition(expression)
    if condition.operator is None:
        return has_nested_key(data, condition.left)
    return _compare(_lookup(data, condition.left), condition.operator, condition.right)


def body_preview(data: Any) -> str:
    """Short, single-line preview of a response body for error messages."""
    if data is None or data == "":
        return "[empty response]"

    if isinstance(data, str):
        preview = " ".join(data[:PREVIEW_LENGTH].split())
        return f"{preview}..." if len(data) > PREVIEW_LENGTH else preview

    text = to_json(data)
    if len(text) > PREVIEW_LENGTH:
        return f"{text[:PREVIEW_LENGTH]}... [{len(text)} chars total]"
    return text


def validate(
    response: ResponseSnapshot,
    rules: Union[ValidationRules, Dict[str, Any], None] = None,
) -> ValidationResult:
    """Validate a response against a rule set.

    Checks are additive and reported in a fixed order: status code, required
    keys, contained values, custom check. No rules means the response passes.
    """
    if rules is None:
        return ValidationResult(is_valid=True)

    if not isinstance(rules, ValidationRules):
        try:
            rules = ValidationRules.model_validate(rules)
        except PydanticValidationError as e:
            logger.warning(f"Invalid validation rules: {e}")
            return ValidationResult(is_valid=False, errors=[f"Invalid validation rules: {e.error_count()} error(s)"])

    errors: List[str] = []

    if rules.status_code and response.status_code != rules.status_code:
        errors.append(
            f"Expected status {rules.status_code}, got {response.status_code} ({response.reason}). "
            f"Server: {response.header('server')}, Content-Type: {response.header('content-type')}. "
            f"Response preview: {body_preview(response.data)}"
        )

    if rules.required_keys:
        if not isinstance(response.data, (dict, list)):
            errors.append("Response must be a JSON object to validate required keys")
        else:
            for key in rules.required_keys:
                if not has_nested_key(response.data, key):
                    errors.append(f"Missing required key: {key}")

    if rules.contains_value:
        body = to_json(response.data)
        for label, expected in rules.contains_value.items():
            needle = expected if isinstance(expected, str) else to_json(expected)
            if needle not in body:
                errors.append(f"Response does not contain expected value for {label}: {expected}")

    if rules.custom_check:
        try:
            if not evaluate_condition(response.data, rules.custom_check):
                errors.append(f"Custom validation failed: {rules.custom_check}")
        except ValidationError as e:
            errors.append(f"Custom validation error: {e.message}")

    return ValidationResult(is_valid=not errors, errors=errors)
