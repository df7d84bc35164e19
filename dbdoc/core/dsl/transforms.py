"""
Transform Contracts
===================

Name/arity catalogue for the transform expressions used inside mappings
(``trim()``, ``concat($.first, ' ', $.last)``). Expressions are only parsed
and checked against this catalogue; they are never executed here.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional

_CALL_PATTERN = re.compile(r"^(\w+)\((.*)\)$", re.DOTALL)


@dataclass(frozen=True)
class TransformSpec:
    name: str
    description: str
    min_args: int
    max_args: Optional[int]  # None means variadic

    def accepts(self, arg_count: int) -> bool:
        if arg_count < self.min_args:
            return False
        return self.max_args is None or arg_count <= self.max_args


@dataclass(frozen=True)
class ParsedTransform:
    name: str
    args: List[str]
    raw: str


TRANSFORMS: Dict[str, TransformSpec] = {
    spec.name: spec
    for spec in (
        # String transforms
        TransformSpec("lower", "Convert string to lowercase", 0, 0),
        TransformSpec("upper", "Convert string to uppercase", 0, 0),
        TransformSpec("trim", "Remove leading and trailing whitespace", 0, 0),
        TransformSpec("concat", "Concatenate multiple strings", 2, None),
        TransformSpec("substring", "Extract substring from start to end index", 2, 3),
        # Date transforms
        TransformSpec("parseDate", "Parse date string to ISO format", 0, 1),
        TransformSpec("formatDate", "Format date to specified format", 1, 1),
        # Utility transforms
        TransformSpec("coalesce", "Return first non-empty value", 1, None),
        TransformSpec("default", "Return default value if input is empty", 1, 1),
        TransformSpec("cast", "Cast value to specified type", 1, 1),
        # Math transforms
        TransformSpec("round", "Round number to specified decimal places", 0, 1),
        TransformSpec("abs", "Return absolute value of number", 0, 0),
    )
}


def _split_arguments(args_str: str) -> List[str]:
    """Split on top-level commas, respecting quotes and nested parentheses."""
    args: List[str] = []
    current: List[str] = []
    quote_char = ""
    depth = 0
    previous = ""

    for char in args_str:
        if char in ("'", '"') and previous != "\\":
            if not quote_char:
                quote_char = char
            elif char == quote_char:
                quote_char = ""
            current.append(char)
        elif char == "(" and not quote_char:
            depth += 1
            current.append(char)
        elif char == ")" and not quote_char:
            depth -= 1
            current.append(char)
        elif char == "," and not quote_char and depth == 0:
            args.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        previous = char

    tail = "".join(current).strip()
    if tail:
        args.append(tail)
    return args


def parse_transform(expr: Optional[str]) -> Optional[ParsedTransform]:
    """Parse ``name(arg, ...)``; returns None when the expression is not a call."""
    if not expr or not isinstance(expr, str):
        return None

    trimmed = expr.strip()
    match = _CALL_PATTERN.match(trimmed)
    if not match:
        return None

    name, args_str = match.groups()
    args = _split_arguments(args_str) if args_str.strip() else []
    return ParsedTransform(name=name, args=args, raw=trimmed)


def validate_transform(expr: str) -> Optional[str]:
    """
    Check a transform expression against the catalogue.

    Returns:
        An error message, or None when the expression satisfies its contract
    """
    parsed = parse_transform(expr)
    if parsed is None:
        return f'Invalid transform syntax: "{expr}". Expected format: functionName(args)'

    spec = TRANSFORMS.get(parsed.name)
    if spec is None:
        available = ", ".join(TRANSFORMS)
        return f'Unknown transform: "{parsed.name}". Available transforms: {available}'

    count = len(parsed.args)
    if not spec.accepts(count):
        if count < spec.min_args:
            return (
                f'Transform "{parsed.name}" requires at least {spec.min_args} argument(s), '
                f"got {count}"
            )
        return f'Transform "{parsed.name}" accepts at most {spec.max_args} argument(s), got {count}'

    return None


def get_available_transforms() -> List[TransformSpec]:
    return list(TRANSFORMS.values())
