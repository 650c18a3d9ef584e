"""
Request parameter validation and normalisation.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from shared.errors import MissingQueryError, ValidationError


CHOICE = "choice"
INTEGER = "integer"
TEXT = "text"
FLAG = "flag"

QUERY = "query"
PATH = "path"

_DIGITS = re.compile(r"[0-9]+")
_FALSE_FLAGS = {"false", "0"}


@dataclass(frozen=True)
class ParamSpec:
    """Declaration of one accepted request parameter."""

    name: str
    kind: str = TEXT
    choices: Tuple[str, ...] = ()
    default: Any = None
    required: bool = False
    location: str = QUERY
    maximum: Optional[int] = None


def _invalid_choice(spec: ParamSpec, raw: str) -> ValidationError:
    allowed = ", ".join(spec.choices)
    return ValidationError(
        f'Invalid {spec.name} value: "{raw}". Allowed values are: {allowed}',
        {"param": spec.name, "value": raw, "allowed": list(spec.choices)},
    )


def _invalid_integer(spec: ParamSpec, raw: str) -> ValidationError:
    if spec.maximum is not None:
        expected = f"Expected an integer between 1 and {spec.maximum}"
    else:
        expected = "Expected a positive integer"
    return ValidationError(
        f'Invalid {spec.name} value: "{raw}". {expected}',
        {"param": spec.name, "value": raw},
    )


def normalise_param(spec: ParamSpec, raw: Optional[str]) -> Any:
    """Validate one raw value and return its canonical form (``None`` if absent)."""
    if raw is None or raw == "":
        if spec.required:
            raise MissingQueryError({"param": spec.name})
        return spec.default

    if spec.kind == CHOICE:
        if raw not in spec.choices:
            raise _invalid_choice(spec, raw)
        return raw

    if spec.kind == INTEGER:
        if not _DIGITS.fullmatch(raw):
            raise _invalid_integer(spec, raw)
        value = int(raw)
        if value < 1 or (spec.maximum is not None and value > spec.maximum):
            raise _invalid_integer(spec, raw)
        return value

    if spec.kind == FLAG:
        return None if raw.lower() in _FALSE_FLAGS else True

    return raw


def validate_params(
    specs: Sequence[ParamSpec],
    query: Mapping[str, str],
    path: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Validate request parameters against their declarations.

    Unknown parameters are ignored. The result holds only present
    (or defaulted) parameters, already normalised.
    """
    path = path or {}
    params: Dict[str, Any] = {}
    for spec in specs:
        source = path if spec.location == PATH else query
        value = normalise_param(spec, source.get(spec.name))
        if value is not None:
            params[spec.name] = value
    return params
