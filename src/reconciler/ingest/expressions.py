"""Attribute expressions: literals, ${...} references and string templates."""

import re
from typing import Any, Callable, Dict, List, Union
from pydantic import BaseModel, Field
from ..utils.errors import ConfigurationLoadError, VariableError
from .models import ResourceAddress, NAME_PATTERN

INTERPOLATION = re.compile(r"\$\{\s*([^}]*?)\s*\}")
_PATH_TOKEN = re.compile(r"([^.\[\]]+)|\[(\d+)\]")

PathSegment = Union[str, int]


class _Unknown:
    """Placeholder for a value that only exists after apply."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "(known after apply)"

    def __reduce__(self):
        return (_Unknown, ())


UNKNOWN = _Unknown()


class Reference(BaseModel):
    """Reference to an exported attribute of another resource."""
    address: ResourceAddress = Field(..., description="Referenced resource")
    path: List[PathSegment] = Field(..., description="Attribute path, first segment is the attribute name")

    class Config:
        """Pydantic config."""
        frozen = True

    @property
    def attribute(self) -> str:
        return str(self.path[0])

    @property
    def path_string(self) -> str:
        out = ""
        for segment in self.path:
            out += f"[{segment}]" if isinstance(segment, int) else f".{segment}"
        return out.lstrip(".")

    def __str__(self) -> str:
        return f"{self.address}.{self.path_string}"


def parse_path(text: str) -> List[PathSegment]:
    """Split 'a.b[0].c' into ['a', 'b', 0, 'c']."""
    segments: List[PathSegment] = []
    position = 0
    for match in _PATH_TOKEN.finditer(text):
        gap = text[position:match.start()]
        if gap not in ("", "."):
            raise ConfigurationLoadError(f"Invalid expression '{text}'")
        name, index = match.groups()
        segments.append(int(index) if index is not None else name)
        position = match.end()
    if position != len(text) or not segments:
        raise ConfigurationLoadError(f"Invalid expression '{text}'")
    return segments


def parse_reference(text: str) -> Reference:
    """
    Parse the body of a ${...} interpolation into a Reference.

    Args:
        text: Expression such as 'aws_vpc.main.id' or 'aws_instance.web.tags.Name'

    Returns:
        Reference

    Raises:
        ConfigurationLoadError: If the expression is not type.name.attribute[...]
    """
    segments = parse_path(text)
    if len(segments) < 3 or not all(isinstance(s, str) for s in segments[:3]):
        raise ConfigurationLoadError(
            f"Invalid reference '${{{text}}}': expected '${{type.name.attribute}}'"
        )
    resource_type, name = segments[0], segments[1]
    if not NAME_PATTERN.match(resource_type) or not NAME_PATTERN.match(name):
        raise ConfigurationLoadError(f"Invalid reference '${{{text}}}'")
    return Reference(address=ResourceAddress(type=resource_type, name=name), path=segments[2:])


def find_references(value: Any) -> List[Reference]:
    """Collect every resource reference inside a (possibly nested) expression, in order."""
    found: List[Reference] = []

    def visit(node: Any) -> None:
        if isinstance(node, str):
            for match in INTERPOLATION.finditer(node):
                found.append(parse_reference(match.group(1)))
        elif isinstance(node, dict):
            for item in node.values():
                visit(item)
        elif isinstance(node, list):
            for item in node:
                visit(item)

    visit(value)
    return found


def substitute_variables(value: Any, variables: Dict[str, Any]) -> Any:
    """
    Replace ${var.name} interpolations, leaving resource references untouched.

    A string that is exactly one ${var.x} becomes the raw variable value; an
    interpolation embedded in a longer string is rendered with str().

    Raises:
        VariableError: If an interpolated variable has no value
    """
    if isinstance(value, dict):
        return {k: substitute_variables(v, variables) for k, v in value.items()}
    if isinstance(value, list):
        return [substitute_variables(v, variables) for v in value]
    if not isinstance(value, str):
        return value

    def lookup(expression: str) -> Any:
        name = expression[len("var."):]
        if name not in variables:
            raise VariableError(f"Variable '{name}' is referenced but not declared")
        return variables[name]

    whole = INTERPOLATION.fullmatch(value)
    if whole and whole.group(1).startswith("var."):
        return lookup(whole.group(1))

    def render(match: "re.Match") -> str:
        expression = match.group(1)
        if expression.startswith("var."):
            return _to_text(lookup(expression))
        return match.group(0)

    return INTERPOLATION.sub(render, value)


def resolve(value: Any, lookup: Callable[[Reference], Any]) -> Any:
    """
    Resolve every resource reference in an expression.

    Args:
        value: Expression (literal, reference string, template or nested structure)
        lookup: Returns the value for a Reference; may return UNKNOWN

    Returns:
        Resolved value. A template with any unknown part resolves to UNKNOWN.
    """
    if isinstance(value, dict):
        return {k: resolve(v, lookup) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve(v, lookup) for v in value]
    if not isinstance(value, str) or "${" not in value:
        return value

    whole = INTERPOLATION.fullmatch(value)
    if whole:
        return lookup(parse_reference(whole.group(1)))

    parts = []
    position = 0
    for match in INTERPOLATION.finditer(value):
        parts.append(value[position:match.start()])
        resolved = lookup(parse_reference(match.group(1)))
        if resolved is UNKNOWN:
            return UNKNOWN
        parts.append(_to_text(resolved))
        position = match.end()
    parts.append(value[position:])
    return "".join(parts)


def lookup_path(data: Any, path: List[PathSegment]) -> Any:
    """Walk a path through nested dicts/lists. Raises KeyError when a segment is missing."""
    current = data
    for segment in path:
        if isinstance(segment, int):
            if not isinstance(current, list) or segment >= len(current):
                raise KeyError(segment)
            current = current[segment]
        else:
            if not isinstance(current, dict) or segment not in current:
                raise KeyError(segment)
            current = current[segment]
    return current


def contains_unknown(value: Any) -> bool:
    """True if UNKNOWN appears anywhere in the value."""
    if value is UNKNOWN:
        return True
    if isinstance(value, dict):
        return any(contains_unknown(v) for v in value.values())
    if isinstance(value, list):
        return any(contains_unknown(v) for v in value)
    return False


def is_expression(value: Any) -> bool:
    """True if a literal string carries an interpolation."""
    return isinstance(value, str) and INTERPOLATION.search(value) is not None


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
