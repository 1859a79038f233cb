"""Option schemas for subscriber configuration.

An OptionsSchema declares the recognized option keys, their type
constraints, whether they are required, and their defaults. Validation is a
pure function over a mapping: it either returns the normalized options or
raises SchemaError naming the offending key.

Example:
    >>> schema = OptionsSchema(
    ...     name=OptionSpec(Identifier(), required=True),
    ...     start_opts=OptionSpec(KeywordList(), default={}),
    ... )
    >>> schema.validate({"name": "orders"})
    {'name': 'orders', 'start_opts': {}}
"""

import copy
import inspect
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Sequence

from core.errors import SchemaError

_MISSING = object()


# =============================================================================
# Type constraints
# =============================================================================


class TypeConstraint:
    """Base class for option type constraints.

    Subclasses implement matches() and may override normalize() to convert
    accepted inputs into their canonical form (e.g. pair lists into dicts).
    """

    description = "any"

    def matches(self, value: Any) -> bool:
        raise NotImplementedError

    def normalize(self, value: Any) -> Any:
        return value

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.description}>"


class AnyValue(TypeConstraint):
    description = "any"

    def matches(self, value: Any) -> bool:
        return True


class String(TypeConstraint):
    description = "string"

    def matches(self, value: Any) -> bool:
        return isinstance(value, str)


class Identifier(TypeConstraint):
    """A non-empty string naming an application, source, or subscriber."""

    description = "identifier"

    def matches(self, value: Any) -> bool:
        return isinstance(value, str) and bool(value.strip())


class SubscriberClass(TypeConstraint):
    description = "class"

    def matches(self, value: Any) -> bool:
        return inspect.isclass(value)


class InstanceOf(TypeConstraint):
    def __init__(self, cls: type, description: Optional[str] = None):
        self.cls = cls
        self.description = description or cls.__name__

    def matches(self, value: Any) -> bool:
        return isinstance(value, self.cls)


class KeywordList(TypeConstraint):
    """Ordered string-keyed options.

    Accepts a mapping or a sequence of (key, value) pairs. Both normalize to
    a plain dict preserving order; for repeated keys in a pair list the last
    occurrence wins.
    """

    description = "keyword list"

    def matches(self, value: Any) -> bool:
        if isinstance(value, Mapping):
            return all(isinstance(k, str) for k in value)
        if isinstance(value, (list, tuple)):
            return all(
                isinstance(item, (list, tuple)) and len(item) == 2 and isinstance(item[0], str)
                for item in value
            )
        return False

    def normalize(self, value: Any) -> Dict[str, Any]:
        if isinstance(value, Mapping):
            return dict(value)
        return {k: v for k, v in value}


class OneOf(TypeConstraint):
    """Union of constraints; the first matching constraint normalizes."""

    def __init__(self, constraints: Sequence[TypeConstraint]):
        if not constraints:
            raise ValueError("OneOf requires at least one constraint")
        self.constraints = list(constraints)
        self.description = " or ".join(c.description for c in self.constraints)

    def matches(self, value: Any) -> bool:
        return any(c.matches(value) for c in self.constraints)

    def normalize(self, value: Any) -> Any:
        for constraint in self.constraints:
            if constraint.matches(value):
                return constraint.normalize(value)
        return value


# =============================================================================
# Schema
# =============================================================================


@dataclass(frozen=True)
class OptionSpec:
    """Descriptor for a single option."""

    type: TypeConstraint
    required: bool = False
    default: Any = _MISSING
    doc: str = ""

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    def default_value(self) -> Any:
        # Mutable defaults (e.g. {}) are copied so validated options never share state
        return copy.copy(self.default)


class OptionsSchema:
    """Declared set of options with validation and documentation.

    None is treated as "not given": a required key set to None is reported
    as missing, and an optional key set to None falls back to its default
    (or is left out when it has none).
    """

    def __init__(self, specs: Optional[Mapping[str, OptionSpec]] = None, **kwargs: OptionSpec):
        self._specs: Dict[str, OptionSpec] = dict(specs or {})
        self._specs.update(kwargs)

    def __contains__(self, key: object) -> bool:
        return key in self._specs

    def __iter__(self) -> Iterator[str]:
        return iter(self._specs)

    def __getitem__(self, key: str) -> OptionSpec:
        return self._specs[key]

    def keys(self) -> Iterable[str]:
        return self._specs.keys()

    def validate(self, options: Mapping[str, Any]) -> Dict[str, Any]:
        """Validate options against the schema.

        Args:
            options: Raw option mapping

        Returns:
            Normalized options in schema declaration order, with defaults
            filled in for absent optional keys

        Raises:
            SchemaError: On an unknown key, a missing required key, or a
                value failing its type constraint
        """
        for key in options:
            if key not in self._specs:
                raise SchemaError(
                    key=str(key),
                    expected=f"one of {sorted(self._specs)}",
                    received=options[key],
                    message=f"Unknown option '{key}'. Known options: {', '.join(self._specs)}",
                )

        validated: Dict[str, Any] = {}
        for key, spec in self._specs.items():
            value = options.get(key)

            if value is None:
                if spec.required:
                    raise SchemaError(
                        key=key,
                        expected=spec.type.description,
                        received=None,
                        message=f"Required option '{key}' not found",
                    )
                if spec.has_default:
                    validated[key] = spec.default_value()
                continue

            if not spec.type.matches(value):
                raise SchemaError(key=key, expected=spec.type.description, received=value)

            validated[key] = spec.type.normalize(value)

        return validated

    def docs(self) -> str:
        """Render the schema as a Markdown option list."""
        lines = []
        for key, spec in self._specs.items():
            parts = [f"* `{key}` ({spec.type.description})"]
            if spec.required:
                parts.append("Required.")
            if spec.doc:
                parts.append(spec.doc)
            if spec.has_default:
                parts.append(f"The default value is `{spec.default!r}`.")
            lines.append(" - ".join([parts[0], " ".join(parts[1:])]) if len(parts) > 1 else parts[0])
        return "\n".join(lines)
