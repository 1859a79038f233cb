"""JSON encoding of blueprint values and log fields."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any


def json_serializer(obj: Any) -> Any:
    """
    `default=` hook for json.dumps.

    Blueprints carry values json cannot encode on its own: subscriber
    classes (module, id), read-only start_opts mappings and Source structs.
    Classes are written as their dotted import path, so the output can be fed
    back to `python -m batchline blueprint`.

    - classes → "package.module.QualName"
    - read-only mappings → dict
    - datetime/date → ISO 8601 string
    - Decimal → float
    - Enum → value
    - anything else (Path, Source, ...) → str()
    """
    if isinstance(obj, type):
        return f"{obj.__module__}.{obj.__qualname__}"
    if isinstance(obj, MappingProxyType):
        return dict(obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, Enum):
        return obj.value
    return str(obj)


__all__ = ["json_serializer"]
