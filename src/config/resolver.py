"""Environment resolution for option defaults.

resolve() walks an ordered list of (scope, key) candidates and collects the
option values configured for them. Candidates listed first take precedence:

- plain keys: the first candidate defining the key wins
- merge keys (e.g. start_opts): the mappings found at every candidate are
  combined key by key, earlier candidates overriding later ones

Example:
    >>> env = DictEnvironment({
    ...     "batchline": {"subscriber": {"start_opts": {"timeout": 1000}}},
    ...     "orders": {"subscriber": {"start_opts": {"timeout": 50, "retries": 3}}},
    ... })
    >>> resolve([("batchline", "subscriber"), ("orders", "subscriber")], ["start_opts"], env)
    {'start_opts': {'timeout': 1000, 'retries': 3}}
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Sequence, Tuple

from config.environment import get_environment
from core.types import ConfigProvider

Candidate = Tuple[str, str]


def _as_mergeable(value: Any) -> Optional[Dict[str, Any]]:
    """Return value as a dict if it is a mapping or list of pairs, else None."""
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (list, tuple)) and all(
        isinstance(item, (list, tuple)) and len(item) == 2 for item in value
    ):
        return {k: v for k, v in value}
    return None


def resolve(
    candidates: Sequence[Candidate],
    merge_keys: Iterable[str] = (),
    provider: Optional[ConfigProvider] = None,
) -> Dict[str, Any]:
    """Collect option values for the candidates in precedence order.

    Never raises for missing scopes or keys; absence contributes nothing.
    A merge key holding a value that is not mergeable at any candidate is
    resolved to that value and no longer merged, so schema validation
    downstream reports it.

    Args:
        candidates: Ordered (scope, key) pairs, highest precedence first
        merge_keys: Option keys whose mapping values are merged
        provider: Environment store (defaults to the process-wide one)

    Returns:
        Resolved option values
    """
    provider = provider if provider is not None else get_environment()
    merge_keys = frozenset(merge_keys)
    resolved: Dict[str, Any] = {}
    invalid = set()

    for scope, key in candidates:
        if scope is None:
            continue
        found = provider.lookup(scope, key)
        if not found:
            continue

        for option, value in found.items():
            if option not in merge_keys:
                resolved.setdefault(option, value)
                continue
            if value is None or option in invalid:
                continue

            mergeable = _as_mergeable(value)
            if mergeable is None:
                resolved[option] = value
                invalid.add(option)
                continue

            current = resolved.get(option)
            resolved[option] = mergeable if current is None else {**mergeable, **current}

    return resolved


def merge_options(
    base: Mapping[str, Any],
    overlay: Mapping[str, Any],
    merge_keys: Iterable[str] = (),
) -> Dict[str, Any]:
    """Lay overlay options over base options.

    Overlay values win. For merge keys where both sides hold mappings, the
    mappings are merged key by key (overlay entries win, base-only entries
    are kept). A merge key whose base value is not a mapping keeps that
    value, leaving it for validation to reject.
    """
    merge_keys = frozenset(merge_keys)
    result = dict(base)
    for key, value in overlay.items():
        current = result.get(key)
        if key in merge_keys and current is not None and not isinstance(current, Mapping):
            continue
        if key in merge_keys and isinstance(current, Mapping) and isinstance(value, Mapping):
            result[key] = {**current, **value}
        else:
            result[key] = value
    return result
