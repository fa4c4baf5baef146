"""
Cycle-safe deep copy for JSON-like form documents.

Schema trees are edited by hosts that can alias objects carelessly; a node
that ends up as its own descendant would make a naive recursive copy loop
forever. `safe_deep_clone` tracks the identities of the containers on the
current path and drops any branch that points back at one of them.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


def safe_deep_clone(value: Any) -> Any:
    """
    Deep-copy dicts, lists and tuples, dropping circular branches.

    Shared (non-circular) references are copied once per occurrence, matching
    a JSON serialise/parse round trip. Leaf values are returned as is.

    Params:
        value: JSON-like value to copy

    Returns:
        Independent copy of `value` with every circular branch removed
    """
    return _clone(value, set(), "$")


def _clone(value: Any, ancestors: set[int], path: str) -> Any:
    if not isinstance(value, dict | list | tuple):
        return value

    ident = id(value)
    ancestors.add(ident)
    try:
        if isinstance(value, dict):
            result: dict[Any, Any] = {}
            for key, item in value.items():
                child_path = f"{path}.{key}"
                if _is_cycle(item, ancestors, child_path):
                    continue
                result[key] = _clone(item, ancestors, child_path)
            return result

        items = []
        for index, item in enumerate(value):
            child_path = f"{path}[{index}]"
            if _is_cycle(item, ancestors, child_path):
                continue
            items.append(_clone(item, ancestors, child_path))
        return tuple(items) if isinstance(value, tuple) else items
    finally:
        ancestors.discard(ident)


def _is_cycle(item: Any, ancestors: set[int], path: str) -> bool:
    if isinstance(item, dict | list | tuple) and id(item) in ancestors:
        logger.warning("Dropping circular reference at %s", path)
        return True
    return False
