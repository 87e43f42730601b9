"""Property path parsing and snapshot materialization.

A property path addresses a field inside an object's property tree, e.g.
``runtime.powerState``. A segment may carry a tag selecting one element of an
array-valued property by its ``key``, e.g. ``config.hardware.device[4000].label``.
Materializing folds a flat list of (path, value) pairs into a nested tree.
"""

import re
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..exceptions import MaterializationError

# Values carried by property paths: scalars, lists and nested mappings.
PropertyValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]
PropertyTree = Dict[str, Any]

_TAGGED_SEGMENT = re.compile(r"^(?P<name>[^\[\]]+)\[(?P<tag>.+)\]$")


def split_property_path(path: str) -> List[str]:
    """Split a dotted path, leaving dots inside ``[...]`` tags alone."""
    segments: List[str] = []
    current: List[str] = []
    depth = 0
    quoted = False

    for char in path:
        if char == '"' and depth:
            quoted = not quoted
        elif not quoted:
            if char == "[":
                depth += 1
            elif char == "]" and depth:
                depth -= 1
            elif char == "." and not depth:
                segments.append("".join(current))
                current = []
                continue
        current.append(char)

    segments.append("".join(current))
    return segments


def tag_and_key(segment: str) -> Tuple[str, Optional[str]]:
    """Split a path segment into its property name and array tag.

    Returns:
        (name, tag) where tag is None for an untagged segment
    """
    match = _TAGGED_SEGMENT.match(segment)
    if match is None:
        return segment, None
    tag = match.group("tag")
    if len(tag) >= 2 and tag[0] == tag[-1] == '"':
        tag = tag[1:-1]
    return match.group("name"), tag


def find_array_element(value: Any, tag: str) -> Optional[Dict[str, Any]]:
    """Find the element whose ``key`` matches the tag.

    A lone mapping is treated as a one-element array, since a property seen
    once has not been promoted to a list yet.
    """
    if isinstance(value, dict):
        candidates = [value]
    elif isinstance(value, list):
        candidates = value
    else:
        return None

    for element in candidates:
        if isinstance(element, dict) and str(element.get("key")) == tag:
            return element
    return None


def _array_element(
    target: PropertyTree, name: str, tag: str, path: str, create: bool
) -> Dict[str, Any]:
    if target.get(name) is None:
        if not create:
            raise MaterializationError(
                path, f"Array property {name} is not set for element [{tag}]"
            )
        element: Dict[str, Any] = {"key": tag}
        target[name] = [element]
        return element

    element = find_array_element(target[name], tag)
    if element is None:
        raise MaterializationError(
            path, f"Could not traverse tree through array element {name}[{tag}]"
        )
    return element


def resolve_target(
    tree: PropertyTree, path: str, create: bool = True
) -> Tuple[PropertyTree, str]:
    """Find the mapping and key a property path addresses.

    Intermediate mappings are created as needed. Tagged segments resolve to
    the matching element of an existing array; an unset array is started
    with a new element only when ``create`` is true.

    Args:
        tree: Tree being materialized
        path: Property path
        create: Create missing array elements

    Returns:
        (mapping, key) for the last path segment

    Raises:
        MaterializationError: If the path conflicts with data already in the tree
    """
    segments = split_property_path(path)
    target = tree

    for segment in segments[:-1]:
        name, tag = tag_and_key(segment)
        if tag is not None:
            target = _array_element(target, name, tag, path, create)
            continue

        child = target.get(name)
        if child is None:
            child = target[name] = {}
        elif not isinstance(child, dict):
            raise MaterializationError(path, f"Property {name} is not a nested value")
        target = child

    return target, segments[-1]


def merge_value(target: PropertyTree, key: str, value: PropertyValue) -> None:
    """Store a value, keeping earlier values for the same key.

    An unset key takes the value. A list gets the value appended. Any other
    existing value becomes a two-element list of the old and new values.
    """
    if key not in target:
        target[key] = list(value) if isinstance(value, list) else value
    elif isinstance(target[key], list):
        target[key].append(value)
    else:
        target[key] = [target[key], value]


def materialize(
    pairs: Iterable[Tuple[str, PropertyValue]], tree: Optional[PropertyTree] = None
) -> PropertyTree:
    """Fold (path, value) pairs into a nested property tree.

    Args:
        pairs: Property paths and values in the order received
        tree: Existing tree to extend, a new one is started if omitted

    Returns:
        The materialized tree
    """
    if tree is None:
        tree = {}

    for path, value in pairs:
        target, key = resolve_target(tree, path)
        merge_value(target, key, value)

    return tree


def flatten(tree: PropertyTree, prefix: str = "") -> List[Tuple[str, PropertyValue]]:
    """Flatten a tree into the (path, value) pairs that materialize back to it.

    Lists of two or more values are emitted as repeated paths; shorter lists
    are emitted whole so that their multiplicity survives.
    """
    pairs: List[Tuple[str, PropertyValue]] = []

    for key, value in tree.items():
        path = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict) and value:
            pairs.extend(flatten(value, path))
        elif isinstance(value, list) and len(value) > 1:
            pairs.extend((path, element) for element in value)
        else:
            pairs.append((path, value))

    return pairs
