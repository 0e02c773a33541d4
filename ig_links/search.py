"""Lazy search over the JSON blobs embedded in a rendered page."""

from __future__ import annotations

from typing import Any, Callable, Iterator, List, Optional, Sequence, Set, Tuple, Union

from .models import POST_TRACE_POLICY, STORY_TRACE_POLICY

Predicate = Callable[[Any], bool]
PathSpec = Union[str, Sequence[Union[str, int]], None]

_MISSING = object()


def tagged(tag: str) -> Predicate:
    """Match ``[tag, ...]`` arrays, the shape used for tagged module payloads."""

    def predicate(value: Any) -> bool:
        return isinstance(value, list) and bool(value) and value[0] == tag

    return predicate


def field_equals(key: str, expected: Any) -> Predicate:
    """Match objects whose ``key`` field equals ``expected``."""

    def predicate(value: Any) -> bool:
        return isinstance(value, dict) and key in value and value[key] == expected

    return predicate


def _parse_path(path: PathSpec) -> Tuple[Union[str, int], ...]:
    if path is None:
        return ()
    if isinstance(path, str):
        return tuple(part for part in path.split(".") if part)
    return tuple(path)


def _follow(node: Any, steps: Sequence[Union[str, int]]) -> Any:
    for step in steps:
        if isinstance(node, dict):
            key = step if step in node else str(step)
            if key not in node:
                return _MISSING
            node = node[key]
        elif isinstance(node, (list, tuple)):
            try:
                index = int(step)
            except (TypeError, ValueError):
                return _MISSING
            if not -len(node) <= index < len(node):
                return _MISSING
            node = node[index]
        else:
            return _MISSING
    return node


def walk_deep(root: Any, predicate: Predicate, path: PathSpec = None) -> Iterator[Any]:
    """Yield every value under ``root`` matching ``predicate``, depth first.

    Matching nodes are not searched any further, so nested partial matches of
    the same structure are never reported twice. When ``path`` is given, each
    match is drilled into along it (``"2.native"`` means index 2, then key
    ``native``) and only matches where the whole path resolves are yielded.
    Containers already visited are skipped, which keeps cyclic input finite.
    """
    steps = _parse_path(path)
    seen: Set[int] = set()
    stack: List[Any] = [root]
    while stack:
        node = stack.pop()
        is_container = isinstance(node, (dict, list, tuple))
        if is_container:
            if id(node) in seen:
                continue
            seen.add(id(node))

        if predicate(node):
            value = _follow(node, steps)
            if value is not _MISSING:
                yield value
            continue

        if isinstance(node, dict):
            stack.extend(reversed(list(node.values())))
        elif is_container:
            stack.extend(reversed(node))


class Searcher:
    """A predicate and optional path bundled into a reusable search."""

    def __init__(self, predicate: Predicate, path: PathSpec = None) -> None:
        self.predicate = predicate
        self.path = path

    def __call__(self, root: Any) -> Iterator[Any]:
        return walk_deep(root, self.predicate, self.path)

    def all(self, root: Any) -> List[Any]:
        return list(self(root))

    def first(self, root: Any) -> Optional[Any]:
        return next(self(root), None)


def make_searcher(predicate: Predicate, path: PathSpec = None) -> Searcher:
    return Searcher(predicate, path)


find_shared_data = make_searcher(tagged("XIGSharedData"), "2.native")
find_post_data = make_searcher(field_equals("tracePolicy", POST_TRACE_POLICY))
find_story_data = make_searcher(field_equals("tracePolicy", STORY_TRACE_POLICY))
