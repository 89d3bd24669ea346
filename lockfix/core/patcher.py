import logging
from typing import Iterable, List, Sequence, Tuple

from lockfix.core.model import DependencyNode
from lockfix.errors import PathSkewError


def parse_spec(spec: str) -> Tuple[str, str]:
    """
    Splits `name@range` into its parts. Scoped names keep their leading `@`;
    a bare name targets `latest`.
    """
    at = spec.rfind("@")
    if at <= 0:
        return spec, "latest"
    return spec[:at], spec[at + 1:] or "latest"


def locate(tree: DependencyNode, path: Sequence[str]) -> DependencyNode:
    """Walks `path` through `requires` lookups and returns the node to patch."""
    if not path:
        raise ValueError("An update path needs at least one segment.")

    node = tree
    walked: List[str] = []
    for i, segment in enumerate(path):
        name = parse_spec(segment)[0] if i == len(path) - 1 else segment
        child = node.find(name)
        if child is None:
            raise PathSkewError(list(path), name, walked)
        walked.append(name)
        node = child
    return node


def reset_resolution(node: DependencyNode, target: str) -> None:
    node.version = target
    node.resolved = None
    node.integrity = None
    node.from_spec = None
    node.requires = None


def patch(tree: DependencyNode, path: Sequence[str]) -> DependencyNode:
    """
    Rewrites the node at the end of `path` so the next resolve fetches it again.

    Every segment is resolved before anything changes, so a path that does not
    exist in the tree leaves it untouched.
    """
    target = locate(tree, path)
    _, version = parse_spec(path[-1])
    logging.debug(f"Patching {target.path()} {target.version} -> {version}")
    reset_resolution(target, version)
    return target


def patch_all(tree: DependencyNode, paths: Iterable[Sequence[str]]) -> List[DependencyNode]:
    """Applies every path or none of them."""
    planned = [(locate(tree, path), parse_spec(path[-1])[1]) for path in paths]
    for node, version in planned:
        logging.debug(f"Patching {node.path()} {node.version} -> {version}")
        reset_resolution(node, version)
    return [node for node, _ in planned]
