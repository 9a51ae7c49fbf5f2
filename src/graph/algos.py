"""Graph algorithms for module dependency analysis."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from model.records import ModuleInfo


def build_dependency_graph(modules: list[ModuleInfo]) -> dict[str, list[str]]:
    """Build the intra-project dependency graph.

    Args:
        modules: Scanned modules, in scan order

    Returns:
        Mapping of artifact id to the artifact ids it depends on. Keys follow
        scan order and neighbours follow declaration order. Edges to
        artifacts outside the project and self-edges are dropped.
    """
    known = {module.artifact_id for module in modules}
    graph: dict[str, list[str]] = {}

    for module in modules:
        edges = graph.setdefault(module.artifact_id, [])
        for dep in module.dependencies:
            if dep in known and dep != module.artifact_id and dep not in edges:
                edges.append(dep)

    return graph


class _DfsState:
    """Mutable state container for the cycle search."""

    def __init__(self) -> None:
        self.visited: set[str] = set()
        self.on_stack: set[str] = set()
        self.stack: list[str] = []


def _visit(node: str, graph: dict[str, list[str]], state: _DfsState) -> list[str] | None:
    state.visited.add(node)
    state.on_stack.add(node)
    state.stack.append(node)

    for neighbor in graph.get(node, []):
        if neighbor in state.on_stack:
            return state.stack[state.stack.index(neighbor) :]
        if neighbor not in state.visited:
            cycle = _visit(neighbor, graph, state)
            if cycle is not None:
                return cycle

    state.stack.pop()
    state.on_stack.remove(node)
    return None


def find_first_cycle(graph: dict[str, list[str]]) -> list[str] | None:
    """Return the first cycle reachable by depth-first search, or None.

    Nodes are visited in key order and neighbours in list order, so the
    result is deterministic. The cycle is returned as the nodes on it,
    starting with the node the back edge points to.
    """
    state = _DfsState()

    for node in graph:
        if node not in state.visited:
            cycle = _visit(node, graph, state)
            if cycle is not None:
                return cycle

    return None


__all__ = ["build_dependency_graph", "find_first_cycle"]
