"""Dependency graph utilities.

Provides topological sorting for release order and propagation of
changes from packages to the packages that depend on them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .models import Package


def reverse_dependencies(packages: Mapping[str, Package]) -> dict[str, list[str]]:
    """Map each package name to the names of packages depending on it."""
    reverse: dict[str, list[str]] = {name: [] for name in packages}
    for name, package in packages.items():
        for dep in package.deps:
            if dep in reverse:
                reverse[dep].append(name)
    return reverse


def topo_sort(packages: Mapping[str, Package]) -> list[str]:
    """Order package names so that every package follows its dependencies.

    Kahn's algorithm; ties between ready packages break alphabetically so
    release order is stable between runs. Deps outside ``packages`` are
    ignored.

    Raises:
        RuntimeError: If the internal dependencies form a cycle.
    """
    in_degree = {
        name: sum(1 for dep in package.deps if dep in packages)
        for name, package in packages.items()
    }
    reverse = reverse_dependencies(packages)

    queue = sorted(name for name, degree in in_degree.items() if degree == 0)
    order: list[str] = []

    while queue:
        node = queue.pop(0)
        order.append(node)
        for dependent in sorted(reverse[node]):
            in_degree[dependent] -= 1
            if in_degree[dependent] == 0:
                queue.append(dependent)

    if len(order) != len(packages):
        remaining = sorted(set(packages) - set(order))
        raise RuntimeError(f"Dependency cycle detected involving: {remaining}")

    return order


def propagate_dirty(
    packages: Mapping[str, Package], dirty: Iterable[str]
) -> dict[str, str | None]:
    """Extend a set of changed packages to everything that depends on them.

    Returns:
        Map of every dirty package name to the dependency that made it dirty,
        or None for packages that changed themselves.
    """
    reasons: dict[str, str | None] = {name: None for name in dirty}
    reverse = reverse_dependencies(packages)
    queue = list(reasons)
    while queue:
        node = queue.pop(0)
        for dependent in reverse.get(node, []):
            if dependent not in reasons:
                reasons[dependent] = node
                queue.append(dependent)
    return reasons
