"""Workspace dependency graph check.

Ghost builds members in the order the workspace manifest declares them and
links every executable against the static libraries built before it. This
module builds the directed graph implied by each package's ``[deps]`` lists
so that a declaration order that contradicts the dependencies, or a cycle,
can be reported. It never reorders anything.
"""

from typing import Dict, Iterable, List, Tuple

from ghost.config.manifest import PackageManifest


class CyclicDependencyError(ValueError):
    """Raised when the dependency graph contains a cycle."""

    pass


class DependencyGraph:
    """Directed graph of workspace packages and their declared dependencies.

    Edges point from a package to the packages it depends on (direct and
    private). Names that are not workspace members are ignored.

    Usage:
        graph = DependencyGraph.from_packages(packages)
        graph.detect_cycles()  # raises CyclicDependencyError
        for pkg, dep in graph.order_violations(member_names):
            ...
    """

    def __init__(self) -> None:
        self._deps: Dict[str, List[str]] = {}

    @classmethod
    def from_packages(cls, packages: Iterable[PackageManifest]) -> "DependencyGraph":
        """Build the graph from parsed package manifests."""
        packages = list(packages)
        graph = cls()
        for pkg in packages:
            graph.add_package(pkg.name)
        for pkg in packages:
            for dep_name in list(pkg.deps.direct) + list(pkg.deps.private):
                graph.add_dependency(pkg.name, dep_name)
        return graph

    def add_package(self, name: str) -> None:
        """Add a node. Adding an existing name is a no-op."""
        self._deps.setdefault(name, [])

    def add_dependency(self, package: str, dependency: str) -> None:
        """Add an edge package -> dependency, ignoring unknown dependency names."""
        if dependency not in self._deps or package not in self._deps:
            return
        if dependency not in self._deps[package]:
            self._deps[package].append(dependency)

    def dependencies(self, package: str) -> List[str]:
        """Known dependencies of a package, in declaration order."""
        return list(self._deps.get(package, []))

    def detect_cycles(self) -> None:
        """Detect cycles using DFS with coloring (white/gray/black).

        Raises:
            CyclicDependencyError: If a cycle is detected.
        """
        WHITE, GRAY, BLACK = 0, 1, 2
        color: Dict[str, int] = {name: WHITE for name in self._deps}

        def dfs(name: str, path: List[str]) -> None:
            color[name] = GRAY
            path.append(name)
            for dep_name in self._deps[name]:
                if color[dep_name] == GRAY:
                    cycle_start = path.index(dep_name)
                    cycle = path[cycle_start:] + [dep_name]
                    raise CyclicDependencyError(f"Cyclic dependency detected: {' -> '.join(cycle)}")
                if color[dep_name] == WHITE:
                    dfs(dep_name, path)
            path.pop()
            color[name] = BLACK

        for name in self._deps:
            if color[name] == WHITE:
                dfs(name, [])

    def topological_order(self) -> List[str]:
        """Return packages with every dependency before its dependents.

        Ties keep insertion order.

        Raises:
            CyclicDependencyError: If the graph contains a cycle.
        """
        self.detect_cycles()
        order: List[str] = []
        visited = set()

        def visit(name: str) -> None:
            if name in visited:
                return
            visited.add(name)
            for dep_name in self._deps[name]:
                visit(dep_name)
            order.append(name)

        for name in self._deps:
            visit(name)
        return order

    def order_violations(self, declared_order: Iterable[str]) -> List[Tuple[str, str]]:
        """List (package, dependency) pairs where the dependency is declared later.

        Args:
            declared_order: Package names in workspace member order
        """
        position = {name: index for index, name in enumerate(declared_order)}
        violations = []
        for name, deps in self._deps.items():
            for dep_name in deps:
                if name in position and dep_name in position and position[dep_name] > position[name]:
                    violations.append((name, dep_name))
        return violations
