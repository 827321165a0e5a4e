"""Build directed dependency graph from resource definitions or recorded state."""

import networkx as nx
from typing import Dict, List, Optional, Set
from pydantic import BaseModel, Field
from ..ingest.models import ResourceDefinition
from ..utils.errors import CycleDetected, UnknownReference
from ..utils.logging import get_logger

logger = get_logger("graph.dependency_graph")


class ReferenceEdge(BaseModel):
    """Edge from a dependent resource to the resource whose attribute it uses."""
    source: str = Field(..., description="Dependent resource address")
    target: str = Field(..., description="Dependency resource address")
    attribute: str = Field(default="", description="Referenced attribute path; empty for explicit depends_on")


class DependencyGraph:
    """Directed dependency graph: nodes=resource addresses, edges=dependent -> dependency."""

    def __init__(self):
        self.graph = nx.DiGraph()
        self._definitions: Dict[str, ResourceDefinition] = {}
        self._order: Dict[str, int] = {}

    def add_node(self, address: str, definition: Optional[ResourceDefinition] = None, order: Optional[int] = None) -> None:
        """Add a resource node; order is the tie-break position (defaults to insertion order)."""
        if address not in self.graph:
            self.graph.add_node(address, attributes=set())
        if definition is not None:
            self._definitions[address] = definition
        if order is not None:
            self._order[address] = order
        elif address not in self._order:
            self._order[address] = len(self._order)

    def add_dependency(self, source: str, target: str, attribute: str = "") -> None:
        """Record that source depends on target (optionally through an attribute path)."""
        if not self.graph.has_edge(source, target):
            self.graph.add_edge(source, target, attributes=[])
        if attribute and attribute not in self.graph.edges[source, target]["attributes"]:
            self.graph.edges[source, target]["attributes"].append(attribute)
        logger.debug(f"Added dependency edge: {source} -> {target} ({attribute or 'depends_on'})")

    def build_from_definitions(self, definitions: List[ResourceDefinition]) -> None:
        """
        Build the complete graph from a configuration's definitions.

        Args:
            definitions: Definitions in declaration order (used to break ordering ties)

        Raises:
            UnknownReference: If a reference or depends_on names an undeclared address
            CycleDetected: If the references form a cycle
        """
        for index, definition in enumerate(definitions):
            self.add_node(str(definition.address), definition, order=index)

        for definition in definitions:
            source = str(definition.address)
            for reference in definition.references():
                target = str(reference.address)
                if target not in self._definitions:
                    raise UnknownReference(source, target)
                self.add_dependency(source, target, reference.path_string)
            for explicit in definition.depends_on:
                target = str(explicit)
                if target not in self._definitions:
                    raise UnknownReference(source, target)
                self.add_dependency(source, target)

        self.check_acyclic()
        logger.info(f"Built dependency graph with {self.graph.number_of_nodes()} nodes and {self.graph.number_of_edges()} edges")

    def build_from_dependencies(self, dependencies: Dict[str, List[str]], order: Optional[Dict[str, int]] = None) -> None:
        """
        Build a graph from recorded address -> dependency lists (e.g. prior state).

        Dependencies on addresses outside the mapping are ignored, since the
        record they pointed at no longer exists.
        """
        order = order or {}
        for index, address in enumerate(dependencies):
            self.add_node(address, order=order.get(address, len(order) + index))
        for address, targets in dependencies.items():
            for target in targets:
                if target in dependencies:
                    self.add_dependency(address, target)
        self.check_acyclic()

    def check_acyclic(self) -> None:
        """Raise CycleDetected if the graph has a cycle (self references included)."""
        try:
            cycle = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return
        raise CycleDetected([edge[0] for edge in cycle])

    def topological_order(self) -> List[str]:
        """Dependencies first; independent nodes keep their input order."""
        dependency_first = self.graph.reverse(copy=False)
        return list(nx.lexicographical_topological_sort(dependency_first, key=lambda node: self._order[node]))

    def reverse_topological_order(self) -> List[str]:
        """Dependents first: the exact reverse of topological_order()."""
        return list(reversed(self.topological_order()))

    def get_dependencies(self, address: str) -> List[str]:
        """Direct dependencies of a resource, in input order."""
        if address not in self.graph:
            return []
        return sorted(self.graph.successors(address), key=lambda node: self._order[node])

    def get_dependents(self, address: str) -> List[str]:
        """Resources that directly depend on the given resource, in input order."""
        if address not in self.graph:
            return []
        return sorted(self.graph.predecessors(address), key=lambda node: self._order[node])

    def get_downstream_resources(self, address: str) -> Set[str]:
        """All resources that depend on the given resource, directly or transitively."""
        if address not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, address))

    def get_upstream_resources(self, address: str) -> Set[str]:
        """All resources the given resource depends on, directly or transitively."""
        if address not in self.graph:
            return set()
        return set(nx.descendants(self.graph, address))

    def get_definition(self, address: str) -> Optional[ResourceDefinition]:
        """Get resource definition by address."""
        return self._definitions.get(address)

    def order_of(self, address: str) -> int:
        return self._order[address]

    def edges(self) -> List[ReferenceEdge]:
        """All reference edges; one entry per referenced attribute path."""
        result = []
        for source, target, data in self.graph.edges(data=True):
            for attribute in data["attributes"] or [""]:
                result.append(ReferenceEdge(source=source, target=target, attribute=attribute))
        return sorted(result, key=lambda e: (self._order[e.source], self._order[e.target], e.attribute))

    def to_dot(self) -> str:
        """Render the graph in Graphviz DOT format."""
        lines = ["digraph {", "  rankdir = \"RL\";"]
        for address in self.topological_order():
            lines.append(f"  \"{address}\";")
        for edge in self.edges():
            label = f" [label=\"{edge.attribute}\"]" if edge.attribute else ""
            lines.append(f"  \"{edge.source}\" -> \"{edge.target}\"{label};")
        lines.append("}")
        return "\n".join(lines)

    def __contains__(self, address: str) -> bool:
        return address in self.graph

    def __len__(self) -> int:
        return self.graph.number_of_nodes()
