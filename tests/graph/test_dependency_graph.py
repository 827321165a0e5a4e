"""Tests for dependency graph."""

import pytest
from reconciler.graph.dependency_graph import DependencyGraph
from reconciler.ingest.models import ResourceAddress, ResourceDefinition
from reconciler.utils.errors import CycleDetected, UnknownReference


def _definition(resource_type, name, depends_on=None, **attributes):
    return ResourceDefinition(
        type=resource_type,
        name=name,
        attributes=attributes,
        depends_on=[ResourceAddress.parse(a) for a in depends_on or []]
    )


@pytest.fixture
def network_definitions():
    """vpc <- subnet <- instance, plus an unrelated key pair."""
    return [
        _definition("aws_vpc", "main", cidr_block="10.0.0.0/16"),
        _definition("aws_key_pair", "deployer", key_name="deployer"),
        _definition("aws_subnet", "public", vpc_id="${aws_vpc.main.id}", cidr_block="10.0.1.0/24"),
        _definition(
            "aws_instance",
            "web",
            subnet_id="${aws_subnet.public.id}",
            key_name="${aws_key_pair.deployer.key_name}"
        ),
    ]


class TestDependencyGraph:
    """Test dependency graph construction."""

    def test_build_graph_from_definitions(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)

        assert len(graph) == 4
        assert graph.graph.number_of_edges() == 3
        assert "aws_vpc.main" in graph

    def test_edges_point_from_dependent_to_dependency(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)

        assert graph.get_dependencies("aws_subnet.public") == ["aws_vpc.main"]
        assert graph.get_dependents("aws_vpc.main") == ["aws_subnet.public"]
        assert graph.get_dependencies("aws_instance.web") == ["aws_key_pair.deployer", "aws_subnet.public"]

    def test_edges_record_referenced_attribute(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)

        edges = {(e.source, e.target): e.attribute for e in graph.edges()}
        assert edges[("aws_subnet.public", "aws_vpc.main")] == "id"
        assert edges[("aws_instance.web", "aws_key_pair.deployer")] == "key_name"

    def test_explicit_depends_on_adds_edge(self):
        graph = DependencyGraph()
        graph.build_from_definitions([
            _definition("aws_vpc", "main"),
            _definition("aws_instance", "web", depends_on=["aws_vpc.main"]),
        ])

        assert graph.get_dependencies("aws_instance.web") == ["aws_vpc.main"]
        assert graph.edges()[0].attribute == ""

    def test_get_downstream_resources(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)

        assert graph.get_downstream_resources("aws_vpc.main") == {"aws_subnet.public", "aws_instance.web"}
        assert graph.get_downstream_resources("aws_instance.web") == set()

    def test_get_upstream_resources(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)

        assert graph.get_upstream_resources("aws_instance.web") == {
            "aws_subnet.public",
            "aws_vpc.main",
            "aws_key_pair.deployer",
        }

    def test_unknown_names_return_empty(self):
        graph = DependencyGraph()
        assert graph.get_dependencies("aws_vpc.missing") == []
        assert graph.get_downstream_resources("aws_vpc.missing") == set()


class TestOrdering:
    """Topological ordering and tie-breaking."""

    def test_dependencies_come_first(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)
        order = graph.topological_order()

        for source, target in graph.graph.edges():
            assert order.index(target) < order.index(source)

    def test_ties_follow_declaration_order(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)

        assert graph.topological_order() == [
            "aws_vpc.main",
            "aws_key_pair.deployer",
            "aws_subnet.public",
            "aws_instance.web",
        ]

    def test_reverse_order_is_exact_reverse(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)

        assert graph.reverse_topological_order() == list(reversed(graph.topological_order()))

    def test_order_is_deterministic(self, network_definitions):
        orders = []
        for _ in range(5):
            graph = DependencyGraph()
            graph.build_from_definitions(network_definitions)
            orders.append(graph.topological_order())
        assert all(order == orders[0] for order in orders)

    def test_build_from_dependencies_ignores_missing_targets(self):
        graph = DependencyGraph()
        graph.build_from_dependencies({
            "aws_vpc.main": [],
            "aws_subnet.public": ["aws_vpc.main", "aws_vpc.gone"],
        })

        assert len(graph) == 2
        assert graph.topological_order() == ["aws_vpc.main", "aws_subnet.public"]


class TestErrors:
    """Cycle and unknown-reference detection."""

    def test_two_resource_cycle(self):
        graph = DependencyGraph()
        with pytest.raises(CycleDetected) as exc_info:
            graph.build_from_definitions([
                _definition("aws_security_group", "a", peer="${aws_security_group.b.id}"),
                _definition("aws_security_group", "b", peer="${aws_security_group.a.id}"),
            ])

        assert set(exc_info.value.cycle) == {"aws_security_group.a", "aws_security_group.b"}
        assert "Dependency cycle detected" in str(exc_info.value)

    def test_self_reference_is_a_cycle(self):
        graph = DependencyGraph()
        with pytest.raises(CycleDetected) as exc_info:
            graph.build_from_definitions([
                _definition("aws_instance", "web", user_data="${aws_instance.web.id}"),
            ])

        assert exc_info.value.cycle == ["aws_instance.web"]

    def test_unknown_reference(self):
        graph = DependencyGraph()
        with pytest.raises(UnknownReference) as exc_info:
            graph.build_from_definitions([
                _definition("aws_subnet", "public", vpc_id="${aws_vpc.missing.id}"),
            ])

        assert exc_info.value.source == "aws_subnet.public"
        assert exc_info.value.target == "aws_vpc.missing"

    def test_unknown_depends_on(self):
        graph = DependencyGraph()
        with pytest.raises(UnknownReference):
            graph.build_from_definitions([
                _definition("aws_instance", "web", depends_on=["aws_vpc.missing"]),
            ])


class TestDot:
    """DOT rendering."""

    def test_to_dot_lists_nodes_and_labelled_edges(self, network_definitions):
        graph = DependencyGraph()
        graph.build_from_definitions(network_definitions)
        dot = graph.to_dot()

        assert dot.startswith("digraph {")
        assert dot.rstrip().endswith("}")
        assert '"aws_vpc.main";' in dot
        assert '"aws_subnet.public" -> "aws_vpc.main" [label="id"];' in dot
