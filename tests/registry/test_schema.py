"""Tests for schema validation and the type registry."""

import pytest
from reconciler.ingest.models import Configuration, Lifecycle, ResourceDefinition
from reconciler.providers import SimulatedCloud, build_default_registry
from reconciler.registry import AttributeKind, AttributeSpec, ResourceTypeRegistry, check_attributes, validate_configuration
from reconciler.utils.errors import SchemaValidationError, UnknownResourceType


@pytest.fixture
def registry():
    return build_default_registry(cloud=SimulatedCloud())


def _configuration(*definitions):
    return Configuration(definitions=list(definitions))


class TestRegistry:
    """Registration and lookup."""

    def test_default_registry_has_network_types(self, registry):
        assert "aws_vpc" in registry
        assert "aws_instance" in registry
        assert registry.names() == sorted(registry.names())

    def test_require_unknown_type(self, registry):
        with pytest.raises(UnknownResourceType) as exc_info:
            registry.require("aws_lambda_function", "aws_lambda_function.fn")

        assert exc_info.value.address == "aws_lambda_function.fn"
        assert exc_info.value.resource_type == "aws_lambda_function"

    def test_immutable_and_computed_attributes(self, registry):
        vpc = registry.get("aws_vpc")
        assert vpc.is_immutable("cidr_block")
        assert not vpc.is_immutable("tags")
        assert "id" in vpc.computed_attributes()

    def test_empty_registry(self):
        assert len(ResourceTypeRegistry()) == 0


class TestValidateConfiguration:
    """Configuration-wide checks run before planning."""

    def test_valid_configuration(self, registry):
        validate_configuration(_configuration(
            ResourceDefinition(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"}),
            ResourceDefinition(
                type="aws_subnet",
                name="public",
                attributes={"vpc_id": "${aws_vpc.main.id}", "cidr_block": "10.0.1.0/24"}
            ),
        ), registry)

    def test_literal_definition_is_checked_by_adapter(self, registry):
        with pytest.raises(SchemaValidationError, match="public_key must be an OpenSSH public key"):
            validate_configuration(_configuration(
                ResourceDefinition(type="aws_key_pair", name="k", attributes={"key_name": "k", "public_key": "nope"})
            ), registry)

    def test_unregistered_type(self, registry):
        with pytest.raises(UnknownResourceType):
            validate_configuration(_configuration(
                ResourceDefinition(type="aws_bucket", name="b", attributes={})
            ), registry)

    def test_missing_required_attribute(self, registry):
        with pytest.raises(SchemaValidationError, match="missing required attribute 'cidr_block'"):
            validate_configuration(_configuration(
                ResourceDefinition(type="aws_vpc", name="main", attributes={})
            ), registry)

    def test_unknown_attribute(self, registry):
        with pytest.raises(SchemaValidationError, match="unknown attribute 'cidr'"):
            validate_configuration(_configuration(
                ResourceDefinition(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16", "cidr": "x"})
            ), registry)

    def test_computed_attribute_cannot_be_set(self, registry):
        with pytest.raises(SchemaValidationError, match="computed"):
            validate_configuration(_configuration(
                ResourceDefinition(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16", "id": "vpc-1"})
            ), registry)

    def test_wrong_kind(self, registry):
        with pytest.raises(SchemaValidationError, match="kind bool"):
            validate_configuration(_configuration(
                ResourceDefinition(
                    type="aws_vpc",
                    name="main",
                    attributes={"cidr_block": "10.0.0.0/16", "enable_dns_support": "yes"}
                )
            ), registry)

    def test_reference_to_undeclared_attribute(self, registry):
        with pytest.raises(SchemaValidationError, match="not declared by aws_vpc"):
            validate_configuration(_configuration(
                ResourceDefinition(type="aws_vpc", name="main", attributes={"cidr_block": "10.0.0.0/16"}),
                ResourceDefinition(
                    type="aws_subnet",
                    name="public",
                    attributes={"vpc_id": "${aws_vpc.main.vpc_identifier}", "cidr_block": "10.0.1.0/24"}
                ),
            ), registry)

    def test_ignore_changes_must_name_known_attribute(self, registry):
        with pytest.raises(SchemaValidationError, match="ignore_changes"):
            validate_configuration(_configuration(
                ResourceDefinition(
                    type="aws_vpc",
                    name="main",
                    attributes={"cidr_block": "10.0.0.0/16"},
                    lifecycle=Lifecycle(ignore_changes=["labels"])
                )
            ), registry)


class TestCheckAttributes:
    """Attribute-level checks shared with the executor."""

    def test_expressions_skip_kind_checks_only_when_allowed(self, registry):
        subnet = registry.get("aws_subnet")
        attributes = {"vpc_id": "${aws_vpc.main.id}", "cidr_block": "10.0.1.0/24", "map_public_ip_on_launch": "${var.x}"}

        assert check_attributes(subnet, attributes, allow_expressions=True) == []
        assert check_attributes(subnet, attributes) != []

    def test_number_rejects_bool(self, registry):
        resource_type = registry.get("aws_instance")
        spec = resource_type.attributes["root_block_device_size"]
        assert spec.kind == AttributeKind.NUMBER
        attributes = {"ami": "ami-1", "instance_type": "t2.micro", "subnet_id": "subnet-1", "root_block_device_size": True}

        problems = check_attributes(resource_type, attributes)
        assert any("root_block_device_size" in p for p in problems)

    def test_none_allowed_for_optional(self, registry):
        vpc = registry.get("aws_vpc")
        assert check_attributes(vpc, {"cidr_block": "10.0.0.0/16", "tags": None}) == []

    def test_attribute_spec_defaults(self):
        spec = AttributeSpec()
        assert spec.kind == AttributeKind.ANY
        assert not spec.required and not spec.computed and not spec.immutable
