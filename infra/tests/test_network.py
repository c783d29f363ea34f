"""Tests for the network provider."""
import aws_cdk as cdk
import pytest
from aws_cdk import aws_ec2 as ec2
from aws_cdk.assertions import Template

from stacks.errors import NetworkLookupError
from stacks.network import make_private_ingress_security_group, private_subnet_cidrs, resolve_network

from conftest import make_config


def test_new_vpc_topology(stack, vpc):
    template = Template.from_stack(stack)

    template.has_resource_properties("AWS::EC2::VPC", {"CidrBlock": "10.0.0.0/16"})
    template.resource_count_is("AWS::EC2::NatGateway", 1)
    # 3 tiers x 2 AZs
    template.resource_count_is("AWS::EC2::Subnet", 6)

    assert len(vpc.public_subnets) == 2
    assert len(vpc.private_subnets) == 2
    assert len(vpc.isolated_subnets) == 2


def test_subnet_masks(vpc):
    assert all(s.ipv4_cidr_block.endswith("/24") for s in vpc.public_subnets)
    assert all(s.ipv4_cidr_block.endswith("/24") for s in vpc.private_subnets)
    assert all(s.ipv4_cidr_block.endswith("/28") for s in vpc.isolated_subnets)


def test_private_subnet_cidrs(vpc):
    cidrs = private_subnet_cidrs(vpc)
    assert cidrs == [s.ipv4_cidr_block for s in vpc.private_subnets]
    assert not set(cidrs) & {s.ipv4_cidr_block for s in vpc.public_subnets}


def test_lookup_does_not_create_a_vpc():
    config = make_config(vpc_id="vpc-0123456789abcdef0")
    app = cdk.App()
    stack = cdk.Stack(app, "LookupStack", env=config.env)

    vpc = resolve_network(stack, config)

    assert not isinstance(vpc, ec2.Vpc)
    assert not [c for c in stack.node.find_all() if isinstance(c, (ec2.CfnVPC, ec2.CfnSubnet))]


def test_lookup_rejects_malformed_id():
    config = make_config(vpc_id="not-a-vpc")
    app = cdk.App()
    stack = cdk.Stack(app, "LookupStack", env=config.env)

    with pytest.raises(NetworkLookupError):
        resolve_network(stack, config)


def test_private_ingress_security_group(stack, config, vpc):
    make_private_ingress_security_group(stack, config, vpc, role="thing", port=1234, description="test")

    groups = Template.from_stack(stack).find_resources(
        "AWS::EC2::SecurityGroup", {"Properties": {"GroupName": "test-redash-ec2-thing-sg"}}
    )
    assert len(groups) == 1
    props = next(iter(groups.values()))["Properties"]

    ingress = props["SecurityGroupIngress"]
    assert {rule["CidrIp"] for rule in ingress} == set(private_subnet_cidrs(vpc))
    assert all(rule["FromPort"] == 1234 and rule["ToPort"] == 1234 for rule in ingress)
    assert all(rule["IpProtocol"] == "tcp" for rule in ingress)
    assert props["SecurityGroupEgress"][0]["CidrIp"] == "0.0.0.0/0"
