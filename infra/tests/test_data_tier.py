"""
Tests for the database, cache and secret providers.

The data tier must only be reachable from the private subnets.
"""
import json

from aws_cdk.assertions import Match, Template

from stacks.cache import REDIS_PORT, make_cache
from stacks.database import DATABASE_PORT, make_database
from stacks.network import private_subnet_cidrs
from stacks.secrets import compose_database_url, container_secrets, generate_secret


def _security_group(template, name):
    groups = template.find_resources("AWS::EC2::SecurityGroup", {"Properties": {"GroupName": name}})
    assert len(groups) == 1, f"expected one security group named {name}"
    return next(iter(groups.values()))["Properties"]


def _ingress(props):
    return {(rule["CidrIp"], rule["FromPort"], rule["ToPort"]) for rule in props["SecurityGroupIngress"]}


# ── Database ──────────────────────────────────────────────────────────────────

def test_database_instance(stack, config, vpc):
    make_database(stack, config, vpc)
    template = Template.from_stack(stack)

    template.resource_count_is("AWS::RDS::DBInstance", 1)
    template.has_resource_properties(
        "AWS::RDS::DBInstance",
        {
            "DBInstanceIdentifier": "test-redash-rds",
            "DBName": "redash",
            "DBInstanceClass": "db.t3.micro",
            "Engine": "postgres",
            "EngineVersion": "13.6",
        },
    )


def test_database_parameter_group(stack, config, vpc):
    make_database(stack, config, vpc)

    Template.from_stack(stack).has_resource_properties(
        "AWS::RDS::DBParameterGroup",
        {"Parameters": {"max_connections": "100"}},
    )


def test_database_only_in_isolated_subnets(stack, config, vpc):
    make_database(stack, config, vpc)
    template = Template.from_stack(stack)

    subnet_groups = template.find_resources("AWS::RDS::DBSubnetGroup")
    assert len(subnet_groups) == 1
    subnet_ids = next(iter(subnet_groups.values()))["Properties"]["SubnetIds"]
    assert subnet_ids == [stack.resolve(s.subnet_id) for s in vpc.isolated_subnets]


def test_database_ingress_only_from_private_subnets(stack, config, vpc):
    make_database(stack, config, vpc)
    props = _security_group(Template.from_stack(stack), "test-redash-ec2-rds-sg")

    expected = {(cidr, DATABASE_PORT, DATABASE_PORT) for cidr in private_subnet_cidrs(vpc)}
    assert _ingress(props) == expected
    public = {s.ipv4_cidr_block for s in vpc.public_subnets}
    assert not {cidr for cidr, _, _ in _ingress(props)} & public


def test_database_credentials_are_generated(stack, config, vpc):
    database = make_database(stack, config, vpc)

    assert database.secret is not None
    assert database.engine_version == "13.6"
    Template.from_stack(stack).resource_count_is("AWS::SecretsManager::Secret", 1)


# ── Cache ─────────────────────────────────────────────────────────────────────

def test_cache_cluster(stack, config, vpc):
    make_cache(stack, config, vpc)

    Template.from_stack(stack).has_resource_properties(
        "AWS::ElastiCache::CacheCluster",
        {
            "ClusterName": "test-redash-elasticache",
            "Engine": "redis",
            "EngineVersion": "5.0.0",
            "CacheNodeType": "cache.t3.micro",
            "NumCacheNodes": 1,
            "AZMode": "single-az",
            "Port": REDIS_PORT,
            "CacheSubnetGroupName": "test-redash-redis-subnet-group",
        },
    )


def test_cache_waits_for_subnet_group(stack, config, vpc):
    cache = make_cache(stack, config, vpc)
    resources = Template.from_stack(stack).to_json()["Resources"]

    cluster = resources[stack.get_logical_id(cache.cluster)]
    assert stack.get_logical_id(cache.subnet_group) in cluster["DependsOn"]


def test_cache_subnet_group_spans_private_subnets(stack, config, vpc):
    make_cache(stack, config, vpc)

    Template.from_stack(stack).has_resource_properties(
        "AWS::ElastiCache::SubnetGroup",
        {
            "CacheSubnetGroupName": "test-redash-redis-subnet-group",
            "SubnetIds": [stack.resolve(s.subnet_id) for s in vpc.private_subnets],
        },
    )


def test_cache_ingress_only_from_private_subnets(stack, config, vpc):
    make_cache(stack, config, vpc)
    props = _security_group(Template.from_stack(stack), "test-redash-ec2-redis-sg")

    assert _ingress(props) == {(cidr, REDIS_PORT, REDIS_PORT) for cidr in private_subnet_cidrs(vpc)}


def test_redis_url(stack, config, vpc):
    cache = make_cache(stack, config, vpc)
    resolved = json.dumps(stack.resolve(cache.redis_url))

    assert "redis://" in resolved
    assert "RedisEndpoint.Address" in resolved
    assert "RedisEndpoint.Port" in resolved


# ── Secrets ───────────────────────────────────────────────────────────────────

def test_generated_secret(stack, config):
    generate_secret(stack, config, "cookie")

    Template.from_stack(stack).has_resource_properties(
        "AWS::SecretsManager::Secret",
        {
            "Name": "test-redash-cookie-secret",
            "GenerateSecretString": {"PasswordLength": 32},
        },
    )


def test_database_url_is_built_from_references(stack, config, vpc):
    database = make_database(stack, config, vpc)
    secret = compose_database_url(stack, config, database)

    props = Template.from_stack(stack).to_json()["Resources"][
        stack.get_logical_id(secret.node.default_child)
    ]["Properties"]
    assert props["Name"] == "test-redash-database-url-secret"

    value = json.dumps(props["SecretString"])
    assert "postgresql://" in value
    assert "/redash" in value
    # credentials are dynamic references, never literals
    assert "{{resolve:secretsmanager:" in value
    assert ":SecretString:password::}}" in value


def test_container_secrets_are_references(stack, config):
    a = generate_secret(stack, config, "a")
    b = generate_secret(stack, config, "b")
    c = generate_secret(stack, config, "c")

    secrets = container_secrets(a, b, c)

    assert set(secrets) == {"REDASH_SECRET_KEY", "REDASH_COOKIE_SECRET", "REDASH_DATABASE_URL"}
    assert stack.resolve(secrets["REDASH_DATABASE_URL"].arn) == stack.resolve(c.secret_arn)


def test_generated_secret_template_is_not_a_literal(stack, config):
    generate_secret(stack, config, "secret")

    Template.from_stack(stack).has_resource_properties(
        "AWS::SecretsManager::Secret",
        {"Name": "test-redash-secret-secret", "SecretString": Match.absent()},
    )
