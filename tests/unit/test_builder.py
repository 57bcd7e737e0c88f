"""Tests for the resource graph builder."""

import dataclasses
from pathlib import Path

import pytest

from serverless_site.config import DeploymentTarget
from serverless_site.errors import DomainMismatchError, GraphError, InvalidDomainError
from serverless_site.graph import Ref, ResourceGraph, ResourceGraphBuilder, ResourceKind
from serverless_site.graph import builder as names


def build(target: DeploymentTarget, reference: str | None = None) -> ResourceGraph:
  return ResourceGraphBuilder(target, invalidation_reference=reference).build()


def position(graph: ResourceGraph) -> dict[str, int]:
  return {node.name: i for i, node in enumerate(graph.creation_order())}


class TestServer:
  """Test the Lambda and API Gateway part of the graph."""

  def test_function(self, target: DeploymentTarget) -> None:
    """The server function gets the artifact, memory and execution role."""
    function = build(target).get(names.SERVER_FUNCTION)

    assert function.kind is ResourceKind.FUNCTION
    assert function.attributes["code_path"] == target.server_path
    assert function.attributes["memory_size"] == 256
    assert function.attributes["timeout"] == 900
    assert function.attributes["role"] == Ref(names.LAMBDA_ROLE, "arn")
    assert names.BASIC_EXECUTION_ATTACHMENT in function.depends_on

  def test_routes(self, target: DeploymentTarget) -> None:
    """Default route and OPTIONS preflight route, each with an integration."""
    graph = build(target)
    routes = {node.attributes["route_key"] for node in graph.of_kind(ResourceKind.ROUTE)}
    assert routes == {"$default", "OPTIONS /{proxy+}"}

    permission = graph.get(names.SERVER_PERMISSION)
    assert permission.attributes["source_arn"].template == "{}/*/*"
    assert permission.depends_on == {names.SERVER_FUNCTION, names.HTTP_API}

  def test_stage_after_every_route(self, target: DeploymentTarget) -> None:
    """The auto-deploying stage waits for both routes."""
    graph = build(target)
    stage = graph.get(names.API_STAGE)

    assert stage.attributes["name"] == "$default"
    assert stage.attributes["auto_deploy"] is True
    assert {names.DEFAULT_ROUTE, names.OPTIONS_ROUTE} <= stage.depends_on


class TestCertificate:
  """Test the custom domain part of the graph."""

  def test_no_domain(self, target: DeploymentTarget) -> None:
    """Without a domain there is no certificate, zone or record."""
    graph = build(target)

    for kind in (
      ResourceKind.CERTIFICATE,
      ResourceKind.HOSTED_ZONE_LOOKUP,
      ResourceKind.VALIDATION_RECORD,
      ResourceKind.ALIAS_RECORD,
    ):
      assert graph.of_kind(kind) == []
    distribution = graph.get(names.DISTRIBUTION)
    assert distribution.attributes["aliases"] is None
    assert distribution.attributes["viewer_certificate"] == {"cloudfront_default_certificate": True}

  def test_zone_from_parent_domain(self, domain_target: DeploymentTarget) -> None:
    """The zone is looked up in canonical form."""
    zone = build(domain_target).get(names.HOSTED_ZONE)
    assert zone.attributes["name"] == "example.com."
    assert zone.attributes["private_zone"] is False

  def test_configured_zone(self, domain_target: DeploymentTarget) -> None:
    """A configured zone is looked up in canonical form."""
    target = dataclasses.replace(
      domain_target, fqdn="server.example.com", hosted_zone="example.com"
    )
    graph = build(target)

    assert graph.get(names.HOSTED_ZONE).attributes["name"] == "example.com."
    record = graph.get("server.example.com.validation")
    assert record.attributes["zone_id"] == Ref(names.HOSTED_ZONE, "zone_id")

  def test_apex_domain(self, domain_target: DeploymentTarget) -> None:
    """An apex domain is its own zone and gets an empty record name."""
    target = dataclasses.replace(domain_target, fqdn="example.com")
    graph = build(target)

    assert graph.get(names.HOSTED_ZONE).attributes["name"] == "example.com."
    assert graph.get("example.com").attributes["name"] == ""

  def test_domain_outside_zone(self, domain_target: DeploymentTarget) -> None:
    """A configured zone must contain the domain."""
    target = dataclasses.replace(domain_target, hosted_zone="another.com")
    with pytest.raises(DomainMismatchError, match="FQDN must contain domainName"):
      build(target)

  def test_server_domain_outside_zone(self, domain_target: DeploymentTarget) -> None:
    """server.example.com can't live in the another.com zone."""
    target = dataclasses.replace(
      domain_target, fqdn="server.example.com", hosted_zone="another.com"
    )
    with pytest.raises(DomainMismatchError):
      build(target)

  def test_domain_without_tld(self, domain_target: DeploymentTarget) -> None:
    """Single-label domains can't be split."""
    target = dataclasses.replace(domain_target, fqdn="localhost")
    with pytest.raises(InvalidDomainError):
      build(target)

  def test_validation_chain(self, domain_target: DeploymentTarget) -> None:
    """Certificate, zone, validation record, validation, distribution, alias."""
    graph = build(domain_target)
    order = position(graph)
    record = "www.example.com.validation"

    assert graph.get(names.CERTIFICATE).attributes["region"] == "us-east-1"
    assert graph.get(record).attributes["ttl"] == 60
    assert order[names.CERTIFICATE] < order[record]
    assert order[names.HOSTED_ZONE] < order[record]
    assert order[record] < order[names.CERTIFICATE_VALIDATION]
    assert order[names.CERTIFICATE_VALIDATION] < order[names.DISTRIBUTION]
    assert order[names.DISTRIBUTION] < order["www.example.com"]

  def test_alias_record(self, domain_target: DeploymentTarget) -> None:
    """The A record aliases the distribution."""
    alias = build(domain_target).get("www.example.com")

    assert alias.attributes["name"] == "www"
    assert alias.attributes["type"] == "A"
    assert alias.attributes["alias"]["name"] == Ref(names.DISTRIBUTION, "domain_name")
    assert alias.attributes["alias"]["evaluate_target_health"] is False


class TestStatic:
  """Test the bucket, objects and bucket policy."""

  def test_object_per_asset(self, target: DeploymentTarget) -> None:
    """Both roots are planned into the one bucket."""
    graph = build(target)
    keys = {node.attributes["key"] for node in graph.of_kind(ResourceKind.BUCKET_OBJECT)}

    assert keys == {"a.txt", "child/b.txt", "index.html"}
    assert graph.get(names.object_name("a.txt")).attributes["content_type"] == "text/plain"

  def test_duplicate_key_across_roots(self, target: DeploymentTarget, artifacts: Path) -> None:
    """The same key in both roots would overwrite an object."""
    (artifacts / "prerendered" / "a.txt").write_text("other")
    with pytest.raises(GraphError, match="Duplicate"):
      build(target)

  def test_bucket_policy(self, target: DeploymentTarget) -> None:
    """CloudFront may read, scoped to this distribution; plain HTTP is denied."""
    policy = build(target).get(names.BUCKET_POLICY)
    allow, deny = policy.attributes["statements"]

    assert policy.depends_on == {names.BUCKET, names.DISTRIBUTION}
    assert allow["Principal"] == {"Service": "cloudfront.amazonaws.com"}
    assert allow["Action"] == ["s3:GetObject"]
    assert allow["Condition"]["StringEquals"]["AWS:SourceArn"] == Ref(names.DISTRIBUTION, "arn")
    assert deny["Effect"] == "Deny"
    assert deny["Condition"] == {"Bool": {"aws:SecureTransport": "false"}}


class TestDistribution:
  """Test the CloudFront distribution node."""

  def test_ordered_behaviors(self, target: DeploymentTarget) -> None:
    """One S3 behavior per route, in configuration order."""
    behaviors = build(target).get(names.DISTRIBUTION).attributes["ordered_cache_behaviors"]

    assert [b["path_pattern"] for b in behaviors] == ["_app/*", "favicon.png"]
    for behavior in behaviors:
      assert behavior["target_origin_id"] == names.S3_ORIGIN_ID
      assert behavior["cache_policy_id"] == Ref(names.CACHING_OPTIMIZED, "id")
      assert behavior["allowed_methods"] == ["GET", "HEAD", "OPTIONS"]

  def test_api_and_assets_routes(self, target: DeploymentTarget) -> None:
    """Two route patterns give exactly two behaviors, in order."""
    target = dataclasses.replace(target, routes=("api/*", "assets/*"))
    behaviors = build(target).get(names.DISTRIBUTION).attributes["ordered_cache_behaviors"]

    assert [b["path_pattern"] for b in behaviors] == ["api/*", "assets/*"]
    assert {b["target_origin_id"] for b in behaviors} == {names.S3_ORIGIN_ID}

  def test_default_behavior(self, target: DeploymentTarget) -> None:
    """Everything else goes to the API, uncached."""
    default = build(target).get(names.DISTRIBUTION).attributes["default_cache_behavior"]

    assert default["target_origin_id"] == names.HTTP_ORIGIN_ID
    assert default["cache_policy_id"] == Ref(names.CACHING_DISABLED, "id")
    assert default["compress"] is True
    assert sorted(default["allowed_methods"]) == sorted(names.ALL_METHODS)
    assert len(default["allowed_methods"]) == 7

  def test_origins(self, target: DeploymentTarget) -> None:
    """API host over HTTPS only and the bucket through origin access control."""
    http_origin, s3_origin = build(target).get(names.DISTRIBUTION).attributes["origins"]

    assert http_origin["domain_name"] == Ref(names.HTTP_API, "host")
    assert http_origin["custom_origin_config"]["origin_protocol_policy"] == "https-only"
    assert s3_origin["origin_access_control_id"] == Ref(names.ORIGIN_ACCESS_CONTROL, "id")

  def test_no_routes(self, target: DeploymentTarget) -> None:
    """Without routes everything is served by the API."""
    target = dataclasses.replace(target, routes=())
    distribution = build(target).get(names.DISTRIBUTION)
    assert distribution.attributes["ordered_cache_behaviors"] == []


class TestInvalidation:
  """Test the cache invalidation node."""

  def test_only_when_changed(self, target: DeploymentTarget) -> None:
    """No reference, no invalidation."""
    assert names.INVALIDATION not in build(target)

  def test_after_distribution_and_objects(self, target: DeploymentTarget) -> None:
    """The invalidation runs once the distribution and every object exist."""
    graph = build(target, reference="0123abcd")
    node = graph.get(names.INVALIDATION)

    assert node.attributes["caller_reference"] == "0123abcd"
    assert node.attributes["paths"] == ["/*"]
    assert names.DISTRIBUTION in node.depends_on
    assert {names.object_name(k) for k in ("a.txt", "child/b.txt", "index.html")} <= node.depends_on
    order = position(graph)
    assert order[names.DISTRIBUTION] < order[names.INVALIDATION]
