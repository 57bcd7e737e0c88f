"""Route 53 zone lookup and alias record."""

from typing import TYPE_CHECKING, Any, cast

from aws_cdk import aws_cloudfront as cloudfront
from aws_cdk import aws_route53 as route53
from aws_cdk import aws_route53_targets as targets
from constructs import Construct

from ..errors import GraphError
from ..graph.nodes import ResourceNode

if TYPE_CHECKING:
  from .executor import GraphExecutor

Result = tuple[Construct | None, dict[str, Any]]


def hosted_zone(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Use the configured zone id, or look the public zone up by name.

  A lookup needs an explicit account and region on the stack.
  """
  zone_name = node.attributes["name"].rstrip(".")
  zone_id = node.attributes.get("zone_id")
  if zone_id:
    zone = route53.HostedZone.from_hosted_zone_attributes(
      executor,
      node.name,
      hosted_zone_id=zone_id,
      zone_name=zone_name,
    )
  else:
    zone = route53.HostedZone.from_lookup(
      executor,
      node.name,
      domain_name=zone_name,
      private_zone=node.attributes.get("private_zone", False),
    )
  return zone, {"zone_id": zone.hosted_zone_id}


def alias_record(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """A record pointing the domain at the CloudFront distribution."""
  attrs = node.attributes
  if attrs["alias"]["evaluate_target_health"]:
    raise GraphError(f"{node.name}: CloudFront alias targets cannot evaluate target health")

  zone = cast(route53.IHostedZone, executor.construct_for(attrs["zone_id"].node))
  distribution_node = attrs["alias"]["name"].node
  distribution = cloudfront.Distribution.from_distribution_attributes(
    executor,
    f"{node.name}Target",
    domain_name=executor.output(distribution_node, "domain_name"),
    distribution_id=executor.output(distribution_node, "id"),
  )

  record = route53.ARecord(
    executor,
    node.name,
    zone=zone,
    record_name=attrs["fqdn"],
    target=route53.RecordTarget.from_alias(targets.CloudFrontTarget(distribution)),
  )
  return record, {"fqdn": attrs["fqdn"]}
