"""ACM certificate with DNS validation."""

from typing import TYPE_CHECKING, Any, cast

from aws_cdk import aws_certificatemanager as acm
from constructs import Construct

from ..graph.nodes import ResourceNode

if TYPE_CHECKING:
  from .executor import GraphExecutor

Result = tuple[Construct | None, dict[str, Any]]


def certificate(executor: "GraphExecutor", node: ResourceNode) -> Result:
  cert = acm.CfnCertificate(
    executor,
    node.name,
    domain_name=node.attributes["domain_name"],
    validation_method=node.attributes["validation_method"],
  )
  return cert, {"arn": cert.ref}


def validation_record(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Validation record and wait are done by CloudFormation itself.

  Giving the certificate the hosted zone of its domain makes CloudFormation
  create the CNAME record and hold the certificate resource until ACM has
  issued it (no email approval needed).
  """
  cert = cast(acm.CfnCertificate, executor.construct_for(node.attributes["certificate_arn"].node))
  cert.domain_validation_options = [
    acm.CfnCertificate.DomainValidationOptionProperty(
      domain_name=node.attributes["domain_name"],
      hosted_zone_id=executor.attribute(node, "zone_id"),
    )
  ]
  return None, {"fqdn": node.attributes["domain_name"]}


def certificate_validation(executor: "GraphExecutor", node: ResourceNode) -> Result:
  cert = executor.construct_for(node.attributes["certificate_arn"].node)
  return cert, {"certificate_arn": executor.attribute(node, "certificate_arn")}
