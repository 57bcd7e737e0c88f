"""Private S3 bucket holding the static and prerendered assets."""

from typing import TYPE_CHECKING, Any, cast

from aws_cdk import RemovalPolicy
from aws_cdk import aws_iam as iam
from aws_cdk import aws_s3 as s3
from aws_cdk import aws_s3_deployment as s3_deploy
from constructs import Construct

from ..graph.nodes import ResourceKind, ResourceNode

if TYPE_CHECKING:
  from .executor import GraphExecutor

Result = tuple[Construct | None, dict[str, Any]]


def bucket(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Bucket readable only through CloudFront's origin access control."""
  force_destroy = node.attributes.get("force_destroy", False)
  removal_policy = RemovalPolicy.DESTROY if force_destroy else RemovalPolicy.RETAIN

  site_bucket = s3.Bucket(
    executor,
    node.name,
    block_public_access=s3.BlockPublicAccess.BLOCK_ALL,
    object_ownership=s3.ObjectOwnership.BUCKET_OWNER_ENFORCED,
    removal_policy=removal_policy,
    auto_delete_objects=force_destroy,
  )
  return site_bucket, {
    "id": site_bucket.bucket_name,
    "arn": site_bucket.bucket_arn,
    "regional_domain_name": site_bucket.bucket_regional_domain_name,
  }


def bucket_object(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Objects are uploaded by one BucketDeployment per bucket.

  The deployment copies every artifact root with keys relative to it and
  sets each object's Content-Type from its extension, so every object node
  of the bucket maps to the same construct. Pruning deletes the objects
  whose files left the build.
  """
  bucket_name = node.attributes["bucket"].node
  deployment = executor.bucket_deployments.get(bucket_name)
  if deployment is None:
    roots = dict.fromkeys(
      other.attributes["source_root"]
      for other in executor.graph.of_kind(ResourceKind.BUCKET_OBJECT)
      if other.attributes["bucket"].node == bucket_name
    )
    destination = cast(s3.IBucket, executor.construct_for(bucket_name))
    deployment = s3_deploy.BucketDeployment(
      executor,
      f"{bucket_name}Deployment",
      sources=[s3_deploy.Source.asset(root) for root in roots],
      destination_bucket=destination,
    )
    executor.bucket_deployments[bucket_name] = deployment
  return deployment, {}


def bucket_policy(executor: "GraphExecutor", node: ResourceNode) -> Result:
  site_bucket = cast(s3.Bucket, executor.construct_for(node.attributes["bucket"].node))
  for statement in executor.attribute(node, "statements"):
    site_bucket.add_to_resource_policy(iam.PolicyStatement.from_json(statement))
  return site_bucket.policy, {}
