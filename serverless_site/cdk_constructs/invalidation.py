"""CloudFront cache invalidation issued during deployment."""

from typing import TYPE_CHECKING, Any

from aws_cdk import CustomResource, Duration, Stack
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from aws_cdk import custom_resources as cr
from constructs import Construct

from ..graph.nodes import ResourceNode

if TYPE_CHECKING:
  from .executor import GraphExecutor

Result = tuple[Construct | None, dict[str, Any]]

RESOURCE_TYPE = "Custom::CloudFrontInvalidation"

HANDLER_CODE = """
import boto3

def handler(event, context):
    if event["RequestType"] == "Delete":
        return {"PhysicalResourceId": event["PhysicalResourceId"]}

    props = event["ResourceProperties"]
    paths = props["Paths"]
    response = boto3.client("cloudfront").create_invalidation(
        DistributionId=props["DistributionId"],
        InvalidationBatch={
            "Paths": {"Quantity": len(paths), "Items": paths},
            "CallerReference": props["CallerReference"],
        },
    )

    invalidation_id = response["Invalidation"]["Id"]
    print(f"Created invalidation: {invalidation_id}")
    return {
        "PhysicalResourceId": props["CallerReference"],
        "Data": {"InvalidationId": invalidation_id},
    }
"""


def invalidation(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Custom resource invalidating the distribution once per caller reference.

  Every deployment with changed assets passes a new caller reference, which
  replaces the resource and issues a new invalidation. The node is only in
  the graph when the fingerprints changed.
  """
  attrs = executor.resolve(node.attributes)
  distribution_id = attrs["distribution_id"]

  handler = lambda_.Function(
    executor,
    f"{node.name}Handler",
    runtime=lambda_.Runtime.PYTHON_3_12,
    handler="index.handler",
    code=lambda_.Code.from_inline(HANDLER_CODE),
    timeout=Duration.seconds(60),
  )
  handler.add_to_role_policy(
    iam.PolicyStatement(
      actions=["cloudfront:CreateInvalidation"],
      resources=[
        Stack.of(executor).format_arn(
          service="cloudfront",
          region="",
          resource="distribution",
          resource_name=distribution_id,
        )
      ],
    )
  )

  provider = cr.Provider(executor, f"{node.name}Provider", on_event_handler=handler)

  resource = CustomResource(
    executor,
    node.name,
    service_token=provider.service_token,
    resource_type=RESOURCE_TYPE,
    properties={
      "DistributionId": distribution_id,
      "CallerReference": attrs["caller_reference"],
      "Paths": list(attrs["paths"]),
    },
  )
  return resource, {}
