"""Lambda server function behind an API Gateway HTTP API."""

from typing import TYPE_CHECKING, Any, cast

from aws_cdk import Aws, Fn, Stack
from aws_cdk import aws_apigatewayv2 as apigwv2
from aws_cdk import aws_iam as iam
from aws_cdk import aws_lambda as lambda_
from aws_cdk import aws_s3_assets as s3_assets
from constructs import Construct

from ..graph.nodes import ResourceNode

if TYPE_CHECKING:
  from .executor import GraphExecutor

Result = tuple[Construct | None, dict[str, Any]]


def role(executor: "GraphExecutor", node: ResourceNode) -> Result:
  cfn_role = iam.CfnRole(
    executor,
    node.name,
    assume_role_policy_document=node.attributes["assume_role_policy"],
  )
  return cfn_role, {"arn": cfn_role.attr_arn, "name": cfn_role.ref}


def role_policy_attachment(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Managed policies are a property of the role in CloudFormation."""
  cfn_role = cast(iam.CfnRole, executor.construct_for(node.attributes["role"].node))
  cfn_role.managed_policy_arns = [
    *(cfn_role.managed_policy_arns or []),
    node.attributes["policy_arn"],
  ]
  return None, {}


def function(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Function from inline source or from a packaged artifact directory."""
  attrs = node.attributes

  if "inline_code" in attrs:
    code = lambda_.CfnFunction.CodeProperty(zip_file=attrs["inline_code"])
  else:
    asset = s3_assets.Asset(executor, f"{node.name}Code", path=attrs["code_path"])
    code = lambda_.CfnFunction.CodeProperty(
      s3_bucket=asset.s3_bucket_name,
      s3_key=asset.s3_object_key,
    )

  variables = executor.attribute(node, "environment") or {}

  fn = lambda_.CfnFunction(
    executor,
    node.name,
    code=code,
    role=executor.attribute(node, "role"),
    handler=attrs["handler"],
    runtime=attrs["runtime"],
    timeout=attrs["timeout"],
    memory_size=attrs["memory_size"],
    environment=lambda_.CfnFunction.EnvironmentProperty(variables=variables)
    if variables
    else None,
  )
  return fn, {"arn": fn.attr_arn, "name": fn.ref}


def permission(executor: "GraphExecutor", node: ResourceNode) -> Result:
  cfn_permission = lambda_.CfnPermission(
    executor,
    node.name,
    action=node.attributes["action"],
    principal=node.attributes["principal"],
    function_name=executor.attribute(node, "function"),
    source_arn=executor.attribute(node, "source_arn"),
  )
  return cfn_permission, {}


def http_api(executor: "GraphExecutor", node: ResourceNode) -> Result:
  api = apigwv2.CfnApi(
    executor,
    node.name,
    name=f"{Stack.of(executor).stack_name}-{node.name}",
    protocol_type=node.attributes["protocol_type"],
  )
  endpoint = api.attr_api_endpoint
  return api, {
    "id": api.ref,
    "endpoint": endpoint,
    # https://abc123.execute-api.us-east-1.amazonaws.com -> host part
    "host": Fn.select(1, Fn.split("://", endpoint)),
    "execution_arn": f"arn:{Aws.PARTITION}:execute-api:{Aws.REGION}:{Aws.ACCOUNT_ID}:{api.ref}",
  }


def integration(executor: "GraphExecutor", node: ResourceNode) -> Result:
  attrs = node.attributes
  cfn_integration = apigwv2.CfnIntegration(
    executor,
    node.name,
    api_id=executor.attribute(node, "api_id"),
    integration_type=attrs["integration_type"],
    integration_uri=executor.attribute(node, "integration_uri"),
    integration_method=attrs["integration_method"],
    payload_format_version=attrs["payload_format_version"],
  )
  return cfn_integration, {"id": cfn_integration.ref}


def route(executor: "GraphExecutor", node: ResourceNode) -> Result:
  cfn_route = apigwv2.CfnRoute(
    executor,
    node.name,
    api_id=executor.attribute(node, "api_id"),
    route_key=node.attributes["route_key"],
    target=executor.attribute(node, "target"),
  )
  return cfn_route, {"id": cfn_route.ref}


def stage(executor: "GraphExecutor", node: ResourceNode) -> Result:
  cfn_stage = apigwv2.CfnStage(
    executor,
    node.name,
    api_id=executor.attribute(node, "api_id"),
    stage_name=node.attributes["name"],
    auto_deploy=node.attributes["auto_deploy"],
  )
  return cfn_stage, {"id": cfn_stage.ref}
