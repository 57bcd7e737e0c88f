"""CDK stack for a single serverless site."""

from typing import Any

import aws_cdk as cdk
from constructs import Construct

from serverless_site.cdk_constructs import GraphExecutor
from serverless_site.config import DeploymentTarget
from serverless_site.graph import ResourceGraph
from serverless_site.graph import builder as names


class ServerlessSiteStack(cdk.Stack):
  """Stack materializing the resource graph of one deployment target."""

  def __init__(
    self,
    scope: Construct,
    id: str,
    *,
    target: DeploymentTarget,
    graph: ResourceGraph,
    **kwargs: Any,
  ) -> None:
    super().__init__(scope, id, **kwargs)

    self.resources = GraphExecutor(self, "Resources", graph=graph)

    distribution_domain = self.resources.output(names.DISTRIBUTION, "domain_name")
    app_url = f"https://{target.fqdn}" if target.fqdn else f"https://{distribution_domain}"

    cdk.CfnOutput(self, "AppUrl", value=app_url, description="Site URL")
    cdk.CfnOutput(
      self,
      "DistributionId",
      value=self.resources.output(names.DISTRIBUTION, "id"),
      description="CloudFront distribution ID",
    )
    cdk.CfnOutput(
      self,
      "DistributionDomainName",
      value=distribution_domain,
      description="CloudFront domain name",
    )
    cdk.CfnOutput(
      self,
      "BucketName",
      value=self.resources.output(names.BUCKET, "id"),
      description="Static content bucket",
    )
    cdk.CfnOutput(
      self,
      "ApiEndpoint",
      value=self.resources.output(names.HTTP_API, "endpoint"),
      description="API Gateway endpoint of the server function",
    )

    cdk.Tags.of(self).add("Project", "serverless-site")
    if target.fqdn:
      cdk.Tags.of(self).add("Domain", target.fqdn)
