"""CloudFront distribution in front of the API and the asset bucket."""

from typing import TYPE_CHECKING, Any

from aws_cdk import Stack
from aws_cdk import aws_cloudfront as cloudfront
from aws_cdk import aws_route53_targets as targets
from constructs import Construct

from ..errors import GraphError
from ..graph.nodes import ResourceNode

if TYPE_CHECKING:
  from .executor import GraphExecutor

Result = tuple[Construct | None, dict[str, Any]]

MANAGED_CACHE_POLICIES = {
  "Managed-CachingDisabled": cloudfront.CachePolicy.CACHING_DISABLED,
  "Managed-CachingOptimized": cloudfront.CachePolicy.CACHING_OPTIMIZED,
}


def _resource_name(executor: "GraphExecutor", node: ResourceNode, limit: int) -> str:
  """Account-wide name for resources CloudFront requires to be named."""
  return f"{Stack.of(executor).stack_name}-{node.name}"[:limit]


def origin_access_control(executor: "GraphExecutor", node: ResourceNode) -> Result:
  attrs = node.attributes
  oac = cloudfront.CfnOriginAccessControl(
    executor,
    node.name,
    origin_access_control_config=cloudfront.CfnOriginAccessControl.OriginAccessControlConfigProperty(
      name=_resource_name(executor, node, 64),
      description=attrs.get("description"),
      origin_access_control_origin_type=attrs["origin_type"],
      signing_behavior=attrs["signing_behavior"],
      signing_protocol=attrs["signing_protocol"],
    ),
  )
  return oac, {"id": oac.attr_id}


def origin_request_policy(executor: "GraphExecutor", node: ResourceNode) -> Result:
  attrs = node.attributes
  config = cloudfront.CfnOriginRequestPolicy.OriginRequestPolicyConfigProperty
  policy = cloudfront.CfnOriginRequestPolicy(
    executor,
    node.name,
    origin_request_policy_config=config(
      name=_resource_name(executor, node, 128),
      cookies_config=cloudfront.CfnOriginRequestPolicy.CookiesConfigProperty(
        cookie_behavior=attrs["cookie_behavior"],
      ),
      headers_config=cloudfront.CfnOriginRequestPolicy.HeadersConfigProperty(
        header_behavior=attrs["header_behavior"],
        headers=attrs.get("headers") or None,
      ),
      query_strings_config=cloudfront.CfnOriginRequestPolicy.QueryStringsConfigProperty(
        query_string_behavior=attrs["query_string_behavior"],
      ),
    ),
  )
  return policy, {"id": policy.ref}


def cache_policy(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Managed cache policies have fixed ids, so the lookup needs no resource."""
  name = node.attributes["name"]
  managed = MANAGED_CACHE_POLICIES.get(name)
  if managed is None:
    raise GraphError(f"Unknown managed cache policy: {name}")
  return None, {"id": managed.cache_policy_id}


def _origin(origin: dict[str, Any]) -> cloudfront.CfnDistribution.OriginProperty:
  custom = origin.get("custom_origin_config")
  if custom:
    return cloudfront.CfnDistribution.OriginProperty(
      id=origin["origin_id"],
      domain_name=origin["domain_name"],
      custom_origin_config=cloudfront.CfnDistribution.CustomOriginConfigProperty(
        http_port=custom["http_port"],
        https_port=custom["https_port"],
        origin_protocol_policy=custom["origin_protocol_policy"],
        origin_ssl_protocols=custom["origin_ssl_protocols"],
      ),
    )

  # S3 origins signed by origin access control keep an empty identity.
  return cloudfront.CfnDistribution.OriginProperty(
    id=origin["origin_id"],
    domain_name=origin["domain_name"],
    origin_access_control_id=origin.get("origin_access_control_id"),
    s3_origin_config=cloudfront.CfnDistribution.S3OriginConfigProperty(
      origin_access_identity="",
    ),
  )


def _viewer_certificate(
  certificate: dict[str, Any],
) -> cloudfront.CfnDistribution.ViewerCertificateProperty:
  if certificate.get("acm_certificate_arn"):
    return cloudfront.CfnDistribution.ViewerCertificateProperty(
      acm_certificate_arn=certificate["acm_certificate_arn"],
      ssl_support_method=certificate["ssl_support_method"],
      minimum_protocol_version="TLSv1.2_2021",
    )
  return cloudfront.CfnDistribution.ViewerCertificateProperty(
    cloud_front_default_certificate=True,
  )


def distribution(executor: "GraphExecutor", node: ResourceNode) -> Result:
  """Ordered behaviors serve static routes; the default goes to the API."""
  attrs = executor.resolve(node.attributes)
  default = attrs["default_cache_behavior"]

  cfn_distribution = cloudfront.CfnDistribution(
    executor,
    node.name,
    distribution_config=cloudfront.CfnDistribution.DistributionConfigProperty(
      enabled=attrs["enabled"],
      aliases=attrs.get("aliases"),
      price_class=attrs["price_class"],
      origins=[_origin(origin) for origin in attrs["origins"]],
      viewer_certificate=_viewer_certificate(attrs["viewer_certificate"]),
      default_cache_behavior=cloudfront.CfnDistribution.DefaultCacheBehaviorProperty(
        target_origin_id=default["target_origin_id"],
        viewer_protocol_policy=default["viewer_protocol_policy"],
        allowed_methods=default["allowed_methods"],
        cached_methods=default["cached_methods"],
        compress=default["compress"],
        cache_policy_id=default["cache_policy_id"],
        origin_request_policy_id=default["origin_request_policy_id"],
      ),
      cache_behaviors=[
        cloudfront.CfnDistribution.CacheBehaviorProperty(
          path_pattern=behavior["path_pattern"],
          target_origin_id=behavior["target_origin_id"],
          viewer_protocol_policy=behavior["viewer_protocol_policy"],
          allowed_methods=behavior["allowed_methods"],
          cached_methods=behavior["cached_methods"],
          cache_policy_id=behavior["cache_policy_id"],
          origin_request_policy_id=behavior["origin_request_policy_id"],
        )
        for behavior in attrs["ordered_cache_behaviors"]
      ]
      or None,
      restrictions=cloudfront.CfnDistribution.RestrictionsProperty(
        geo_restriction=cloudfront.CfnDistribution.GeoRestrictionProperty(
          restriction_type=attrs["restrictions"]["geo_restriction"]["restriction_type"],
        ),
      ),
    ),
  )

  imported = cloudfront.Distribution.from_distribution_attributes(
    executor,
    f"{node.name}Attributes",
    domain_name=cfn_distribution.attr_domain_name,
    distribution_id=cfn_distribution.ref,
  )
  return cfn_distribution, {
    "id": imported.distribution_id,
    "arn": imported.distribution_arn,
    "domain_name": imported.distribution_domain_name,
    "hosted_zone_id": targets.CloudFrontTarget.get_hosted_zone_id(executor),
  }
