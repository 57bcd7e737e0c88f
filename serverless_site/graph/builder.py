"""Declare the deployment's resources and the edges between them."""

import logging

from ..config import CERTIFICATE_REGION, DeploymentTarget
from .assets import plan_assets
from .domain import canonical_zone_name, relative_record_name, split_domain
from .invalidation import INVALIDATION_PATHS
from .nodes import Interpolation, Ref, ResourceGraph, ResourceKind

logger = logging.getLogger(__name__)

# Logical resource names
LAMBDA_ROLE = "IamForLambda"
BASIC_EXECUTION_ATTACHMENT = "ServerRPABasicExecutionRole"
SERVER_FUNCTION = "LambdaServerFunctionHandler"
HTTP_API = "API"
SERVER_PERMISSION = "ServerPermission"
SERVER_INTEGRATION = "ServerIntegration"
DEFAULT_ROUTE = "DefaultRoute"
CERTIFICATE = "Certificate"
HOSTED_ZONE = "HostedZone"
CERTIFICATE_VALIDATION = "CertificateValidation"
BUCKET = "StaticContentBucket"
ORIGIN_ACCESS_CONTROL = "CloudFrontOriginAccessControl"
DEFAULT_REQUEST_POLICY = "DefaultRequestPolicy"
ROUTE_REQUEST_POLICY = "RouteRequestPolicy"
CACHING_DISABLED = "CachingDisabled"
CACHING_OPTIMIZED = "CachingOptimized"
DISTRIBUTION = "CloudFrontDistribution"
BUCKET_POLICY = "CloudFrontBucketPolicy"
OPTIONS_FUNCTION = "OptionsLambda"
OPTIONS_PERMISSION = "OptionsPermission"
OPTIONS_INTEGRATION = "OptionsIntegration"
OPTIONS_ROUTE = "OptionsRoute"
API_STAGE = "ApiStage"
INVALIDATION = "Invalidate"

HTTP_ORIGIN_ID = "httpOrigin"
S3_ORIGIN_ID = "s3Origin"

BASIC_EXECUTION_POLICY_ARN = (
  "arn:aws:iam::aws:policy/service-role/AWSLambdaBasicExecutionRole"
)
ALL_METHODS = ["DELETE", "GET", "HEAD", "OPTIONS", "PATCH", "POST", "PUT"]
STATIC_METHODS = ["GET", "HEAD", "OPTIONS"]

OPTIONS_HANDLER_CODE = """
import os

def handler(event, context):
    allowed_origins = os.environ.get("ALLOWED_ORIGINS", "").split(",")
    origin = (event.get("headers") or {}).get("origin")

    headers = {
        "Access-Control-Allow-Methods": "*",
        "Access-Control-Allow-Headers": "*",
        "Access-Control-Max-Age": "86400",
        "Connection": "keep-alive",
    }
    if origin in allowed_origins:
        headers["Access-Control-Allow-Origin"] = origin

    return {"statusCode": 204, "headers": headers}
"""


def object_name(key: str) -> str:
  """Node name of the bucket object stored at ``key``."""
  return f"{BUCKET}/{key}"


class ResourceGraphBuilder:
  """Builds the resource graph for one deployment target.

  Each ``add_*`` step declares one group of resources; ``build`` runs them in
  dependency order. Steps only reference nodes declared by earlier steps.
  """

  def __init__(
    self,
    target: DeploymentTarget,
    *,
    invalidation_reference: str | None = None,
  ) -> None:
    self.target = target
    self.invalidation_reference = invalidation_reference
    self.graph = ResourceGraph()
    self.routes: list[str] = []
    self.objects: list[str] = []

  def build(self) -> ResourceGraph:
    """Declare every resource and return the finished graph.

    Raises:
      InvalidDomainError, DomainMismatchError: For a bad custom domain.
      FilesystemError: If an artifact directory can't be crawled.
    """
    fqdn = self.target.fqdn

    self.add_lambda_role()
    self.add_server()
    if fqdn:
      self.add_certificate(fqdn)
    self.add_static()
    self.add_cdn()
    if fqdn:
      self.add_alias_record(fqdn)
    self.add_options_handler()
    self.add_stage()
    if self.invalidation_reference:
      self.add_invalidation()

    logger.info("Declared %d resources, %d edges", len(self.graph), len(self.graph.edges()))
    return self.graph

  def add_lambda_role(self) -> None:
    self.graph.add(
      LAMBDA_ROLE,
      ResourceKind.ROLE,
      {
        "assume_role_policy": {
          "Version": "2012-10-17",
          "Statement": [
            {
              "Action": "sts:AssumeRole",
              "Principal": {"Service": "lambda.amazonaws.com"},
              "Effect": "Allow",
            }
          ],
        },
      },
    )
    self.graph.add(
      BASIC_EXECUTION_ATTACHMENT,
      ResourceKind.ROLE_POLICY_ATTACHMENT,
      {"role": Ref(LAMBDA_ROLE, "name"), "policy_arn": BASIC_EXECUTION_POLICY_ARN},
    )

  def add_server(self) -> None:
    """Server function behind an HTTP API with a catch-all route."""
    target = self.target
    self.graph.add(
      SERVER_FUNCTION,
      ResourceKind.FUNCTION,
      {
        "code_path": target.server_path,
        "role": Ref(LAMBDA_ROLE, "arn"),
        "handler": target.handler,
        "runtime": target.runtime,
        "timeout": target.timeout,
        "memory_size": target.memory_size,
        "environment": dict(target.environment),
      },
      # Logs need the basic execution policy before the first invocation.
      depends_on=[BASIC_EXECUTION_ATTACHMENT],
    )
    self.graph.add(HTTP_API, ResourceKind.HTTP_API, {"protocol_type": "HTTP"})
    self._add_lambda_route(
      function=SERVER_FUNCTION,
      permission=SERVER_PERMISSION,
      integration=SERVER_INTEGRATION,
      route=DEFAULT_ROUTE,
      route_key="$default",
    )

  def _add_lambda_route(
    self,
    *,
    function: str,
    permission: str,
    integration: str,
    route: str,
    route_key: str,
  ) -> None:
    self.graph.add(
      permission,
      ResourceKind.PERMISSION,
      {
        "action": "lambda:InvokeFunction",
        "principal": "apigateway.amazonaws.com",
        "function": Ref(function, "name"),
        "source_arn": Interpolation("{}/*/*", (Ref(HTTP_API, "execution_arn"),)),
      },
    )
    self.graph.add(
      integration,
      ResourceKind.INTEGRATION,
      {
        "api_id": Ref(HTTP_API, "id"),
        "integration_type": "AWS_PROXY",
        "integration_uri": Ref(function, "arn"),
        "integration_method": "POST",
        "payload_format_version": "1.0",
      },
    )
    self.graph.add(
      route,
      ResourceKind.ROUTE,
      {
        "api_id": Ref(HTTP_API, "id"),
        "route_key": route_key,
        "target": Interpolation("integrations/{}", (Ref(integration, "id"),)),
      },
    )
    self.routes.append(route)

  def zone_name(self, fqdn: str) -> str:
    """Hosted zone of the custom domain, in canonical form."""
    zone = self.target.hosted_zone or split_domain(fqdn).parent_domain
    return canonical_zone_name(zone)

  def add_certificate(self, fqdn: str) -> None:
    """DNS validated certificate: issue, find zone, add record, wait."""
    zone_name = self.zone_name(fqdn)
    # DomainMismatchError when the domain is outside the zone.
    relative_record_name(fqdn, zone_name)

    self.graph.add(
      CERTIFICATE,
      ResourceKind.CERTIFICATE,
      {
        "domain_name": fqdn,
        "validation_method": "DNS",
        "region": CERTIFICATE_REGION,
      },
    )
    self.graph.add(
      HOSTED_ZONE,
      ResourceKind.HOSTED_ZONE_LOOKUP,
      {
        "name": zone_name,
        "private_zone": False,
        "zone_id": self.target.hosted_zone_id,
      },
    )
    validation_record = f"{fqdn}.validation"
    self.graph.add(
      validation_record,
      ResourceKind.VALIDATION_RECORD,
      {
        "certificate_arn": Ref(CERTIFICATE, "arn"),
        "domain_name": fqdn,
        "name": Ref(CERTIFICATE, "validation_record_name"),
        "records": [Ref(CERTIFICATE, "validation_record_value")],
        "type": Ref(CERTIFICATE, "validation_record_type"),
        "ttl": 60,
        "zone_id": Ref(HOSTED_ZONE, "zone_id"),
      },
    )
    self.graph.add(
      CERTIFICATE_VALIDATION,
      ResourceKind.CERTIFICATE_VALIDATION,
      {
        "certificate_arn": Ref(CERTIFICATE, "arn"),
        "validation_record_fqdns": [Ref(validation_record, "fqdn")],
        "region": CERTIFICATE_REGION,
      },
    )

  def add_static(self) -> None:
    """Private bucket plus one object per file of both asset roots."""
    self.graph.add(
      BUCKET,
      ResourceKind.BUCKET,
      {"acl": "private", "force_destroy": self.target.force_destroy},
    )
    for root in (self.target.static_path, self.target.prerendered_path):
      for record in plan_assets(root):
        # A key present in both roots is a GraphError (duplicate name).
        name = object_name(record.remote_key)
        self.objects.append(name)
        self.graph.add(
          name,
          ResourceKind.BUCKET_OBJECT,
          {
            "bucket": Ref(BUCKET, "id"),
            "key": record.remote_key,
            "content_type": record.content_type,
            "source": str(record.local_path),
            "source_root": root,
          },
        )

  def add_cdn(self) -> None:
    """Distribution routing configured paths to S3 and the rest to the API."""
    target = self.target
    self.graph.add(
      ORIGIN_ACCESS_CONTROL,
      ResourceKind.ORIGIN_ACCESS_CONTROL,
      {
        "description": "Default Origin Access Control",
        "origin_type": "s3",
        "signing_behavior": "always",
        "signing_protocol": "sigv4",
      },
    )
    self.graph.add(
      DEFAULT_REQUEST_POLICY,
      ResourceKind.ORIGIN_REQUEST_POLICY,
      {
        "cookie_behavior": "all",
        "header_behavior": "whitelist",
        "headers": list(target.server_headers),
        "query_string_behavior": "all",
      },
    )
    self.graph.add(
      ROUTE_REQUEST_POLICY,
      ResourceKind.ORIGIN_REQUEST_POLICY,
      {
        "cookie_behavior": "none",
        "header_behavior": "whitelist",
        "headers": list(target.static_headers),
        "query_string_behavior": "none",
      },
    )
    self.graph.add(
      CACHING_DISABLED,
      ResourceKind.CACHE_POLICY_LOOKUP,
      {"name": "Managed-CachingDisabled"},
    )
    self.graph.add(
      CACHING_OPTIMIZED,
      ResourceKind.CACHE_POLICY_LOOKUP,
      {"name": "Managed-CachingOptimized"},
    )

    if target.fqdn:
      viewer_certificate = {
        "acm_certificate_arn": Ref(CERTIFICATE_VALIDATION, "certificate_arn"),
        "ssl_support_method": "sni-only",
      }
    else:
      viewer_certificate = {"cloudfront_default_certificate": True}

    self.graph.add(
      DISTRIBUTION,
      ResourceKind.DISTRIBUTION,
      {
        "origins": [
          {
            "origin_id": HTTP_ORIGIN_ID,
            "domain_name": Ref(HTTP_API, "host"),
            "custom_origin_config": {
              "http_port": 80,
              "https_port": 443,
              "origin_protocol_policy": "https-only",
              "origin_ssl_protocols": ["SSLv3", "TLSv1", "TLSv1.1", "TLSv1.2"],
            },
          },
          {
            "origin_id": S3_ORIGIN_ID,
            "domain_name": Ref(BUCKET, "regional_domain_name"),
            "origin_access_control_id": Ref(ORIGIN_ACCESS_CONTROL, "id"),
          },
        ],
        "aliases": [target.fqdn] if target.fqdn else None,
        "price_class": "PriceClass_100",
        "enabled": True,
        "viewer_certificate": viewer_certificate,
        "default_cache_behavior": {
          "compress": True,
          "viewer_protocol_policy": "redirect-to-https",
          "allowed_methods": ALL_METHODS,
          "cached_methods": ["GET", "HEAD"],
          "origin_request_policy_id": Ref(DEFAULT_REQUEST_POLICY, "id"),
          "cache_policy_id": Ref(CACHING_DISABLED, "id"),
          "target_origin_id": HTTP_ORIGIN_ID,
        },
        "ordered_cache_behaviors": [
          {
            "path_pattern": route,
            "allowed_methods": STATIC_METHODS,
            "cached_methods": STATIC_METHODS,
            "target_origin_id": S3_ORIGIN_ID,
            "origin_request_policy_id": Ref(ROUTE_REQUEST_POLICY, "id"),
            "cache_policy_id": Ref(CACHING_OPTIMIZED, "id"),
            "viewer_protocol_policy": "redirect-to-https",
          }
          for route in target.routes
        ],
        "restrictions": {"geo_restriction": {"restriction_type": "none"}},
      },
    )

    bucket_objects = Interpolation("{}/*", (Ref(BUCKET, "arn"),))
    self.graph.add(
      BUCKET_POLICY,
      ResourceKind.BUCKET_POLICY,
      {
        "bucket": Ref(BUCKET, "id"),
        "statements": [
          {
            "Effect": "Allow",
            "Principal": {"Service": "cloudfront.amazonaws.com"},
            "Action": ["s3:GetObject"],
            "Resource": [bucket_objects],
            "Condition": {
              "StringEquals": {"AWS:SourceArn": Ref(DISTRIBUTION, "arn")},
            },
          },
          {
            "Effect": "Deny",
            "Principal": {"AWS": "*"},
            "Action": ["s3:*"],
            "Resource": [bucket_objects, Ref(BUCKET, "arn")],
            "Condition": {"Bool": {"aws:SecureTransport": "false"}},
          },
        ],
      },
    )

  def add_alias_record(self, fqdn: str) -> None:
    """A record pointing the custom domain at the distribution."""
    self.graph.add(
      fqdn,
      ResourceKind.ALIAS_RECORD,
      {
        "fqdn": fqdn,
        "name": relative_record_name(fqdn, self.zone_name(fqdn)),
        "zone_id": Ref(HOSTED_ZONE, "zone_id"),
        "type": "A",
        "alias": {
          "name": Ref(DISTRIBUTION, "domain_name"),
          "zone_id": Ref(DISTRIBUTION, "hosted_zone_id"),
          "evaluate_target_health": False,
        },
      },
    )

  def add_options_handler(self) -> None:
    """CORS preflight answers for the site's own origins."""
    origins = "https://{}"
    if self.target.fqdn:
      origins += f",https://{self.target.fqdn}"
    allowed_origins = Interpolation(origins, (Ref(DISTRIBUTION, "domain_name"),))

    self.graph.add(
      OPTIONS_FUNCTION,
      ResourceKind.FUNCTION,
      {
        "inline_code": OPTIONS_HANDLER_CODE,
        "role": Ref(LAMBDA_ROLE, "arn"),
        "handler": "index.handler",
        "runtime": "python3.12",
        "timeout": 3,
        "memory_size": 128,
        "environment": {"ALLOWED_ORIGINS": allowed_origins},
      },
    )
    self._add_lambda_route(
      function=OPTIONS_FUNCTION,
      permission=OPTIONS_PERMISSION,
      integration=OPTIONS_INTEGRATION,
      route=OPTIONS_ROUTE,
      route_key="OPTIONS /{proxy+}",
    )

  def add_stage(self) -> None:
    """Auto-deploying default stage, live once every route exists."""
    self.graph.add(
      API_STAGE,
      ResourceKind.STAGE,
      {"api_id": Ref(HTTP_API, "id"), "name": "$default", "auto_deploy": True},
      depends_on=self.routes,
    )

  def add_invalidation(self) -> None:
    """Invalidate every cached path once distribution and objects are up to date."""
    self.graph.add(
      INVALIDATION,
      ResourceKind.INVALIDATION,
      {
        "distribution_id": Ref(DISTRIBUTION, "id"),
        "paths": list(INVALIDATION_PATHS),
        "caller_reference": self.invalidation_reference,
      },
      depends_on=self.objects,
    )
