"""Upload assets and invalidate the CDN outside of a stack deployment."""

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import boto3
from botocore.exceptions import ClientError

from .config import DeploymentTarget
from .errors import FilesystemError, ProviderError
from .graph import (
  AssetRecord,
  FingerprintStore,
  InvalidationDecision,
  InvalidationTrigger,
  artifact_roots,
  open_store,
  plan_assets,
)
from .graph.invalidation import INVALIDATION_PATHS

logger = logging.getLogger(__name__)


def upload_asset(s3_client: Any, bucket: str, record: AssetRecord) -> str:
  """Put one asset, returning its key. Puts are idempotent."""
  extra = {"ContentType": record.content_type} if record.content_type else {}
  try:
    with open(record.local_path, "rb") as f:
      body = f.read()
  except OSError as e:
    raise FilesystemError(f"Cannot read {record.local_path}: {e}") from e
  try:
    s3_client.put_object(Bucket=bucket, Key=record.remote_key, Body=body, **extra)
  except ClientError as e:
    raise ProviderError(f"Cannot upload {record.remote_key} to {bucket}: {e}") from e
  return record.remote_key


def upload_assets(
  s3_client: Any,
  bucket: str,
  records: Iterable[AssetRecord],
  max_workers: int = 8,
) -> list[str]:
  """Upload assets concurrently.

  Returns:
    Uploaded keys, in planning order

  Raises:
    ProviderError: On the first failed upload
  """
  with ThreadPoolExecutor(max_workers=max_workers) as pool:
    keys = list(pool.map(lambda record: upload_asset(s3_client, bucket, record), records))
  logger.info("Uploaded %d objects to %s", len(keys), bucket)
  return keys


class CloudFrontInvalidator:
  """Issues an invalidation of every path of one distribution."""

  def __init__(self, distribution_id: str, cloudfront_client: Any = None) -> None:
    self.distribution_id = distribution_id
    self.cloudfront = cloudfront_client or boto3.client("cloudfront")

  def __call__(self, reference: str) -> str:
    """Create the invalidation and return its id."""
    try:
      response = self.cloudfront.create_invalidation(
        DistributionId=self.distribution_id,
        InvalidationBatch={
          "Paths": {"Quantity": len(INVALIDATION_PATHS), "Items": list(INVALIDATION_PATHS)},
          "CallerReference": reference,
        },
      )
    except ClientError as e:
      raise ProviderError(f"Cannot invalidate {self.distribution_id}: {e}") from e
    invalidation_id = str(response["Invalidation"]["Id"])
    logger.info("Created invalidation %s on %s", invalidation_id, self.distribution_id)
    return invalidation_id


def stack_outputs(stack_name: str, cloudformation_client: Any) -> dict[str, str]:
  """Outputs of a deployed stack keyed by output name."""
  try:
    response = cloudformation_client.describe_stacks(StackName=stack_name)
  except ClientError as e:
    raise ProviderError(f"Cannot describe stack {stack_name}: {e}") from e
  outputs = response["Stacks"][0].get("Outputs", [])
  return {output["OutputKey"]: output["OutputValue"] for output in outputs}


def sync_assets(
  target: DeploymentTarget,
  *,
  s3_client: Any = None,
  cloudfront_client: Any = None,
  cloudformation_client: Any = None,
  store: FingerprintStore | None = None,
  max_workers: int = 8,
) -> InvalidationDecision:
  """Upload both asset roots to the deployed bucket, then invalidate if they changed."""
  session = boto3.Session(region_name=target.region)
  outputs = stack_outputs(
    target.stack_name,
    cloudformation_client or session.client("cloudformation"),
  )
  for key in ("BucketName", "DistributionId"):
    if key not in outputs:
      raise ProviderError(f"Stack {target.stack_name} has no {key} output")

  s3 = s3_client or session.client("s3")
  roots: Mapping[str, str | Path] = artifact_roots(target)
  for root in roots.values():
    upload_assets(s3, outputs["BucketName"], plan_assets(root), max_workers)

  trigger = InvalidationTrigger(store or open_store(target.fingerprint_store, region=target.region))
  return trigger.run(
    roots,
    emit=CloudFrontInvalidator(
      outputs["DistributionId"],
      cloudfront_client or session.client("cloudfront"),
    ),
  )
