#!/usr/bin/env python3
"""CDK application entry point for a serverless site."""

import logging
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import aws_cdk as cdk
import boto3

from serverless_site.config import DeploymentTarget
from serverless_site.graph import (
  InvalidationTrigger,
  ResourceGraphBuilder,
  artifact_roots,
  open_store,
)
from serverless_site.stacks import ServerlessSiteStack

logger = logging.getLogger(__name__)


def get_account_id() -> str:
  """Get AWS account ID from current credentials."""
  sts = boto3.client("sts")
  return str(sts.get_caller_identity()["Account"])


def load_target(app: cdk.App) -> DeploymentTarget:
  """Target from the YAML file named by the "config" context, else from the environment."""
  config_path = app.node.try_get_context("config")
  if config_path:
    return DeploymentTarget.from_yaml(Path(config_path))
  return DeploymentTarget.from_env()


def invalidation_reference(app: cdk.App, target: DeploymentTarget) -> str | None:
  """Caller reference of the invalidation to issue, None if the assets are unchanged.

  The deploy command evaluates the fingerprints itself and passes the result
  as context, so it can record them once the deployment succeeded. Without
  that context (plain ``cdk synth``) the fingerprints are evaluated here and
  never recorded.
  """
  reference = app.node.try_get_context("invalidation_reference")
  if reference is not None:
    return reference or None

  trigger = InvalidationTrigger(open_store(target.fingerprint_store, region=target.region))
  decision = trigger.evaluate(artifact_roots(target))
  return decision.reference if decision.should_invalidate else None


def main() -> None:
  """Build the resource graph and synthesize its stack."""
  logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
  app = cdk.App()

  target = load_target(app)
  graph = ResourceGraphBuilder(
    target,
    invalidation_reference=invalidation_reference(app, target),
  ).build()

  # Hosted zone lookups need an explicit account
  ServerlessSiteStack(
    app,
    target.stack_name,
    target=target,
    graph=graph,
    env=cdk.Environment(
      account=get_account_id(),
      region=target.region,
    ),
    description=f"Serverless site {target.fqdn or target.stack_name}",
  )
  logger.info("Synthesizing %s with %d resources", target.stack_name, len(graph))

  app.synth()


if __name__ == "__main__":
  main()
