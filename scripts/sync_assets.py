#!/usr/bin/env python3
"""Upload site assets to a deployed stack and invalidate the CDN if they changed."""

import argparse
import logging
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from serverless_site.config import DeploymentTarget, artifact_environment
from serverless_site.publish import sync_assets


def main() -> None:
  """Sync both asset directories without redeploying the stack."""
  parser = argparse.ArgumentParser(description="Sync site assets to S3")
  parser.add_argument("--config", help="YAML deployment config")
  parser.add_argument(
    "--artifacts",
    default="build",
    help="Build directory with server/, assets/ and prerendered/ (default: build)",
  )
  parser.add_argument(
    "--env-file",
    default=".env",
    help="Dotenv file with deployment settings (default: .env)",
  )
  parser.add_argument(
    "--workers",
    type=int,
    default=8,
    help="Concurrent uploads (default: 8)",
  )
  args = parser.parse_args()

  logging.basicConfig(level=logging.INFO, format="%(message)s")

  try:
    if args.config:
      target = DeploymentTarget.from_yaml(args.config)
    else:
      target = DeploymentTarget.from_env(artifact_environment(args.artifacts, args.env_file))
    decision = sync_assets(target, max_workers=args.workers)
  except Exception as e:
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)

  print(f"✓ Synced assets of {target.stack_name}")
  if decision.should_invalidate:
    print(f"  Invalidation requested ({decision.reference})")
  else:
    print("  Assets unchanged, no invalidation")


if __name__ == "__main__":
  main()
