#!/usr/bin/env python3
"""Deploy a serverless site stack."""

import argparse
import logging
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from serverless_site.config import DeploymentTarget, artifact_environment
from serverless_site.deploy import deploy


def main() -> None:
  """Deploy from a YAML config or from a build directory and .env file."""
  parser = argparse.ArgumentParser(description="Deploy a serverless site")
  parser.add_argument(
    "--config",
    help="YAML deployment config (default: read build dir and .env)",
  )
  parser.add_argument(
    "--artifacts",
    default="build",
    help="Build directory with server/, assets/ and prerendered/ (default: build)",
  )
  parser.add_argument(
    "--env-file",
    default=".env",
    help="Dotenv file with deployment settings and server variables (default: .env)",
  )
  args = parser.parse_args()

  logging.basicConfig(level=logging.INFO, format="%(message)s")

  try:
    if args.config:
      target = DeploymentTarget.from_yaml(args.config)
      decision = deploy(target, config_path=Path(args.config).absolute())
    else:
      env = artifact_environment(args.artifacts, args.env_file)
      target = DeploymentTarget.from_env(env)
      decision = deploy(target, env=env)
  except Exception as e:
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)

  print(f"✓ Deployed {target.stack_name}")
  if decision.should_invalidate:
    print(f"  Cache invalidated ({decision.state.value})")
  else:
    print("  Assets unchanged, cache kept")


if __name__ == "__main__":
  main()
