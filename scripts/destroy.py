#!/usr/bin/env python3
"""Destroy a serverless site stack."""

import argparse
import sys
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from serverless_site.config import DeploymentTarget, artifact_environment
from serverless_site.deploy import destroy


def main() -> None:
  """Destroy the stack named by a YAML config or by the .env file."""
  parser = argparse.ArgumentParser(description="Destroy a serverless site")
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
  args = parser.parse_args()

  try:
    if args.config:
      target = DeploymentTarget.from_yaml(args.config)
      destroy(target, config_path=Path(args.config).absolute())
    else:
      env = artifact_environment(args.artifacts, args.env_file)
      target = DeploymentTarget.from_env(env)
      destroy(target, env=env)
  except Exception as e:
    print(f"Error: {e}", file=sys.stderr)
    sys.exit(1)

  print(f"✓ Destroyed {target.stack_name}")


if __name__ == "__main__":
  main()
