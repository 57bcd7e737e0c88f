"""Deploy and destroy a serverless site with the CDK CLI."""

import logging
import subprocess
import sys
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

from .config import DeploymentTarget
from .errors import ProviderError
from .graph import (
  FingerprintStore,
  InvalidationDecision,
  InvalidationTrigger,
  artifact_roots,
  open_store,
)

logger = logging.getLogger(__name__)

APP_PATH = Path(__file__).parent / "app.py"

Runner = Callable[..., Any]


def app_command() -> str:
  """Command the CDK CLI runs to synthesize the app."""
  return f'"{sys.executable}" "{APP_PATH}"'


def cdk_command(
  action: str,
  target: DeploymentTarget,
  *,
  config_path: Path | str | None = None,
  context: Mapping[str, str] | None = None,
  extra_args: tuple[str, ...] = (),
) -> list[str]:
  """Build the ``npx cdk`` command line for one stack."""
  command = ["npx", "cdk", action, "--app", app_command(), target.stack_name]
  if config_path:
    command += ["--context", f"config={config_path}"]
  for key, value in (context or {}).items():
    command += ["--context", f"{key}={value}"]
  return command + list(extra_args)


def _run(command: list[str], env: Mapping[str, str] | None, runner: Runner) -> None:
  logger.info("Running %s", " ".join(command))
  result = runner(command, env=dict(env) if env is not None else None, check=False)
  if result.returncode != 0:
    raise ProviderError(f"{command[2]} failed with exit code {result.returncode}")


def deploy(
  target: DeploymentTarget,
  *,
  config_path: Path | str | None = None,
  env: Mapping[str, str] | None = None,
  store: FingerprintStore | None = None,
  runner: Runner = subprocess.run,
) -> InvalidationDecision:
  """Deploy the stack, invalidating the CDN if the assets changed.

  Args:
    target: Deployment target; its fingerprint store is used unless ``store`` is given
    config_path: YAML file the CDK app loads the target from
    env: Environment for the CDK CLI; the app reads the target from it when
      there is no ``config_path``
    store: Fingerprint store override
    runner: ``subprocess.run`` compatible callable

  Returns:
    The invalidation decision. Its fingerprints are recorded only when the
    deployment succeeded.

  Raises:
    ProviderError: If ``cdk deploy`` fails
  """
  trigger = InvalidationTrigger(store or open_store(target.fingerprint_store, region=target.region))
  decision = trigger.evaluate(artifact_roots(target))
  reference = decision.reference if decision.should_invalidate else ""

  _run(
    cdk_command(
      "deploy",
      target,
      config_path=config_path,
      context={"invalidation_reference": reference},
      extra_args=("--require-approval", "never"),
    ),
    env,
    runner,
  )

  trigger.commit(decision)
  return decision


def destroy(
  target: DeploymentTarget,
  *,
  config_path: Path | str | None = None,
  env: Mapping[str, str] | None = None,
  runner: Runner = subprocess.run,
) -> None:
  """Tear the stack down without prompting.

  Raises:
    ProviderError: If ``cdk destroy`` fails
  """
  _run(
    cdk_command(
      "destroy",
      target,
      config_path=config_path,
      # Synthesis must not issue an invalidation for a stack being removed.
      context={"invalidation_reference": ""},
      extra_args=("--force",),
    ),
    env,
    runner,
  )
