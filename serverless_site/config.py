"""Configuration loader for a serverless site deployment."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from .errors import ConfigError

DEFAULT_SERVER_HEADERS = (
  "Origin",
  "Accept-Charset",
  "Accept",
  "Access-Control-Request-Method",
  "Access-Control-Request-Headers",
  "Referer",
  "Accept-Language",
  "Accept-Datetime",
  "X-Auth-Return-Redirect",
)
DEFAULT_STATIC_HEADERS = ("User-Agent", "Referer")

# CloudFront only accepts ACM certificates issued in us-east-1.
CERTIFICATE_REGION = "us-east-1"


@dataclass(frozen=True)
class DeploymentTarget:
  """Everything needed to declare one deployment."""

  server_path: str
  static_path: str
  prerendered_path: str
  fqdn: str | None = None
  routes: tuple[str, ...] = ()
  memory_size: int = 128
  hosted_zone: str | None = None  # Defaults to the parent domain of fqdn
  hosted_zone_id: str | None = None  # Skips the zone lookup when set
  environment: Mapping[str, str] = field(default_factory=dict)
  server_headers: tuple[str, ...] = DEFAULT_SERVER_HEADERS
  static_headers: tuple[str, ...] = DEFAULT_STATIC_HEADERS
  runtime: str = "nodejs20.x"
  handler: str = "index.handler"
  timeout: int = 900
  force_destroy: bool = True
  stack_name: str = "ServerlessSite"
  region: str = "us-east-1"
  fingerprint_store: str = ".fingerprints.json"

  def __post_init__(self) -> None:
    if not 128 <= self.memory_size <= 10240:
      raise ConfigError(f"memory_size must be 128-10240 MB, got {self.memory_size}")
    if self.fqdn and self.region != CERTIFICATE_REGION:
      raise ConfigError(
        f"A custom domain needs the stack in {CERTIFICATE_REGION} "
        f"(CloudFront certificates), got {self.region}"
      )

  @classmethod
  def from_yaml(cls, path: Path | str = "deploy.yaml") -> "DeploymentTarget":
    """Load configuration from a YAML file.

    Relative paths in the file are resolved against the file's directory.
    """
    path = Path(path)
    with open(path) as f:
      data = yaml.safe_load(f) or {}

    base = path.parent
    defaults = data.get("defaults", {})
    merged = {**defaults, **data.get("site", {})}

    def artifact(key: str) -> str:
      if key not in merged:
        raise ConfigError(f"{path}: missing required key '{key}'")
      return str(base / merged[key])

    environment = dict(merged.get("environment", {}))
    if "env_file" in merged:
      environment = {**_read_env_file(base / merged["env_file"]), **environment}

    return cls(
      server_path=artifact("server_path"),
      static_path=artifact("static_path"),
      prerendered_path=artifact("prerendered_path"),
      fqdn=merged.get("fqdn"),
      routes=_as_tuple(merged.get("routes"), (), "routes"),
      memory_size=_as_int(merged.get("memory_size"), 128, "memory_size"),
      hosted_zone=merged.get("hosted_zone"),
      hosted_zone_id=merged.get("hosted_zone_id"),
      environment={k: str(v) for k, v in environment.items()},
      server_headers=_as_tuple(merged.get("server_headers"), DEFAULT_SERVER_HEADERS, "server_headers"),
      static_headers=_as_tuple(merged.get("static_headers"), DEFAULT_STATIC_HEADERS, "static_headers"),
      runtime=merged.get("runtime", "nodejs20.x"),
      handler=merged.get("handler", "index.handler"),
      timeout=_as_int(merged.get("timeout"), 900, "timeout"),
      force_destroy=merged.get("force_destroy", True),
      stack_name=merged.get("stack_name", "ServerlessSite"),
      region=merged.get("region", "us-east-1"),
      fingerprint_store=str(merged.get("fingerprint_store", base / ".fingerprints.json")),
    )

  @classmethod
  def from_env(cls, environ: Mapping[str, str] | None = None) -> "DeploymentTarget":
    """Load configuration from environment variables.

    The server function's variables are read from the dotenv file named by
    PROJECT_PATH, if any.
    """
    env = os.environ if environ is None else environ

    def required(key: str) -> str:
      value = env.get(key)
      if not value:
        raise ConfigError(f"Environment variable {key} is required")
      return value

    environment = _read_env_file(env["PROJECT_PATH"]) if env.get("PROJECT_PATH") else {}

    return cls(
      server_path=required("SERVER_PATH"),
      static_path=required("STATIC_PATH"),
      prerendered_path=required("PRERENDERED_PATH"),
      fqdn=env.get("FQDN") or None,
      routes=_as_list(env.get("ROUTES")),
      memory_size=_as_int(env.get("MEMORY_SIZE"), 128, "MEMORY_SIZE"),
      hosted_zone=env.get("HOSTED_ZONE") or None,
      hosted_zone_id=env.get("HOSTED_ZONE_ID") or None,
      environment=environment,
      server_headers=_as_list(env.get("SERVER_HEADERS")) or DEFAULT_SERVER_HEADERS,
      static_headers=_as_list(env.get("STATIC_HEADERS")) or DEFAULT_STATIC_HEADERS,
      stack_name=env.get("STACK_NAME") or "ServerlessSite",
      region=env.get("AWS_REGION") or env.get("CDK_DEFAULT_REGION") or "us-east-1",
      fingerprint_store=env.get("FINGERPRINT_STORE") or ".fingerprints.json",
    )


def _read_env_file(path: Path | str) -> dict[str, str]:
  if not Path(path).is_file():
    raise ConfigError(f"Environment file not found: {path}")
  return {k: v for k, v in dotenv_values(path).items() if v is not None}


def _as_list(value: str | None) -> tuple[str, ...]:
  if not value:
    return ()
  return tuple(item.strip() for item in value.split(",") if item.strip())


def _as_tuple(value: Any, default: tuple[str, ...], name: str) -> tuple[str, ...]:
  """YAML list, or a comma separated string as in the environment."""
  if value is None:
    return default
  if isinstance(value, str):
    return _as_list(value)
  if not isinstance(value, list):
    raise ConfigError(f"{name} must be a list, got {value!r}")
  return tuple(str(item) for item in value)


def _as_int(value: Any, default: int, name: str) -> int:
  if value is None or value == "":
    return default
  try:
    return int(value)
  except (TypeError, ValueError):
    raise ConfigError(f"{name} must be an integer, got {value!r}") from None


def artifact_environment(
  artifacts: Path | str = "build",
  env_file: Path | str | None = ".env",
  environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
  """Environment for ``DeploymentTarget.from_env`` from a build directory.

  The build directory holds ``server``, ``assets`` and ``prerendered``. Values
  from ``env_file`` override those paths, and the process environment
  overrides both.
  """
  artifacts = Path(artifacts).absolute()
  env = {
    "SERVER_PATH": str(artifacts / "server"),
    "STATIC_PATH": str(artifacts / "assets"),
    "PRERENDERED_PATH": str(artifacts / "prerendered"),
  }
  if env_file and Path(env_file).is_file():
    env.update(_read_env_file(env_file))
    env.setdefault("PROJECT_PATH", str(Path(env_file).absolute()))
  env.update(os.environ if environ is None else environ)
  return env
