"""Pytest fixtures shared by the unit tests."""

from pathlib import Path

import aws_cdk as cdk
import pytest

from serverless_site.config import DeploymentTarget
from serverless_site.graph import FingerprintState, FingerprintStore


class MemoryFingerprintStore(FingerprintStore):
  """Fingerprint store backed by a dict."""

  def __init__(self) -> None:
    self.records: dict[str, FingerprintState] = {}
    self.writes = 0

  def read(self, key: str) -> FingerprintState | None:
    return self.records.get(key)

  def write(self, key: str, state: FingerprintState) -> None:
    self.records[key] = state
    self.writes += 1


@pytest.fixture
def app() -> cdk.App:
  """Create a CDK App for testing."""
  return cdk.App()


@pytest.fixture
def artifacts(tmp_path: Path) -> Path:
  """Build output with a server bundle, static assets and prerendered pages."""
  build = tmp_path / "build"
  (build / "server").mkdir(parents=True)
  (build / "server" / "index.js").write_text("exports.handler = async () => ({});\n")

  (build / "assets" / "child").mkdir(parents=True)
  (build / "assets" / "a.txt").write_text("a")
  (build / "assets" / "child" / "b.txt").write_text("b")

  (build / "prerendered").mkdir()
  (build / "prerendered" / "index.html").write_text("<html></html>")
  return build


@pytest.fixture
def memory_store() -> MemoryFingerprintStore:
  """Create an empty in-memory fingerprint store."""
  return MemoryFingerprintStore()


@pytest.fixture
def target(artifacts: Path, tmp_path: Path) -> DeploymentTarget:
  """Deployment target without a custom domain."""
  return DeploymentTarget(
    server_path=str(artifacts / "server"),
    static_path=str(artifacts / "assets"),
    prerendered_path=str(artifacts / "prerendered"),
    routes=("_app/*", "favicon.png"),
    memory_size=256,
    fingerprint_store=str(tmp_path / "fingerprints.json"),
  )


@pytest.fixture
def domain_target(artifacts: Path, tmp_path: Path) -> DeploymentTarget:
  """Deployment target served on www.example.com."""
  return DeploymentTarget(
    server_path=str(artifacts / "server"),
    static_path=str(artifacts / "assets"),
    prerendered_path=str(artifacts / "prerendered"),
    fqdn="www.example.com",
    routes=("_app/*", "favicon.png"),
    memory_size=256,
    hosted_zone_id="Z0123456789EXAMPLE",
    environment={"DATABASE_URL": "postgres://db"},
    fingerprint_store=str(tmp_path / "fingerprints.json"),
  )
