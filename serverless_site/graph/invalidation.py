"""Decide when the CloudFront cache must be invalidated.

The fingerprints of the static and prerendered artifact roots are compared
with the ones recorded by the last successful deployment. Any difference, or
a missing record, means the cache is invalidated once for every path and the
new fingerprints are recorded. Recording happens only after the invalidation
has been issued, so a crash in between leads to another invalidation on the
next run rather than a missed one.
"""

import hashlib
import json
import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import boto3
from botocore.exceptions import ClientError

from ..errors import ProviderError
from .fingerprint import FingerprintState, fingerprint_directory

if TYPE_CHECKING:
  from ..config import DeploymentTarget

logger = logging.getLogger(__name__)

STATIC_HASH = "StaticHash"
PRERENDERED_HASH = "PrerenderedHash"

INVALIDATION_PATHS = ("/*",)


def artifact_roots(target: "DeploymentTarget") -> dict[str, str]:
  """Asset directories of ``target`` keyed by their fingerprint store key."""
  return {STATIC_HASH: target.static_path, PRERENDERED_HASH: target.prerendered_path}


class InvalidationState(Enum):
  """Outcome of comparing current and recorded fingerprints."""

  NO_PRIOR_FINGERPRINT = "no-prior-fingerprint"
  UNCHANGED = "unchanged"
  CHANGED = "changed"


class FingerprintStore:
  """Key-value store holding the fingerprint of each artifact root."""

  def read(self, key: str) -> FingerprintState | None:
    raise NotImplementedError

  def write(self, key: str, state: FingerprintState) -> None:
    raise NotImplementedError


class JsonFingerprintStore(FingerprintStore):
  """Fingerprints kept in a local JSON file."""

  def __init__(self, path: str | Path) -> None:
    self.path = Path(path)

  def _load(self) -> dict[str, Any]:
    if not self.path.exists():
      return {}
    with open(self.path) as f:
      return dict(json.load(f))

  def read(self, key: str) -> FingerprintState | None:
    data = self._load().get(key)
    return FingerprintState.from_dict(data) if data else None

  def write(self, key: str, state: FingerprintState) -> None:
    data = self._load()
    data[key] = state.to_dict()
    self.path.parent.mkdir(parents=True, exist_ok=True)
    with open(self.path, "w") as f:
      json.dump(data, f, indent=2)


class SsmFingerprintStore(FingerprintStore):
  """Fingerprints kept as JSON String parameters under an SSM prefix."""

  def __init__(self, prefix: str, ssm_client: Any = None, region: str | None = None) -> None:
    if ssm_client is None:
      ssm_client = boto3.client("ssm", region_name=region)
    self.prefix = "/" + prefix.strip("/")
    self.ssm = ssm_client

  def _name(self, key: str) -> str:
    return f"{self.prefix}/{key}"

  def read(self, key: str) -> FingerprintState | None:
    try:
      response = self.ssm.get_parameter(Name=self._name(key))
    except ClientError as e:
      if e.response["Error"]["Code"] == "ParameterNotFound":
        return None
      raise ProviderError(f"Cannot read fingerprint {self._name(key)}: {e}") from e
    return FingerprintState.from_dict(json.loads(response["Parameter"]["Value"]))

  def write(self, key: str, state: FingerprintState) -> None:
    try:
      self.ssm.put_parameter(
        Name=self._name(key),
        Value=json.dumps(state.to_dict()),
        Type="String",
        Overwrite=True,
      )
    except ClientError as e:
      raise ProviderError(f"Cannot write fingerprint {self._name(key)}: {e}") from e


def open_store(location: str, region: str | None = None) -> FingerprintStore:
  """Open the store named by ``location``: "ssm:/prefix" or a JSON file path."""
  if location.startswith("ssm:"):
    return SsmFingerprintStore(location[len("ssm:") :], region=region)
  return JsonFingerprintStore(location)


@dataclass(frozen=True)
class InvalidationDecision:
  """Current fingerprints and how they compare with the recorded ones."""

  state: InvalidationState
  current: Mapping[str, FingerprintState] = field(default_factory=dict)
  states: Mapping[str, InvalidationState] = field(default_factory=dict)
  run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

  @property
  def should_invalidate(self) -> bool:
    # A first deploy counts as a change.
    return self.state is not InvalidationState.UNCHANGED

  @property
  def reference(self) -> str:
    """Caller reference of the invalidation for this decision.

    CloudFront ignores a repeated caller reference, so the fingerprint digest
    is suffixed with the decision's run id. Returning to earlier content still
    gets a new invalidation.
    """
    digest = hashlib.sha256()
    for key in sorted(self.current):
      digest.update(f"{key}={self.current[key].hash}\n".encode())
    return f"{digest.hexdigest()[:20]}-{self.run_id}"


class InvalidationTrigger:
  """Compare artifact fingerprints against a store and emit invalidations."""

  def __init__(self, store: FingerprintStore) -> None:
    self.store = store

  def evaluate(self, roots: Mapping[str, str | Path]) -> InvalidationDecision:
    """Fingerprint each root and compare it with its recorded predecessor.

    Args:
      roots: Store key to artifact directory, e.g. {"StaticHash": "build/assets"}

    Returns:
      The decision, CHANGED if any root changed, NO_PRIOR_FINGERPRINT if none
      changed but some root has no record, otherwise UNCHANGED.
    """
    current: dict[str, FingerprintState] = {}
    states: dict[str, InvalidationState] = {}

    for key, path in roots.items():
      fingerprint = fingerprint_directory(path)
      previous = self.store.read(key)
      current[key] = fingerprint

      if previous is None:
        states[key] = InvalidationState.NO_PRIOR_FINGERPRINT
      elif previous.hash != fingerprint.hash:
        states[key] = InvalidationState.CHANGED
      else:
        states[key] = InvalidationState.UNCHANGED

    if InvalidationState.CHANGED in states.values():
      state = InvalidationState.CHANGED
    elif InvalidationState.NO_PRIOR_FINGERPRINT in states.values():
      state = InvalidationState.NO_PRIOR_FINGERPRINT
    else:
      state = InvalidationState.UNCHANGED

    logger.info("Asset fingerprints %s: %s", state.value, {k: s.value for k, s in states.items()})
    return InvalidationDecision(state=state, current=current, states=states)

  def commit(self, decision: InvalidationDecision) -> None:
    """Record the decision's fingerprints once its invalidation was issued."""
    if not decision.should_invalidate:
      return
    for key, fingerprint in decision.current.items():
      self.store.write(key, fingerprint)

  def run(
    self,
    roots: Mapping[str, str | Path],
    emit: Callable[[str], object],
  ) -> InvalidationDecision:
    """Evaluate, call ``emit`` with the caller reference if needed, then commit.

    ``emit`` must raise if the invalidation request fails; nothing is
    recorded in that case.
    """
    decision = self.evaluate(roots)
    if decision.should_invalidate:
      emit(decision.reference)
      self.commit(decision)
    return decision
