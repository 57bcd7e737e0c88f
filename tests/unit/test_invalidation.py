"""Tests for the invalidation trigger and fingerprint stores."""

import json
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

from serverless_site.errors import ProviderError
from serverless_site.graph import (
  FingerprintState,
  InvalidationState,
  InvalidationTrigger,
  JsonFingerprintStore,
  SsmFingerprintStore,
  artifact_roots,
  open_store,
)
from serverless_site.graph.invalidation import PRERENDERED_HASH, STATIC_HASH


class MockSsmClient:
  """Mock SSM client for testing."""

  def __init__(self) -> None:
    self.parameters: dict[str, str] = {}
    self.error_code: str | None = None

  def get_parameter(self, Name: str) -> dict[str, Any]:
    if self.error_code:
      raise ClientError({"Error": {"Code": self.error_code, "Message": "boom"}}, "GetParameter")
    if Name not in self.parameters:
      raise ClientError(
        {"Error": {"Code": "ParameterNotFound", "Message": "not found"}}, "GetParameter"
      )
    return {"Parameter": {"Name": Name, "Value": self.parameters[Name]}}

  def put_parameter(self, Name: str, Value: str, Type: str, Overwrite: bool) -> None:
    if self.error_code:
      raise ClientError({"Error": {"Code": self.error_code, "Message": "boom"}}, "PutParameter")
    self.parameters[Name] = Value


@pytest.fixture
def roots(artifacts: Path) -> dict[str, Path]:
  """Both asset roots keyed by store key."""
  return {STATIC_HASH: artifacts / "assets", PRERENDERED_HASH: artifacts / "prerendered"}


class TestInvalidationTrigger:
  """Test InvalidationTrigger."""

  def test_first_run_invalidates(self, roots: dict[str, Path], memory_store: Any) -> None:
    """A missing predecessor counts as a change."""
    emitted: list[str] = []
    decision = InvalidationTrigger(memory_store).run(roots, emitted.append)

    assert decision.state is InvalidationState.NO_PRIOR_FINGERPRINT
    assert decision.should_invalidate
    assert emitted == [decision.reference]
    assert set(memory_store.records) == {STATIC_HASH, PRERENDERED_HASH}

  def test_second_run_unchanged(self, roots: dict[str, Path], memory_store: Any) -> None:
    """Unchanged trees emit nothing and leave the store alone."""
    trigger = InvalidationTrigger(memory_store)
    trigger.run(roots, lambda reference: None)
    writes = memory_store.writes

    emitted: list[str] = []
    decision = trigger.run(roots, emitted.append)

    assert decision.state is InvalidationState.UNCHANGED
    assert not decision.should_invalidate
    assert emitted == []
    assert memory_store.writes == writes

  def test_changed_root(self, roots: dict[str, Path], memory_store: Any) -> None:
    """A change in one root invalidates once and records the new fingerprints."""
    trigger = InvalidationTrigger(memory_store)
    trigger.run(roots, lambda reference: None)
    (roots[PRERENDERED_HASH] / "index.html").write_text("<html>new</html>")

    emitted: list[str] = []
    decision = trigger.run(roots, emitted.append)

    assert decision.state is InvalidationState.CHANGED
    assert decision.states == {
      STATIC_HASH: InvalidationState.UNCHANGED,
      PRERENDERED_HASH: InvalidationState.CHANGED,
    }
    assert len(emitted) == 1
    assert memory_store.read(PRERENDERED_HASH) == decision.current[PRERENDERED_HASH]

  def test_failed_emit_records_nothing(self, roots: dict[str, Path], memory_store: Any) -> None:
    """Fingerprints are only recorded after the invalidation was issued."""

    def fail(reference: str) -> None:
      raise ProviderError("invalidation failed")

    with pytest.raises(ProviderError):
      InvalidationTrigger(memory_store).run(roots, fail)

    assert memory_store.records == {}

  def test_evaluate_does_not_write(self, roots: dict[str, Path], memory_store: Any) -> None:
    """Evaluating is read-only until commit."""
    trigger = InvalidationTrigger(memory_store)
    decision = trigger.evaluate(roots)
    assert memory_store.records == {}

    trigger.commit(decision)
    assert trigger.evaluate(roots).state is InvalidationState.UNCHANGED

  def test_reference_is_unique_per_decision(
    self, roots: dict[str, Path], memory_store: Any
  ) -> None:
    """Each decision gets its own caller reference, stable while it lives."""
    trigger = InvalidationTrigger(memory_store)
    decision = trigger.evaluate(roots)
    assert decision.reference == decision.reference
    assert decision.reference != trigger.evaluate(roots).reference

  def test_rollback_invalidates_with_new_reference(
    self, roots: dict[str, Path], memory_store: Any
  ) -> None:
    """Going back to earlier content still issues a fresh invalidation."""
    page = roots[STATIC_HASH] / "a.txt"
    original = page.read_text()
    trigger = InvalidationTrigger(memory_store)
    emitted: list[str] = []

    trigger.run(roots, emitted.append)
    page.write_text("changed")
    trigger.run(roots, emitted.append)
    page.write_text(original)
    decision = trigger.run(roots, emitted.append)

    assert decision.state is InvalidationState.CHANGED
    assert len(emitted) == 3
    assert len(set(emitted)) == 3

  def test_artifact_roots(self, target: Any) -> None:
    """Targets map to the static and prerendered roots."""
    assert artifact_roots(target) == {
      STATIC_HASH: target.static_path,
      PRERENDERED_HASH: target.prerendered_path,
    }


class TestJsonFingerprintStore:
  """Test JsonFingerprintStore."""

  def test_missing_file(self, tmp_path: Path) -> None:
    """Reading from a store that was never written gives None."""
    assert JsonFingerprintStore(tmp_path / "none.json").read(STATIC_HASH) is None

  def test_write_and_read(self, tmp_path: Path) -> None:
    """Written states are read back, other keys are kept."""
    path = tmp_path / "state" / "fingerprints.json"
    store = JsonFingerprintStore(path)
    store.write(STATIC_HASH, FingerprintState("assets", "1"))
    store.write(PRERENDERED_HASH, FingerprintState("prerendered", "2"))

    assert store.read(STATIC_HASH) == FingerprintState("assets", "1")
    assert json.loads(path.read_text())[PRERENDERED_HASH] == {"path": "prerendered", "hash": "2"}


class TestSsmFingerprintStore:
  """Test SsmFingerprintStore."""

  def test_parameter_not_found(self) -> None:
    """A missing parameter means no predecessor."""
    store = SsmFingerprintStore("/site/fingerprints", ssm_client=MockSsmClient())
    assert store.read(STATIC_HASH) is None

  def test_write_and_read(self) -> None:
    """States are stored as JSON under the prefix."""
    ssm = MockSsmClient()
    store = SsmFingerprintStore("site/fingerprints/", ssm_client=ssm)
    store.write(STATIC_HASH, FingerprintState("assets", "abc"))

    assert json.loads(ssm.parameters["/site/fingerprints/StaticHash"]) == {
      "path": "assets",
      "hash": "abc",
    }
    assert store.read(STATIC_HASH) == FingerprintState("assets", "abc")

  def test_other_errors_raise(self) -> None:
    """Access errors are not mistaken for a missing predecessor."""
    ssm = MockSsmClient()
    ssm.error_code = "AccessDeniedException"
    store = SsmFingerprintStore("/site", ssm_client=ssm)

    with pytest.raises(ProviderError):
      store.read(STATIC_HASH)
    with pytest.raises(ProviderError):
      store.write(STATIC_HASH, FingerprintState("assets", "abc"))


class TestOpenStore:
  """Test open_store."""

  def test_json_path(self, tmp_path: Path) -> None:
    """Plain locations are JSON files."""
    store = open_store(str(tmp_path / "fingerprints.json"))
    assert isinstance(store, JsonFingerprintStore)

  def test_ssm_prefix(self) -> None:
    """Locations starting with "ssm:" are parameter prefixes."""
    store = open_store("ssm:/site/fingerprints", region="us-east-1")
    assert isinstance(store, SsmFingerprintStore)
    assert store.prefix == "/site/fingerprints"
