"""Resource graph, asset planning and change detection for a deployment."""

from .assets import AssetRecord, plan_assets
from .builder import ResourceGraphBuilder
from .crawler import crawl_directory
from .domain import DomainParts, relative_record_name, split_domain
from .fingerprint import FingerprintState, fingerprint_directory
from .invalidation import (
  FingerprintStore,
  InvalidationDecision,
  InvalidationState,
  InvalidationTrigger,
  JsonFingerprintStore,
  SsmFingerprintStore,
  artifact_roots,
  open_store,
)
from .nodes import Interpolation, Ref, ResourceGraph, ResourceKind, ResourceNode

__all__ = [
  "AssetRecord",
  "DomainParts",
  "FingerprintState",
  "FingerprintStore",
  "Interpolation",
  "InvalidationDecision",
  "InvalidationState",
  "InvalidationTrigger",
  "JsonFingerprintStore",
  "Ref",
  "ResourceGraph",
  "ResourceGraphBuilder",
  "ResourceKind",
  "ResourceNode",
  "SsmFingerprintStore",
  "artifact_roots",
  "crawl_directory",
  "fingerprint_directory",
  "open_store",
  "plan_assets",
  "relative_record_name",
  "split_domain",
]
