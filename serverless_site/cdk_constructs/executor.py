"""Materialize a resource graph as CDK constructs."""

from collections.abc import Callable
from typing import Any

from constructs import Construct

from ..errors import GraphError
from ..graph.nodes import (
  Ref,
  ResourceGraph,
  ResourceKind,
  ResourceNode,
  collect_refs,
  resolve_value,
)
from . import certificate, distribution, dns, invalidation, server, storage

# A handler creates the construct for a node (or None when the node is
# folded into another resource) and returns its output attributes.
Handler = Callable[["GraphExecutor", ResourceNode], tuple[Construct | None, dict[str, Any]]]

HANDLERS: dict[ResourceKind, Handler] = {
  ResourceKind.ROLE: server.role,
  ResourceKind.ROLE_POLICY_ATTACHMENT: server.role_policy_attachment,
  ResourceKind.FUNCTION: server.function,
  ResourceKind.PERMISSION: server.permission,
  ResourceKind.HTTP_API: server.http_api,
  ResourceKind.INTEGRATION: server.integration,
  ResourceKind.ROUTE: server.route,
  ResourceKind.STAGE: server.stage,
  ResourceKind.CERTIFICATE: certificate.certificate,
  ResourceKind.VALIDATION_RECORD: certificate.validation_record,
  ResourceKind.CERTIFICATE_VALIDATION: certificate.certificate_validation,
  ResourceKind.HOSTED_ZONE_LOOKUP: dns.hosted_zone,
  ResourceKind.ALIAS_RECORD: dns.alias_record,
  ResourceKind.BUCKET: storage.bucket,
  ResourceKind.BUCKET_OBJECT: storage.bucket_object,
  ResourceKind.BUCKET_POLICY: storage.bucket_policy,
  ResourceKind.ORIGIN_ACCESS_CONTROL: distribution.origin_access_control,
  ResourceKind.ORIGIN_REQUEST_POLICY: distribution.origin_request_policy,
  ResourceKind.CACHE_POLICY_LOOKUP: distribution.cache_policy,
  ResourceKind.DISTRIBUTION: distribution.distribution,
  ResourceKind.INVALIDATION: invalidation.invalidation,
}


class GraphExecutor(Construct):
  """Creates one CDK construct per graph node, in creation order.

  Refs between nodes resolve to CloudFormation tokens, which gives
  CloudFormation the same ordering as the graph. Only the edges that carry
  no attribute are added with ``node.add_dependency``.
  """

  def __init__(self, scope: Construct, id: str, *, graph: ResourceGraph) -> None:
    super().__init__(scope, id)

    self.graph = graph
    self.bucket_deployments: dict[str, Construct] = {}
    self._constructs: dict[str, Construct | None] = {}
    self._outputs: dict[str, dict[str, Any]] = {}

    for node in graph.creation_order():
      handler = HANDLERS.get(node.kind)
      if handler is None:
        raise GraphError(f"No CDK handler for {node.kind.value} ({node.name})")

      construct, outputs = handler(self, node)
      self._constructs[node.name] = construct
      self._outputs[node.name] = outputs
      self._add_explicit_dependencies(node, construct)

  def _add_explicit_dependencies(self, node: ResourceNode, construct: Construct | None) -> None:
    if construct is None:
      return
    referenced = {ref.node for ref in collect_refs(node.attributes)}
    for dependency in sorted(node.depends_on - referenced):
      dependency_construct = self._constructs.get(dependency)
      if dependency_construct is not None and dependency_construct is not construct:
        construct.node.add_dependency(dependency_construct)

  def resolve(self, value: Any) -> Any:
    """Replace Refs inside ``value`` with the referenced tokens."""
    return resolve_value(value, self._lookup)

  def _lookup(self, ref: Ref) -> Any:
    outputs = self._outputs.get(ref.node)
    if outputs is None or ref.attribute not in outputs:
      raise GraphError(f"{ref.node}.{ref.attribute} is not available yet")
    return outputs[ref.attribute]

  def output(self, name: str, attribute: str) -> Any:
    """Token for an output attribute of a materialized node."""
    return self._lookup(Ref(name, attribute))

  def construct_for(self, name: str) -> Construct | None:
    """Construct a node was materialized as."""
    try:
      return self._constructs[name]
    except KeyError:
      raise GraphError(f"{name} has not been materialized") from None

  def attribute(self, node: ResourceNode, key: str, default: Any = None) -> Any:
    """Resolved attribute of ``node``."""
    return self.resolve(node.attributes.get(key, default))
