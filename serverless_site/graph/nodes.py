"""Typed resource graph handed to a provider executor.

Each node names one cloud resource, its kind, its attributes and the nodes
that must exist before it. Attributes refer to outputs of other nodes with
``Ref`` (or ``Interpolation`` for string templates); every such reference is
also recorded as a dependency edge.
"""

from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import GraphError


class ResourceKind(str, Enum):
  """Resource types known to the graph."""

  ROLE = "iam:Role"
  ROLE_POLICY_ATTACHMENT = "iam:RolePolicyAttachment"
  FUNCTION = "lambda:Function"
  PERMISSION = "lambda:Permission"
  HTTP_API = "apigatewayv2:Api"
  INTEGRATION = "apigatewayv2:Integration"
  ROUTE = "apigatewayv2:Route"
  STAGE = "apigatewayv2:Stage"
  CERTIFICATE = "acm:Certificate"
  CERTIFICATE_VALIDATION = "acm:CertificateValidation"
  HOSTED_ZONE_LOOKUP = "route53:getZone"
  VALIDATION_RECORD = "route53:ValidationRecord"
  ALIAS_RECORD = "route53:AliasRecord"
  BUCKET = "s3:Bucket"
  BUCKET_OBJECT = "s3:BucketObject"
  BUCKET_POLICY = "s3:BucketPolicy"
  ORIGIN_ACCESS_CONTROL = "cloudfront:OriginAccessControl"
  ORIGIN_REQUEST_POLICY = "cloudfront:OriginRequestPolicy"
  CACHE_POLICY_LOOKUP = "cloudfront:getCachePolicy"
  DISTRIBUTION = "cloudfront:Distribution"
  INVALIDATION = "cloudfront:Invalidation"


# Attributes each kind exposes to its dependents.
OUTPUTS: dict[ResourceKind, frozenset[str]] = {
  ResourceKind.ROLE: frozenset({"arn", "name"}),
  ResourceKind.ROLE_POLICY_ATTACHMENT: frozenset(),
  ResourceKind.FUNCTION: frozenset({"arn", "name"}),
  ResourceKind.PERMISSION: frozenset(),
  ResourceKind.HTTP_API: frozenset({"id", "execution_arn", "endpoint", "host"}),
  ResourceKind.INTEGRATION: frozenset({"id"}),
  ResourceKind.ROUTE: frozenset({"id"}),
  ResourceKind.STAGE: frozenset({"id"}),
  ResourceKind.CERTIFICATE: frozenset(
    {"arn", "validation_record_name", "validation_record_value", "validation_record_type"}
  ),
  ResourceKind.CERTIFICATE_VALIDATION: frozenset({"certificate_arn"}),
  ResourceKind.HOSTED_ZONE_LOOKUP: frozenset({"zone_id"}),
  ResourceKind.VALIDATION_RECORD: frozenset({"fqdn"}),
  ResourceKind.ALIAS_RECORD: frozenset({"fqdn"}),
  ResourceKind.BUCKET: frozenset({"id", "arn", "regional_domain_name"}),
  ResourceKind.BUCKET_OBJECT: frozenset(),
  ResourceKind.BUCKET_POLICY: frozenset(),
  ResourceKind.ORIGIN_ACCESS_CONTROL: frozenset({"id"}),
  ResourceKind.ORIGIN_REQUEST_POLICY: frozenset({"id"}),
  ResourceKind.CACHE_POLICY_LOOKUP: frozenset({"id"}),
  ResourceKind.DISTRIBUTION: frozenset({"id", "arn", "domain_name", "hosted_zone_id"}),
  ResourceKind.INVALIDATION: frozenset(),
}


@dataclass(frozen=True)
class Ref:
  """An output attribute of another node, known once that node exists."""

  node: str
  attribute: str


@dataclass(frozen=True)
class Interpolation:
  """A string built from refs, e.g. Interpolation("{}/*/*", (api_arn,))."""

  template: str
  refs: tuple[Ref, ...]


def collect_refs(value: Any) -> Iterator[Ref]:
  """Yield every Ref nested anywhere inside ``value``."""
  if isinstance(value, Ref):
    yield value
  elif isinstance(value, Interpolation):
    yield from value.refs
  elif isinstance(value, Mapping):
    for item in value.values():
      yield from collect_refs(item)
  elif isinstance(value, list | tuple):
    for item in value:
      yield from collect_refs(item)


def resolve_value(value: Any, lookup: Callable[[Ref], Any]) -> Any:
  """Copy ``value`` with every Ref replaced by ``lookup(ref)``."""
  if isinstance(value, Ref):
    return lookup(value)
  if isinstance(value, Interpolation):
    return value.template.format(*(lookup(ref) for ref in value.refs))
  if isinstance(value, Mapping):
    return {key: resolve_value(item, lookup) for key, item in value.items()}
  if isinstance(value, list | tuple):
    return [resolve_value(item, lookup) for item in value]
  return value


@dataclass(frozen=True)
class ResourceNode:
  """One declared cloud resource."""

  name: str
  kind: ResourceKind
  attributes: Mapping[str, Any] = field(default_factory=dict)
  depends_on: frozenset[str] = frozenset()

  @property
  def outputs(self) -> frozenset[str]:
    return OUTPUTS[self.kind]


class ResourceGraph:
  """Resource nodes plus the edges between them.

  Nodes must be added after every node they depend on, so a graph can never
  hold a reference to a resource that isn't declared yet.
  """

  def __init__(self) -> None:
    self._nodes: dict[str, ResourceNode] = {}

  def add(
    self,
    name: str,
    kind: ResourceKind,
    attributes: Mapping[str, Any] | None = None,
    depends_on: Iterable[str] = (),
  ) -> ResourceNode:
    """Declare a node. Refs in ``attributes`` become dependencies.

    Raises:
      GraphError: On a duplicate name, an undeclared dependency, or a Ref to
        an attribute the target kind doesn't output.
    """
    if name in self._nodes:
      raise GraphError(f"Duplicate resource name: {name}")

    attributes = dict(attributes or {})
    dependencies = set(depends_on)

    for ref in collect_refs(attributes):
      target = self._nodes.get(ref.node)
      if target is None:
        raise GraphError(f"{name} refers to undeclared resource {ref.node}")
      if ref.attribute not in target.outputs:
        raise GraphError(
          f"{name} refers to {ref.node}.{ref.attribute}, "
          f"which {target.kind.value} does not output"
        )
      dependencies.add(ref.node)

    for dependency in dependencies:
      if dependency not in self._nodes:
        raise GraphError(f"{name} depends on undeclared resource {dependency}")

    node = ResourceNode(
      name=name,
      kind=kind,
      attributes=attributes,
      depends_on=frozenset(dependencies),
    )
    self._nodes[name] = node
    return node

  def __contains__(self, name: object) -> bool:
    return name in self._nodes

  def __iter__(self) -> Iterator[ResourceNode]:
    return iter(self._nodes.values())

  def __len__(self) -> int:
    return len(self._nodes)

  def get(self, name: str) -> ResourceNode:
    try:
      return self._nodes[name]
    except KeyError:
      raise GraphError(f"Unknown resource: {name}") from None

  def of_kind(self, kind: ResourceKind) -> list[ResourceNode]:
    return [node for node in self._nodes.values() if node.kind is kind]

  def edges(self) -> list[tuple[str, str]]:
    """All (dependency, dependent) pairs, in declaration order."""
    return [
      (dependency, node.name)
      for node in self._nodes.values()
      for dependency in sorted(node.depends_on)
    ]

  def creation_order(self) -> list[ResourceNode]:
    """Topological order of the nodes, ties broken by declaration order."""
    remaining = {name: set(node.depends_on) for name, node in self._nodes.items()}
    order: list[ResourceNode] = []

    while remaining:
      ready = [name for name, deps in remaining.items() if not deps]
      if not ready:
        raise GraphError(f"Dependency cycle among: {sorted(remaining)}")
      for name in ready:
        order.append(self._nodes[name])
        del remaining[name]
      for deps in remaining.values():
        deps.difference_update(ready)

    return order

  def teardown_order(self) -> list[ResourceNode]:
    """Reverse of creation order: dependents go before their dependencies."""
    return list(reversed(self.creation_order()))
