"""Domain name helpers for locating the Route 53 zone of a custom domain."""

from dataclasses import dataclass

from ..errors import DomainMismatchError, InvalidDomainError


@dataclass(frozen=True)
class DomainParts:
  """A domain split into its first label and parent domain."""

  subdomain: str
  parent_domain: str

  def join(self) -> str:
    """Rebuild the domain the parts were split from."""
    parent = self.parent_domain.rstrip(".")
    if not self.subdomain:
      return parent
    return f"{self.subdomain}.{parent}"


def split_domain(domain: str) -> DomainParts:
  """Split a domain name into its subdomain and parent domain names.

  e.g. "www.example.com" => "www", "example.com."

  The parent domain carries a trailing "." (canonical DNS form) when a
  subdomain was split off. A two-label domain has no subdomain and is
  returned unchanged as the parent.

  Raises:
    InvalidDomainError: If the domain has fewer than two labels.
  """
  parts = domain.split(".")
  if len(parts) < 2:
    raise InvalidDomainError(f"No TLD found on {domain}")

  if len(parts) == 2:
    return DomainParts(subdomain="", parent_domain=domain)

  return DomainParts(subdomain=parts[0], parent_domain=".".join(parts[1:]) + ".")


def canonical_zone_name(zone: str) -> str:
  """Zone name with exactly one trailing dot."""
  return zone.rstrip(".") + "."


def relative_record_name(fqdn: str, zone: str) -> str:
  """Return the record name of ``fqdn`` relative to ``zone``.

  The apex of the zone maps to "". Comparison ignores case and trailing dots.

  Raises:
    DomainMismatchError: If ``fqdn`` is neither the zone nor inside it.
  """
  name = fqdn.rstrip(".").lower()
  zone_name = zone.rstrip(".").lower()

  if name == zone_name:
    return ""
  if name.endswith("." + zone_name):
    return fqdn.rstrip(".")[: -(len(zone_name) + 1)]

  raise DomainMismatchError(f"FQDN must contain domainName: {fqdn} is not in {zone}")
