"""Exceptions raised while planning or running a deployment."""


class DeployError(Exception):
  """Base class for all deployment errors."""


class ConfigError(DeployError):
  """Deployment configuration is missing or invalid."""


class InvalidDomainError(DeployError):
  """Domain name has no TLD (fewer than two labels)."""


class DomainMismatchError(DeployError):
  """Domain name is not the hosted zone or one of its subdomains."""


class FilesystemError(DeployError):
  """A build artifact directory could not be read."""


class GraphError(DeployError):
  """Resource graph is malformed (duplicate name, undeclared dependency)."""


class ProviderError(DeployError):
  """An AWS API call or the cdk CLI failed."""
