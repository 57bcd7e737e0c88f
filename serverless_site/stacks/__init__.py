"""CDK stacks for serverless site deployments."""

from .site_stack import ServerlessSiteStack

__all__ = ["ServerlessSiteStack"]
