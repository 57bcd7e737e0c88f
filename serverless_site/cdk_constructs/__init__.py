"""CDK provider executor for the serverless site resource graph."""

from .executor import HANDLERS, GraphExecutor

__all__ = [
  "GraphExecutor",
  "HANDLERS",
]
