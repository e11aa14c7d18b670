"""chartwave: plan, resolve and diff groups of Helm chart releases."""

__version__ = "0.4.0"
