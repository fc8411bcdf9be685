"""Permission-aware access gateway for Kubernetes resources."""

__version__ = "0.1.0"
