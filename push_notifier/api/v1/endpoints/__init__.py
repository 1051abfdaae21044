"""API endpoint modules for v1."""

from push_notifier.api.v1.endpoints import push

__all__ = ["push"]
