"""Policy storage: the in-memory policy cache and manifest loading."""

from admitlayer.policies.cache import PolicyCache, PolicyLister
from admitlayer.policies.loader import load_policies

__all__ = ["PolicyCache", "PolicyLister", "load_policies"]
