"""admitlayer - admission-time policy mutation and leader-gated background controllers."""

__version__ = "0.1.0"
