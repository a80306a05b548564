"""Admission webhook handlers."""

from admitlayer.webhooks.mutation import MutationHandler, NamespaceLabelSource, SchemaValidator

__all__ = ["MutationHandler", "NamespaceLabelSource", "SchemaValidator"]
