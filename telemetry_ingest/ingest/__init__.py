"""Ingesta: processors por tipo de mensaje y su repositorio."""

from .processors import MessageProcessor, ProcessOutcome

__all__ = ["MessageProcessor", "ProcessOutcome"]
