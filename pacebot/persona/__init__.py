"""Persona resolution for PaceBot."""

from pacebot.persona.resolver import ContextResolver

__all__ = ["ContextResolver"]
