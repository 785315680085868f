from aitoolkit.services.actions.registry import ActionDescriptor, ActionRegistry

__all__ = ["ActionDescriptor", "ActionRegistry"]
