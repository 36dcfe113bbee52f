"""Adapter layer for external capabilities."""


def __getattr__(name: str):
    if name in ("CompletionAdapter", "CompletionCapability"):
        from agentturn.adapters import provider

        return getattr(provider, name)
    if name in ("Tool", "ToolGateway", "ToolRegistry"):
        from agentturn.adapters import tools

        return getattr(tools, name)
    if name in ("HistoryStore", "InMemoryHistoryStore", "JsonlHistoryStore"):
        from agentturn.adapters import storage

        return getattr(storage, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "CompletionAdapter",
    "CompletionCapability",
    "HistoryStore",
    "InMemoryHistoryStore",
    "JsonlHistoryStore",
    "Tool",
    "ToolGateway",
    "ToolRegistry",
]
