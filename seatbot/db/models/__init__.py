from .sheet import SheetRow, SheetTable

__all__ = [
    "SheetRow",
    "SheetTable",
]
