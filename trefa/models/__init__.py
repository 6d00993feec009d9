from .vehicle import InventarioCache

__all__ = ["InventarioCache"]
