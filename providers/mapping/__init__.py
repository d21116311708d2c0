# providers/mapping/__init__.py
# Synkuru - alternate-scheme lookup services
from ._map_ARM import ArmClient
from ._map_KITSU import KitsuMappings

__all__ = ["ArmClient", "KitsuMappings"]
