# providers/metadata/__init__.py
# Synkuru - auxiliary metadata providers
from ._meta_CINEMETA import CinemetaProvider
from ._meta_FANART import FanartProvider, LogoService, pick_logo

__all__ = ["CinemetaProvider", "FanartProvider", "LogoService", "pick_logo"]
