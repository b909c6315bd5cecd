from .damage_service import DamageService, DamageStateResponse, build_damage_client

__all__ = ["DamageService", "DamageStateResponse", "build_damage_client"]
