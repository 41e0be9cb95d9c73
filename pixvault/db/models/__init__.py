from pixvault.db.models.asset import Asset

__all__ = ["Asset"]
