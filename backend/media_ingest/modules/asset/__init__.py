"""Asset module: registered uploads and their playback state."""

from media_ingest.modules.asset.models import Asset, AssetStatus, AssetType

__all__ = ["Asset", "AssetStatus", "AssetType"]
