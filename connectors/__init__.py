"""Source connectors."""

from connectors.url_list import UrlListDiscoverStage

__all__ = ["UrlListDiscoverStage"]
