class CollectionNames:
    """MongoDB collection names used by the repositories."""

    SITEMAP_URLS = "sitemap_urls"
