"""
Maps an intercepted request to the category that decides how it is served.
"""

from offline_shell.models.http import Category, RequestRecord

STATIC_EXTENSIONS = (
    ".css",
    ".js",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".svg",
    ".ico",
    ".woff",
    ".woff2",
)

API_PATH_PREFIX = "/api/"
API_PATH_MARKER = "indexeddb"
API_QUERY_PARAM = "api"


def is_static_asset(record: RequestRecord) -> bool:
    # Case-sensitive: '/LOGO.PNG' is not a static asset
    return record.path.endswith(STATIC_EXTENSIONS)


def is_api_request(record: RequestRecord) -> bool:
    path = record.path
    return (
        path.startswith(API_PATH_PREFIX)
        or API_PATH_MARKER in path
        or API_QUERY_PARAM in record.query
    )


def classify(record: RequestRecord) -> Category:
    """
    Classifies a request. Static assets take precedence over API data, so
    '/api/logo.png' is a static asset.
    """
    if is_static_asset(record):
        return Category.STATIC_ASSET
    if is_api_request(record):
        return Category.API_DATA
    return Category.DEFAULT
