"""
SharePoint REST client.
"""

from typing import TYPE_CHECKING, Dict, Optional

from spquery.batching.multipart import SPBatchCodec
from spquery.config import ClientConfig, get_config
from spquery.core.caching import ResponseCache
from spquery.core.client import Client
from spquery.core.urls import combine, is_url_absolute
from spquery.exceptions import ConfigurationError
from spquery.sp.queryable import VERBOSE_JSON
from spquery.sp.webs import Web
from spquery.transport.interface import Transport

if TYPE_CHECKING:
    from spquery.core.queryable import Queryable
    from spquery.core.request import PendingRequest


class SPClient(Client):
    """
    Client for one SharePoint site.

    Usage:
        ```python
        async with SPClient("https://contoso.sharepoint.com/sites/dev",
                            transport=HttpxTransport(headers={"Authorization": f"Bearer {token}"})) as sp:
            web = await sp.web.select("Title").get()
            print(web["Title"])
        ```
    """

    def __init__(
        self,
        site_url: Optional[str] = None,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        cache: Optional[ResponseCache] = None,
    ):
        """
        Initialize the client.

        Args:
            site_url: Absolute URL of the web (falls back to ``config.site_url``)
            config: Client configuration. Uses global config if not provided.
            transport: HTTP transport
            cache: Response cache

        Raises:
            ConfigurationError: If no absolute site URL is available
        """
        config = config or get_config()
        site_url = site_url or config.site_url
        if not site_url or not is_url_absolute(site_url):
            raise ConfigurationError(f"SPClient requires an absolute site URL, got '{site_url}'")

        super().__init__(config=config, transport=transport, cache=cache)
        self.site_url = site_url.rstrip("/")

    @property
    def web(self) -> Web:
        """Get the root web node."""
        return Web(combine(self.site_url, "_api"), client=self)

    def default_headers(self, request: "PendingRequest") -> Dict[str, str]:
        headers = {"Accept": self.config.accept_header}
        if request.body is not None:
            headers["Content-Type"] = VERBOSE_JSON
        return headers

    def batch_codec(self, node: Optional["Queryable"] = None) -> SPBatchCodec:
        return SPBatchCodec(node.url if node is not None else self.site_url)

    def __repr__(self) -> str:
        return f"SPClient(site_url={self.site_url!r})"
