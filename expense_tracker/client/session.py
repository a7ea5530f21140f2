from dataclasses import dataclass, field
from typing import Optional
import httpx
from expense_tracker.client.api import ExpenseApiClient
from expense_tracker.client.cache import QueryCache
from expense_tracker.client.expenses import TemporaryIds
from expense_tracker.client.toast import Toaster

@dataclass
class Session:
    """
    Everything one client session shares: API client, query cache, toasts and
    the allocator for speculative ids.

    Built once and handed to each view-model explicitly. Tests construct it
    around a fake API or an in-process transport.
    """
    api: ExpenseApiClient
    cache: QueryCache = field(default_factory=QueryCache)
    toaster: Toaster = field(default_factory=Toaster)
    temporary_ids: TemporaryIds = field(default_factory=TemporaryIds)
    http: Optional[httpx.AsyncClient] = None

    @classmethod
    def connect(cls, base_url: str, api_prefix: str = "/api", **client_kwargs) -> "Session":
        http = httpx.AsyncClient(base_url=base_url, **client_kwargs)
        return cls(api=ExpenseApiClient(http, api_prefix), http=http)

    async def aclose(self) -> None:
        if self.http is not None:
            await self.http.aclose()

    async def __aenter__(self) -> "Session":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
