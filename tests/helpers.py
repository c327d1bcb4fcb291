"""Test doubles and builders shared across test modules."""

from offline_shell.exceptions import NetworkError
from offline_shell.models.http import CapturedResponse, RequestRecord

ORIGIN = "https://shop.example"


class FakeOrigin:
    """
    Stand-in for the network fetch collaborator. Serves canned responses by URL,
    records every call, and raises NetworkError while `offline` is set.
    """

    def __init__(self):
        self.routes: dict[str, CapturedResponse] = {}
        self.offline = False
        self.failing: set[str] = set()
        self.calls: list[RequestRecord] = []

    def serve(self, path: str, body: bytes | str, status: int = 200, content_type="text/plain"):
        if isinstance(body, str):
            body = body.encode("utf-8")
        url = ORIGIN + path
        self.routes[url] = CapturedResponse(
            status=status, headers={"Content-Type": content_type}, body=body, url=url
        )
        return self.routes[url]

    @property
    def called_urls(self) -> list[str]:
        return [record.url for record in self.calls]

    async def __call__(self, record: RequestRecord) -> CapturedResponse:
        self.calls.append(record)
        if self.offline or record.url in self.failing:
            raise NetworkError("Connection refused")
        if record.url in self.routes:
            return self.routes[record.url]
        return CapturedResponse(status=404, body=b"Not Found", url=record.url)


def request(path: str, destination: str = "", method: str = "GET") -> RequestRecord:
    return RequestRecord(url=ORIGIN + path, destination=destination, method=method)


def response(body: bytes | str, status: int = 200, content_type: str = "text/plain"):
    if isinstance(body, str):
        body = body.encode("utf-8")
    return CapturedResponse(status=status, headers={"Content-Type": content_type}, body=body)
