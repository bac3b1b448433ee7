"""Stand-in for the browser's window.location/history used by the OAuth flow."""
from typing import Dict
from urllib.parse import parse_qsl, urlsplit, urlunsplit


class MemoryLocation:
    def __init__(self, href: str = "http://localhost/"):
        self.href = href
        self.history = [href]

    @property
    def origin(self) -> str:
        parts = urlsplit(self.href)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def fragment(self) -> str:
        return urlsplit(self.href).fragment

    def fragment_params(self) -> Dict[str, str]:
        return dict(parse_qsl(self.fragment, keep_blank_values=True))

    def redirect(self, url: str) -> None:
        """Full-page navigation."""
        self.href = url
        self.history.append(url)

    def strip_fragment(self) -> None:
        """Replace the current entry with the same URL minus query and fragment."""
        parts = urlsplit(self.href)
        self.href = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
        self.history[-1] = self.href
