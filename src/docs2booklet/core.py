"""Core model, logging and page fetchers for docs2booklet."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Tuple

LOG = logging.getLogger("docs2booklet")

EXIT_INVALID_ARGS = 6
EXIT_OUTPUT = 7
EXIT_MISSING_PAGE = 8
EXIT_RENDER = 9

PAGE_CLASS = "booklet-page"
PAGE_SELECTOR = f".{PAGE_CLASS}"
CATEGORY_TITLE_CLASS = "booklet-category-title"
SECTION_NUMBER_CLASS = "booklet-section-number"

COVER_PAGE_ID = "cover"
TOC_PAGE_ID = "table-of-contents"

SectionAddress = Tuple[int, ...]


class BookletError(RuntimeError):
    pass


class MissingPageError(BookletError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Page {path} does not exist.")
        self.path = path


class PageFetchError(BookletError):
    pass


class RendererError(BookletError):
    pass


class OptionsError(BookletError, ValueError):
    pass


@dataclass(frozen=True)
class NavigationNode:
    label: str
    link: str
    children: Tuple["NavigationNode", ...] = ()

    @property
    def is_category(self) -> bool:
        return bool(self.children)


@dataclass
class PageRecord:
    path: str
    markup: str


@dataclass(frozen=True)
class CategoryDescriptor:
    label: str
    first_page_url: str
    level: int


@dataclass(frozen=True)
class FetchResult:
    raw_markup: str
    exists: bool


class PageFetcher(Protocol):
    def fetch(self, path: str) -> FetchResult:
        ...


def iter_nodes(
    nodes: Tuple[NavigationNode, ...], base: SectionAddress = ()
) -> Iterator[Tuple[SectionAddress, NavigationNode]]:
    """Depth-first walk yielding ``(address, node)`` with 1-based sibling indices."""
    for index, node in enumerate(nodes, start=1):
        address = base + (index,)
        yield address, node
        if node.children:
            yield from iter_nodes(node.children, address)


def iter_leaves(nodes: Tuple[NavigationNode, ...]) -> Iterator[Tuple[SectionAddress, NavigationNode]]:
    for address, node in iter_nodes(nodes):
        if not node.is_category:
            yield address, node


def serialize_navigation_tree(nodes: Tuple[NavigationNode, ...]) -> List[Dict[str, Any]]:
    return [
        {
            "label": node.label,
            "link": node.link,
            "children": serialize_navigation_tree(node.children),
        }
        for node in nodes
    ]


def parse_html(markup: str) -> Any:
    try:
        from bs4 import BeautifulSoup  # type: ignore
    except Exception as exc:
        raise RuntimeError(f"beautifulsoup4 not available: {exc}") from exc
    return BeautifulSoup(markup, "html.parser")


def normalize_entry_point(entry_point: str) -> str:
    path = entry_point.replace("/index.html", "", 1)
    return re.sub(r"/+$", "", path)


def _resolve_log_level(verbose: bool, debug: bool) -> int:
    return logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)


def _configure_booklet_logger(level: int) -> None:
    LOG.setLevel(level)
    LOG.propagate = False
    if not LOG.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
        handler.setLevel(level)
        LOG.addHandler(handler)
    else:
        for handler in LOG.handlers:
            handler.setLevel(level)
            if handler.formatter is None:
                handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))


def setup_logging(verbose: bool, debug: bool) -> None:
    level = _resolve_log_level(verbose, debug)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")
    _configure_booklet_logger(level)


def _progress_bar_line(current: int, total: int, width: int = 24) -> str:
    if total <= 0:
        return "[?]"
    clamped = max(0, min(current, total))
    filled = int((clamped / total) * width)
    filled = min(filled, width)
    return "[" + "#" * filled + "." * (width - filled) + "]"


def _log_verbose_progress(prefix: str, current: int, total: int, detail: Optional[str] = None) -> None:
    bar = _progress_bar_line(current, total)
    counter = f"[{current}/{total}]" if total > 0 else f"[{current}]"
    if total > 0:
        msg = f"{prefix} {bar} {counter} ({(current / total) * 100.0:.1f}%)"
    else:
        msg = f"{prefix} {bar} {counter}"
    if detail:
        msg = f"{msg} | {detail}"
    LOG.info(msg)


def safe_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="\n")


def safe_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


def write_tree_json(path: Path, nodes: Tuple[NavigationNode, ...]) -> None:
    safe_write_text(path, json.dumps(serialize_navigation_tree(nodes), ensure_ascii=False, indent=2) + "\n")


@dataclass
class FileSystemPageFetcher:
    """Reads pages from a static site build, one ``index.html`` per page path."""

    base_directory: Path

    def page_file(self, path: str) -> Path:
        relative = path.split("#", 1)[0].strip("/")
        return Path(self.base_directory) / relative / "index.html"

    def fetch(self, path: str) -> FetchResult:
        file_path = self.page_file(path)
        if not file_path.is_file():
            return FetchResult(raw_markup="", exists=False)
        try:
            return FetchResult(raw_markup=file_path.read_text(encoding="utf-8"), exists=True)
        except (OSError, UnicodeDecodeError) as exc:
            raise PageFetchError(f"Unable to read page {path} from {file_path}: {exc}") from exc


@dataclass
class HttpPageFetcher:
    """Fetches pages from a served site; HTTP 404 means the page does not exist."""

    base_url: str
    timeout: float = 30.0
    session: Any = field(default=None, repr=False)

    def _session(self) -> Any:
        if self.session is None:
            try:
                import requests  # type: ignore
            except Exception as exc:
                raise RuntimeError(f"requests not available: {exc}") from exc
            self.session = requests.Session()
        return self.session

    def page_url(self, path: str) -> str:
        return self.base_url.rstrip("/") + "/" + path.split("#", 1)[0].lstrip("/")

    def fetch(self, path: str) -> FetchResult:
        session = self._session()
        import requests  # type: ignore

        url = self.page_url(path)
        try:
            response = session.get(url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise PageFetchError(f"Unable to fetch page {path} from {url}: {exc}") from exc
        if response.status_code == 404:
            return FetchResult(raw_markup="", exists=False)
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise PageFetchError(f"Unable to fetch page {path} from {url}: {exc}") from exc
        return FetchResult(raw_markup=response.text, exists=True)
