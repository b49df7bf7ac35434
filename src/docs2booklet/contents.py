"""Page crawl, sidebar reconciliation and synthetic cover/TOC pages."""

from __future__ import annotations

import base64
import html
import mimetypes
from pathlib import Path
from typing import Any, List, Optional, Set, Tuple

from .core import (
    COVER_PAGE_ID,
    LOG,
    PAGE_CLASS,
    SECTION_NUMBER_CLASS,
    TOC_PAGE_ID,
    MissingPageError,
    NavigationNode,
    PageFetcher,
    PageRecord,
    SectionAddress,
    _log_verbose_progress,
    normalize_entry_point,
    parse_html,
)
from .options import CoverOptions, Selectors, TocOptions

Tree = Tuple[NavigationNode, ...]


def wrap_page_markup(path: str, content_html: str) -> str:
    return f'<div class="{PAGE_CLASS}" data-path="{html.escape(path, quote=True)}">{content_html}</div>'


def extract_main_content(soup: Any, selector: str) -> str:
    return "".join(str(element) for element in soup.select(selector))


def _sidebar_item(item: Any) -> NavigationNode:
    anchor = item.find("a")
    child_list = item.find(["ul", "ol"])
    children: Tree = ()
    if child_list is not None:
        children = tuple(_sidebar_item(child) for child in child_list.find_all(True, recursive=False))
    label = anchor.get_text(" ", strip=True) if anchor is not None else ""
    href = (anchor.get("href") if anchor is not None else None) or "#"
    return NavigationNode(label=label, link=children[0].link if children else href, children=children)


def extract_sidebar(soup: Any, selector: str) -> Tree:
    sidebar = soup.select_one(selector)
    if sidebar is None:
        return ()
    return tuple(_sidebar_item(item) for item in sidebar.find_all(True, recursive=False))


def merge_navigation_node(destination: NavigationNode, source: NavigationNode) -> NavigationNode:
    if len(destination.children) == len(source.children):
        children = tuple(
            merge_navigation_node(dest_child, src_child)
            for dest_child, src_child in zip(destination.children, source.children)
        )
    else:
        LOG.debug(
            "Children of '%s' differ (%d vs %d); keeping the longer list",
            source.label,
            len(destination.children),
            len(source.children),
        )
        children = destination.children if len(destination.children) > len(source.children) else source.children
    return NavigationNode(label=source.label, link=source.link, children=children)


def merge_sidebar(tree: Tree, snapshot: Tree) -> Tree:
    """Merge a page's sidebar snapshot into the best-known tree.

    Lists with the same number of top-level siblings are merged node by node. Otherwise
    the list with more siblings wins as a whole. Neither argument is modified.
    """
    if len(tree) == len(snapshot):
        return tuple(merge_navigation_node(dest, src) for dest, src in zip(tree, snapshot))
    LOG.debug("Sidebar sibling count changed (%d -> %d); keeping the longer list", len(tree), len(snapshot))
    return tree if len(tree) > len(snapshot) else snapshot


def collect_contents(
    entry_point: str,
    fetcher: PageFetcher,
    selectors: Optional[Selectors] = None,
) -> Tuple[Tree, List[PageRecord]]:
    """Follow the pagination chain from ``entry_point`` and reconcile the sidebar tree."""
    selectors = selectors or Selectors()
    pages: List[PageRecord] = []
    tree: Tree = ()
    visited: Set[str] = set()

    current_path: Optional[str] = normalize_entry_point(entry_point)
    while current_path:
        if current_path in visited:
            LOG.warning("Pagination loops back to %s; stopping the crawl", current_path)
            break
        visited.add(current_path)

        _log_verbose_progress("Collecting pages", len(pages) + 1, 0, current_path)
        result = fetcher.fetch(current_path)
        if not result.exists:
            raise MissingPageError(current_path)
        soup = parse_html(result.raw_markup)

        content_html = extract_main_content(soup, selectors.main_content)
        pages.append(PageRecord(path=current_path, markup=wrap_page_markup(current_path, content_html)))

        tree = merge_sidebar(tree, extract_sidebar(soup, selectors.sidebar))

        next_link = soup.select_one(selectors.pagination)
        current_path = next_link.get("href") if next_link is not None else None

    LOG.info("%d pages are collected", len(pages))
    return tree, pages


def encode_image(image_path: str) -> str:
    mime_type, _ = mimetypes.guess_type(image_path)
    if mime_type is None:
        return ""
    data = base64.b64encode(Path(image_path).expanduser().resolve().read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{data}"


def generate_cover_page(cover: CoverOptions, version: Optional[str] = None) -> PageRecord:
    style_attribute = ""
    if cover.background_image:
        encoded = encode_image(cover.background_image)
        if encoded:
            style_attribute = f" style=\"background-image:url('{encoded}')\""
    parts = [f'<h1 class="title">{cover.title}</h1>']
    if cover.subtitle:
        parts.append(f'<h2 class="subtitle">{cover.subtitle}</h2>')
    if cover.version and version:
        parts.append(f'<h3 class="version">{html.escape(version)}</h3>')
    markup = (
        f'<div class="{PAGE_CLASS}"{style_attribute}>'
        f'<div class="booklet-cover-content">{"".join(parts)}</div>'
        "</div>"
    )
    return PageRecord(path=COVER_PAGE_ID, markup=markup)


def _toc_entry(node: NavigationNode, address: SectionAddress, delimiter: Optional[str]) -> str:
    number_label = ""
    if delimiter:
        number = delimiter.join(str(part) for part in address) + delimiter
        number_label = f'<span class="{SECTION_NUMBER_CLASS}">{number}</span>'
    child_list = ""
    if node.children:
        entries = "".join(
            _toc_entry(child, address + (index,), delimiter) for index, child in enumerate(node.children, start=1)
        )
        child_list = f'<ul class="booklet-toc-list level-{len(address) + 1}">{entries}</ul>'
    return (
        '<li class="booklet-toc-list-entry">'
        f'<a href="{html.escape(node.link, quote=True)}">{number_label}{html.escape(node.label)}</a>'
        f"{child_list}"
        "</li>"
    )


def generate_toc_page(
    tree: Tree,
    toc: TocOptions,
    autonumber: bool = False,
    delimiter: str = ".",
) -> PageRecord:
    entry_delimiter = delimiter if autonumber else None
    entries = "".join(_toc_entry(node, (index,), entry_delimiter) for index, node in enumerate(tree, start=1))
    toc_class = "booklet-toc autonumbered" if autonumber else "booklet-toc"
    markup = (
        f'<div class="{PAGE_CLASS}">'
        "<article>"
        f"<h1>{html.escape(toc.title)}</h1>"
        f'<div class="{toc_class}"><ul class="booklet-toc-list level-1">{entries}</ul></div>'
        "</article>"
        "</div>"
    )
    return PageRecord(path=TOC_PAGE_ID, markup=markup)
