"""Per-page rewriters and the pipeline that applies them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, List, Mapping, Optional, Protocol, Sequence, Tuple

from .core import (
    CATEGORY_TITLE_CLASS,
    LOG,
    PAGE_SELECTOR,
    SECTION_NUMBER_CLASS,
    CategoryDescriptor,
    NavigationNode,
    PageRecord,
    SectionAddress,
    _log_verbose_progress,
    iter_leaves,
    parse_html,
)

EXTERNAL_LINK_RE = re.compile(r"^https?://")
SUB_HEADING_TAGS = ["h2", "h3", "h4", "h5", "h6"]


class PageRewriter(Protocol):
    description: str

    def rewrite(self, soup: Any, page: PageRecord, index: int) -> None:
        ...


def list_categories(nodes: Sequence[NavigationNode], level: int = 1) -> List[CategoryDescriptor]:
    categories: List[CategoryDescriptor] = []
    for node in nodes:
        if not node.is_category:
            continue
        categories.append(CategoryDescriptor(label=node.label, first_page_url=node.link, level=level))
        categories.extend(list_categories(node.children, level + 1))
    return categories


def build_category_index(tree: Sequence[NavigationNode]) -> Mapping[str, CategoryDescriptor]:
    return MappingProxyType({category.first_page_url: category for category in list_categories(tree)})


def build_section_addresses(tree: Sequence[NavigationNode]) -> Mapping[str, SectionAddress]:
    return MappingProxyType({node.link: address for address, node in iter_leaves(tuple(tree))})


def format_section_address(address: SectionAddress, delimiter: str = ".") -> str:
    return delimiter.join(str(part) for part in address) + delimiter


def path_to_id(path: str) -> str:
    # only the first separator and the first fragment marker are replaced
    return re.sub(r"^/", "", path).replace("/", "__", 1).replace("#", "--", 1)


@dataclass(frozen=True)
class HeadingState:
    level: int
    address: SectionAddress


NumberingState = Tuple[HeadingState, ...]


def _next_sibling(address: SectionAddress) -> SectionAddress:
    return address[:-1] + (address[-1] + 1,)


def advance_heading_state(state: NumberingState, level: int) -> NumberingState:
    """Return the numbering state after a heading of ``level``.

    ``state`` is the chain of open headings, outermost first; its last entry is the
    previous heading. Deeper headings open a child, equal levels advance the sibling and
    shallower headings close every deeper entry before advancing.
    """
    stack = list(state)
    closed: Optional[HeadingState] = None
    while len(stack) > 1 and stack[-1].level > level:
        closed = stack.pop()
    top = stack[-1]
    if top.level == level:
        stack[-1] = HeadingState(level, _next_sibling(top.address))
    elif closed is not None:
        stack.append(HeadingState(level, _next_sibling(closed.address)))
    else:
        stack.append(HeadingState(level, top.address + (1,)))
    return tuple(stack)


def number_headings(address: SectionAddress, levels: Iterable[int]) -> List[SectionAddress]:
    state: NumberingState = (HeadingState(1, tuple(address)),)
    numbered: List[SectionAddress] = []
    for level in levels:
        state = advance_heading_state(state, level)
        numbered.append(state[-1].address)
    return numbered


class ExcludingRewriter:
    description = "Excluding elements"

    def __init__(self, selectors: Sequence[str]) -> None:
        self.selectors = list(selectors)

    def rewrite(self, soup: Any, page: PageRecord, index: int) -> None:
        for selector in self.selectors:
            for element in soup.select(selector):
                if not element.decomposed:
                    element.decompose()


class CategoryTitleRewriter:
    """Prepends the category title to the first page of each category."""

    description = "Inserting category title"

    def __init__(self, category_index: Mapping[str, CategoryDescriptor]) -> None:
        self.category_index = category_index

    def rewrite(self, soup: Any, page: PageRecord, index: int) -> None:
        category = self.category_index.get(page.path)
        if category is None:
            return
        root = soup.select_one(PAGE_SELECTOR)
        if root is None:
            return
        title = soup.new_tag("div", attrs={"class": CATEGORY_TITLE_CLASS, "data-category-level": str(category.level)})
        title.string = category.label
        root.insert(0, title)


class LinkRewriter:
    """Rewrites element IDs and internal links to single-document fragment IDs."""

    description = "Rewriting internal links"

    def rewrite(self, soup: Any, page: PageRecord, index: int) -> None:
        page_id = path_to_id(page.path)

        for element in soup.find_all(id=True):
            element["id"] = f"{page_id}--{element['id']}"

        root = soup.select_one(PAGE_SELECTOR)
        if root is not None:
            root["id"] = page_id

        for anchor in soup.find_all("a", href=True):
            link = anchor["href"]
            if not link or EXTERNAL_LINK_RE.match(link):
                continue
            target = page.path + link if link.startswith("#") else link
            anchor["href"] = "#" + path_to_id(target)


class SectionNumberingRewriter:
    """Prepends hierarchical section numbers to headings.

    e.g. ``<h1>Heading</h1>`` becomes
    ``<h1><span class="booklet-section-number">2.1.</span>Heading</h1>``.
    Pages without an address in the navigation tree are left untouched.
    """

    description = "Numbering sections"

    def __init__(self, section_addresses: Mapping[str, SectionAddress], delimiter: str = ".") -> None:
        self.section_addresses = section_addresses
        self.delimiter = delimiter

    def _label(self, soup: Any, address: SectionAddress) -> Any:
        span = soup.new_tag("span", attrs={"class": SECTION_NUMBER_CLASS})
        span.string = format_section_address(address, self.delimiter)
        return span

    def rewrite(self, soup: Any, page: PageRecord, index: int) -> None:
        address = self.section_addresses.get(page.path)
        if address is None:
            return

        if len(address) > 1 and address[-1] == 1:
            for title in soup.select(f".{CATEGORY_TITLE_CLASS}"):
                title.insert(0, self._label(soup, address[:-1]))

        top_heading = soup.find("h1")
        if top_heading is not None:
            top_heading.insert(0, self._label(soup, address))

        headings = soup.find_all(SUB_HEADING_TAGS)
        levels = [int(heading.name[1]) for heading in headings]
        for heading, heading_address in zip(headings, number_headings(address, levels)):
            heading.insert(0, self._label(soup, heading_address))


@dataclass(frozen=True)
class RewriteContext:
    category_index: Mapping[str, CategoryDescriptor]
    section_addresses: Mapping[str, SectionAddress]


def build_rewrite_context(tree: Sequence[NavigationNode]) -> RewriteContext:
    return RewriteContext(
        category_index=build_category_index(tree),
        section_addresses=build_section_addresses(tree),
    )


def build_rewriters(
    context: RewriteContext,
    *,
    exclude: Sequence[str] = (),
    autonumber: bool = True,
    delimiter: str = ".",
) -> List[PageRewriter]:
    rewriters: List[PageRewriter] = [
        ExcludingRewriter(exclude),
        CategoryTitleRewriter(context.category_index),
        LinkRewriter(),
    ]
    if autonumber:
        rewriters.append(SectionNumberingRewriter(context.section_addresses, delimiter))
    return rewriters


def rewrite_page(page: PageRecord, rewriters: Sequence[PageRewriter], index: int = 0) -> None:
    soup = parse_html(page.markup)
    for rewriter in rewriters:
        LOG.debug("Rewriting contents of '%s': %s", page.path, rewriter.description)
        rewriter.rewrite(soup, page, index)
    root = soup.select_one(PAGE_SELECTOR)
    page.markup = str(root) if root is not None else str(soup)


def rewrite_contents(pages: Sequence[PageRecord], rewriters: Sequence[PageRewriter]) -> None:
    total = len(pages)
    for index, page in enumerate(pages):
        rewrite_page(page, rewriters, index)
        _log_verbose_progress("Rewriting pages", index + 1, total, page.path)
    LOG.info("Pre-processing for PDF generation is completed")
