"""End-to-end booklet generation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .contents import collect_contents, generate_cover_page, generate_toc_page
from .core import (
    LOG,
    FileSystemPageFetcher,
    HttpPageFetcher,
    NavigationNode,
    PageFetcher,
    PageRecord,
    safe_write_bytes,
    safe_write_text,
    write_tree_json,
)
from .options import BookletOptions
from .pdf import DocumentRenderer, PlaywrightRenderer
from .rewriters import build_rewrite_context, build_rewriters, rewrite_contents


@dataclass
class BookletResult:
    tree: Tuple[NavigationNode, ...]
    pages: List[PageRecord]
    output: Path


def default_fetcher(options: BookletOptions) -> PageFetcher:
    if options.base_directory is not None:
        return FileSystemPageFetcher(options.base_directory)
    if options.base_url:
        return HttpPageFetcher(options.base_url)
    raise ValueError("Either a build directory or a base URL is required")


def default_renderer(options: BookletOptions) -> DocumentRenderer:
    return PlaywrightRenderer(base_directory=options.base_directory, base_url=options.base_url)


def prepare_pages(
    options: BookletOptions, fetcher: PageFetcher
) -> Tuple[Tuple[NavigationNode, ...], List[PageRecord]]:
    """Crawl, prepend cover and TOC, and rewrite every page for single-document output."""
    tree, pages = collect_contents(options.entry_point, fetcher, options.selectors)

    additional_pages = [generate_cover_page(options.cover, options.version)]
    if options.toc is not None:
        additional_pages.append(generate_toc_page(tree, options.toc, options.autonumber, options.delimiter_text))
    pages[0:0] = additional_pages

    context = build_rewrite_context(tree)
    rewriters = build_rewriters(
        context,
        exclude=options.selectors.exclude,
        autonumber=options.autonumber,
        delimiter=options.delimiter_text,
    )
    rewrite_contents(pages, rewriters)
    return tree, pages


def generate_booklet(
    options: BookletOptions,
    fetcher: Optional[PageFetcher] = None,
    renderer: Optional[DocumentRenderer] = None,
) -> BookletResult:
    fetcher = fetcher or default_fetcher(options)
    tree, pages = prepare_pages(options, fetcher)

    if options.debug:
        html_path = options.output.with_suffix(options.output.suffix + ".html")
        tree_path = options.output.with_suffix(options.output.suffix + ".tree.json")
        safe_write_text(html_path, "\n".join(page.markup for page in pages) + "\n")
        write_tree_json(tree_path, tree)
        LOG.debug("Debug artifacts written: %s, %s", html_path, tree_path)

    renderer = renderer or default_renderer(options)
    document = renderer.render(pages, options)
    safe_write_bytes(options.output, document)
    LOG.info("PDF generated successfully >> %s", options.output)
    return BookletResult(tree=tree, pages=pages, output=options.output)
