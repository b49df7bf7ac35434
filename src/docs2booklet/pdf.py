"""PDF rendering: print templates and the headless-browser document renderer."""

from __future__ import annotations

import functools
import http.server
import io
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Protocol, Sequence, Union

from .core import LOG, PageRecord, RendererError, _log_verbose_progress
from .options import BookletOptions, FooterOptions, HeaderOptions, HtmlFragment, Margin

EMPTY_HEADER = "<!-- EMPTY HEADER -->"
EMPTY_FOOTER = "<!-- EMPTY FOOTER -->"
PAGE_NUMBER_PLACEHOLDER = '<span class="pageNumber"></span>'
TOTAL_PAGES_PLACEHOLDER = '<span class="totalPages"></span>'


class DocumentRenderer(Protocol):
    def render(self, pages: Sequence[PageRecord], options: BookletOptions) -> bytes:
        ...


def generate_header_template(
    header: Union[HeaderOptions, HtmlFragment, None],
    margin: Optional[Margin],
    version: Optional[str] = None,
) -> str:
    if header is None:
        return EMPTY_HEADER
    if isinstance(header, HtmlFragment):
        return header.html
    right_margin = margin.right if margin is not None else "0px"
    version_html = f'<div class="version">Ver. {version}</div>' if header.version and version else ""
    return f"""
    <style>
      .header {{
        font-family: system-ui;
        font-size: 9px;
        color: #dcdcdc;
        width: calc(100% - {right_margin});
        position: relative;
        margin: 0 auto;
        {header.style}
      }}
      .document-title {{
        position: absolute;
        left: 0;
        text-align: left;
      }}
      .version {{
        position: absolute;
        right: 0;
        text-align: right;
      }}
    </style>
    <div class="header">
      <div class="document-title">{header.text}</div>
      {version_html}
    </div>
    """


def _page_number_html(page_number: Union[bool, str]) -> str:
    if page_number is True:
        return PAGE_NUMBER_PLACEHOLDER
    if isinstance(page_number, str) and page_number:
        return page_number.format(page_number=PAGE_NUMBER_PLACEHOLDER, total_pages=TOTAL_PAGES_PLACEHOLDER)
    return ""


def generate_footer_template(footer: Union[FooterOptions, HtmlFragment, None], margin: Optional[Margin]) -> str:
    if footer is None:
        return EMPTY_FOOTER
    if isinstance(footer, HtmlFragment):
        return footer.html
    right_margin = margin.right if margin is not None else "0px"
    page_number_text = _page_number_html(footer.page_number)
    page_number_html = f'<div class="page-number">{page_number_text}</div>' if page_number_text else ""
    return f"""
    <style>
      .footer {{
        border-top: 1px solid #dcdcdc;
        font-family: system-ui;
        font-size: 9px;
        color: #dcdcdc;
        width: calc(100% - {right_margin});
        position: relative;
        margin: 0 auto 0.1in auto;
        padding-top: 4px;
        {footer.style}
      }}
      .copyright {{
        position: absolute;
        left: 0;
        text-align: left;
      }}
      .page-number {{
        position: absolute;
        right: 0;
        text-align: right;
      }}
    </style>
    <div class="footer">
      <div class="copyright">{footer.text}</div>
      {page_number_html}
    </div>
    """


class _QuietHandler(http.server.SimpleHTTPRequestHandler):
    def log_message(self, format: str, *args: Any) -> None:
        LOG.debug("preview server: " + format, *args)


@contextmanager
def preview_server(directory: Path) -> Iterator[str]:
    """Serve ``directory`` on an ephemeral localhost port for the lifetime of the block."""
    handler = functools.partial(_QuietHandler, directory=str(directory))
    server = http.server.ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}"
    finally:
        server.shutdown()
        server.server_close()


def merge_pdf_documents(cover_data: bytes, contents_data: bytes) -> bytes:
    try:
        from pypdf import PdfReader, PdfWriter  # type: ignore
    except Exception as exc:
        raise RuntimeError(f"pypdf not available: {exc}") from exc

    writer = PdfWriter()
    cover_reader = PdfReader(io.BytesIO(cover_data))
    if cover_reader.pages:
        writer.add_page(cover_reader.pages[0])
    writer.append(PdfReader(io.BytesIO(contents_data)))
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class PlaywrightRenderer:
    """Prints the pages with headless Chromium and merges cover and contents with pypdf.

    The cover (first page record) is printed on its own without header and footer; all
    remaining records are loaded together into the entry page so the site's stylesheets
    and assets resolve.
    """

    def __init__(self, base_directory: Optional[Path] = None, base_url: Optional[str] = None) -> None:
        if base_directory is None and base_url is None:
            raise ValueError("PlaywrightRenderer needs a base directory or a base URL")
        self.base_directory = base_directory
        self.base_url = base_url

    @contextmanager
    def _site_url(self) -> Iterator[str]:
        if self.base_url is not None:
            yield self.base_url.rstrip("/")
            return
        with preview_server(Path(self.base_directory)) as url:  # type: ignore[arg-type]
            yield url

    def render(self, pages: Sequence[PageRecord], options: BookletOptions) -> bytes:
        if not pages:
            raise RendererError("No pages to render")
        try:
            from playwright.sync_api import sync_playwright  # type: ignore
        except Exception as exc:
            raise RuntimeError(f"playwright not available: {exc}") from exc

        cover_html = pages[0].markup
        contents_html = "".join(page.markup for page in pages[1:])
        steps = 5

        try:
            custom_css = options.css.read_text(encoding="utf-8") if options.css else None
            with self._site_url() as site_url, sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=True, args=list(options.browser_args))
                try:
                    _log_verbose_progress("PDF generation", 1, steps, "Preparing page")
                    page = browser.new_page()
                    page.goto(site_url + "/" + options.entry_point.lstrip("/"), wait_until="networkidle", timeout=0)
                    if custom_css:
                        page.add_style_tag(content=custom_css)

                    _log_verbose_progress("PDF generation", 2, steps, "Loading cover page contents")
                    page.evaluate("html => { document.body.innerHTML = html; }", cover_html)
                    page.evaluate("() => document.fonts.ready.then(() => true)")
                    page.wait_for_load_state("networkidle")

                    _log_verbose_progress("PDF generation", 3, steps, "Generating cover PDF")
                    cover_data = page.pdf(
                        format=options.format,
                        margin=(options.cover.margin or options.margin).as_dict(),
                        print_background=True,
                        display_header_footer=False,
                    )

                    _log_verbose_progress("PDF generation", 4, steps, "Loading all contents")
                    page.evaluate("html => { document.body.innerHTML = html; }", contents_html)
                    page.evaluate("() => document.fonts.ready.then(() => true)")
                    page.wait_for_load_state("networkidle")
                    contents_data = page.pdf(
                        format=options.format,
                        margin=options.margin.as_dict(),
                        print_background=True,
                        display_header_footer=True,
                        header_template=generate_header_template(options.header, options.margin, options.version),
                        footer_template=generate_footer_template(options.footer, options.margin),
                    )
                finally:
                    browser.close()

            _log_verbose_progress("PDF generation", 5, steps, "Merging cover and contents")
            return merge_pdf_documents(cover_data, contents_data)
        except RendererError:
            raise
        except Exception as exc:
            raise RendererError(f"PDF rendering failed: {exc}") from exc
