import io
import sys
import types
from contextlib import contextmanager

import pytest

import docs2booklet.core as core
import docs2booklet.pdf as pdf
from docs2booklet.options import FooterOptions, HeaderOptions, HtmlFragment, Margin, build_options

SITE_URL = "http://docs.example.com"


def _blank_pdf(pages: int) -> bytes:
    from pypdf import PdfWriter

    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def test_disabled_header_and_footer_use_empty_templates():
    assert pdf.generate_header_template(None, Margin()) == pdf.EMPTY_HEADER
    assert pdf.generate_footer_template(None, Margin()) == pdf.EMPTY_FOOTER


def test_html_fragments_are_used_verbatim():
    assert pdf.generate_header_template(HtmlFragment("<div>head</div>"), Margin()) == "<div>head</div>"
    assert pdf.generate_footer_template(HtmlFragment("<div>foot</div>"), Margin()) == "<div>foot</div>"


def test_header_template_shows_version_only_when_enabled():
    header = HeaderOptions(text="Sample Manual", version=True, style="color: red;")

    with_version = pdf.generate_header_template(header, Margin(right="0.5in"), "1.2.0")
    without_label = pdf.generate_header_template(HeaderOptions(text="Sample Manual"), Margin(), "1.2.0")
    without_value = pdf.generate_header_template(header, Margin(), None)

    assert '<div class="document-title">Sample Manual</div>' in with_version
    assert '<div class="version">Ver. 1.2.0</div>' in with_version
    assert "calc(100% - 0.5in)" in with_version
    assert "color: red;" in with_version
    assert "Ver." not in without_label
    assert "Ver." not in without_value


def test_footer_template_page_number_variants():
    bare = pdf.generate_footer_template(FooterOptions(text="(c) Sample"), Margin())
    formatted = pdf.generate_footer_template(
        FooterOptions(page_number="Page {page_number} of {total_pages}"), Margin()
    )
    hidden = pdf.generate_footer_template(FooterOptions(page_number=False), Margin())

    assert '<div class="copyright">(c) Sample</div>' in bare
    assert f'<div class="page-number">{pdf.PAGE_NUMBER_PLACEHOLDER}</div>' in bare
    assert f"Page {pdf.PAGE_NUMBER_PLACEHOLDER} of {pdf.TOTAL_PAGES_PLACEHOLDER}" in formatted
    assert 'class="page-number"' not in hidden


def test_merge_pdf_documents_keeps_only_first_cover_page():
    from pypdf import PdfReader

    merged = pdf.merge_pdf_documents(_blank_pdf(2), _blank_pdf(3))

    assert len(PdfReader(io.BytesIO(merged)).pages) == 4


def test_merge_pdf_documents_with_single_cover_page():
    from pypdf import PdfReader

    merged = pdf.merge_pdf_documents(_blank_pdf(1), _blank_pdf(2))

    assert len(PdfReader(io.BytesIO(merged)).pages) == 3


def test_playwright_renderer_requires_a_site_source():
    with pytest.raises(ValueError):
        pdf.PlaywrightRenderer()


def test_playwright_renderer_rejects_empty_page_list(tmp_path):
    renderer = pdf.PlaywrightRenderer(base_directory=tmp_path)
    options = build_options({"entry_point": "/docs/intro", "base_directory": str(tmp_path)})

    with pytest.raises(core.RendererError):
        renderer.render([], options)


def test_preview_server_serves_build_directory(tmp_path):
    import requests

    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "index.html").write_text("<p>served</p>", encoding="utf-8")

    with pdf.preview_server(tmp_path) as url:
        response = requests.get(url + "/docs/index.html", timeout=5)

    assert response.status_code == 200
    assert response.text == "<p>served</p>"


class _FakePage:
    def __init__(self, pdf_data: bytes):
        self.pdf_data = pdf_data
        self.visited = []
        self.styles = []

    def goto(self, url, **kwargs):
        self.visited.append(url)

    def add_style_tag(self, content):
        self.styles.append(content)

    def evaluate(self, script, *args):
        return True

    def wait_for_load_state(self, state):
        return None

    def pdf(self, **kwargs):
        return self.pdf_data


class _FakeBrowser:
    def __init__(self, page: _FakePage):
        self.page = page
        self.launch_args = None
        self.closed = False

    def new_page(self):
        return self.page

    def close(self):
        self.closed = True


def _install_fake_playwright(monkeypatch, pdf_data: bytes) -> _FakeBrowser:
    browser = _FakeBrowser(_FakePage(pdf_data))

    def _launch(headless, args):
        browser.launch_args = args
        return browser

    @contextmanager
    def _sync_playwright():
        yield types.SimpleNamespace(chromium=types.SimpleNamespace(launch=_launch))

    sync_api = types.ModuleType("playwright.sync_api")
    sync_api.sync_playwright = _sync_playwright
    monkeypatch.setitem(sys.modules, "playwright", types.ModuleType("playwright"))
    monkeypatch.setitem(sys.modules, "playwright.sync_api", sync_api)
    return browser


def _render_pages():
    return [
        core.PageRecord(path=core.COVER_PAGE_ID, markup='<div class="booklet-page">Cover</div>'),
        core.PageRecord(path="/docs/intro", markup='<div class="booklet-page">Intro</div>'),
    ]


def test_playwright_renderer_prints_and_merges_cover_and_contents(monkeypatch):
    from pypdf import PdfReader

    browser = _install_fake_playwright(monkeypatch, _blank_pdf(2))
    options = build_options({"entry_point": "/docs/intro", "base_url": SITE_URL})

    document = pdf.PlaywrightRenderer(base_url=SITE_URL).render(_render_pages(), options)

    assert len(PdfReader(io.BytesIO(document)).pages) == 3
    assert browser.page.visited == [SITE_URL + "/docs/intro"]
    assert browser.launch_args == options.browser_args
    assert len(browser.page.styles) == 1
    assert browser.closed


def test_playwright_renderer_reports_invalid_pdf_output_as_renderer_error(monkeypatch):
    browser = _install_fake_playwright(monkeypatch, b"not a pdf")
    options = build_options({"entry_point": "/docs/intro", "base_url": SITE_URL})

    with pytest.raises(core.RendererError) as excinfo:
        pdf.PlaywrightRenderer(base_url=SITE_URL).render(_render_pages(), options)

    assert excinfo.value.__cause__ is not None
    assert browser.closed


def test_playwright_renderer_reports_missing_stylesheet_as_renderer_error(monkeypatch, tmp_path):
    _install_fake_playwright(monkeypatch, _blank_pdf(1))
    options = build_options(
        {"entry_point": "/docs/intro", "base_url": SITE_URL, "css": str(tmp_path / "missing.css")}
    )

    with pytest.raises(core.RendererError) as excinfo:
        pdf.PlaywrightRenderer(base_url=SITE_URL).render(_render_pages(), options)

    assert isinstance(excinfo.value.__cause__, FileNotFoundError)
