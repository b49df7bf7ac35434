"""Booklet options, defaults and config-file layering."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .core import OptionsError

DEFAULT_CSS = Path(__file__).resolve().parent / "assets" / "default.css"

AVAILABLE_DELIMITERS = {
    "dot": ".",
    "hyphen": "-",
}

PAPER_FORMATS = {"letter", "legal", "tabloid", "ledger", "a0", "a1", "a2", "a3", "a4", "a5", "a6"}

DEFAULT_BROWSER_ARGS = ("--no-sandbox", "--disable-setuid-sandbox", "--font-render-hinting=medium")


@dataclass
class Margin:
    top: str = "0.7in"
    right: str = "0.4in"
    bottom: str = "0.7in"
    left: str = "0.4in"

    def as_dict(self) -> Dict[str, str]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}


@dataclass
class CoverOptions:
    title: str = "Docs Booklet"
    subtitle: Optional[str] = None
    background_image: Optional[str] = None
    version: bool = False
    margin: Optional[Margin] = None


@dataclass
class TocOptions:
    title: str = "Table of Contents"


@dataclass
class HeaderOptions:
    text: str = ""
    version: bool = False
    style: str = ""


@dataclass
class FooterOptions:
    text: str = ""
    # True for the bare page number, or a format string using {page_number} and {total_pages}
    page_number: Union[bool, str] = True
    style: str = ""


@dataclass
class HtmlFragment:
    html: str


@dataclass
class Selectors:
    main_content: str = "article"
    pagination: str = ".pagination-nav__item--next > a"
    sidebar: str = ".theme-doc-sidebar-menu"
    exclude: List[str] = field(default_factory=lambda: ["nav.navbar,footer.footer,.theme-doc-toc-mobile"])


@dataclass
class BookletOptions:
    entry_point: str
    output: Path
    base_directory: Optional[Path] = None
    base_url: Optional[str] = None
    cover: CoverOptions = field(default_factory=CoverOptions)
    toc: Optional[TocOptions] = field(default_factory=TocOptions)
    format: str = "a4"
    margin: Margin = field(default_factory=Margin)
    css: Optional[Path] = DEFAULT_CSS
    header: Union[HeaderOptions, HtmlFragment, None] = None
    footer: Union[FooterOptions, HtmlFragment, None] = field(default_factory=FooterOptions)
    autonumber: bool = True
    delimiter: str = "dot"
    selectors: Selectors = field(default_factory=Selectors)
    browser_args: List[str] = field(default_factory=lambda: list(DEFAULT_BROWSER_ARGS))
    version: Optional[str] = None
    debug: bool = False

    @property
    def delimiter_text(self) -> str:
        return AVAILABLE_DELIMITERS[self.delimiter]


def _snake_case(key: str) -> str:
    return re.sub(r"(?<=[a-z0-9])([A-Z])", r"_\1", key).lower()


def normalize_keys(data: Any) -> Any:
    if isinstance(data, dict):
        return {_snake_case(str(k)): normalize_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [normalize_keys(v) for v in data]
    return data


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_options_file(path: Path) -> Dict[str, Any]:
    try:
        data_raw = json.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:
        raise OptionsError(f"Unable to read options file {path}: {exc}") from exc
    if not isinstance(data_raw, dict):
        raise OptionsError(f"Options file {path} must contain a JSON object")
    return normalize_keys(data_raw)


def _build_margin(value: Any, where: str) -> Optional[Margin]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise OptionsError(f"Invalid {where}: expected an object with top/right/bottom/left")
    defaults = Margin()
    return Margin(
        top=str(value.get("top", defaults.top)),
        right=str(value.get("right", defaults.right)),
        bottom=str(value.get("bottom", defaults.bottom)),
        left=str(value.get("left", defaults.left)),
    )


def _build_header(value: Any, cover: CoverOptions) -> Union[HeaderOptions, HtmlFragment, None]:
    if value is False:
        return None
    if value is None or value is True:
        title = re.sub(r"<br\s*/?>", " ", cover.title)
        text = f"{title} - {cover.subtitle}" if cover.subtitle else title
        return HeaderOptions(text=text, version=True)
    if isinstance(value, dict) and isinstance(value.get("html"), str):
        return HtmlFragment(html=value["html"])
    if isinstance(value, dict):
        return HeaderOptions(
            text=str(value.get("text") or ""),
            version=bool(value.get("version", False)),
            style=str(value.get("style") or ""),
        )
    raise OptionsError("Invalid header option: expected false, an object or {\"html\": ...}")


def _build_footer(value: Any) -> Union[FooterOptions, HtmlFragment, None]:
    if value is False or value is None:
        return None
    if value is True:
        return FooterOptions()
    if isinstance(value, dict) and isinstance(value.get("html"), str):
        return HtmlFragment(html=value["html"])
    if isinstance(value, dict):
        page_number = value.get("page_number", True)
        if not isinstance(page_number, (bool, str)):
            raise OptionsError("Invalid footer.pageNumber: expected a boolean or a format string")
        return FooterOptions(
            text=str(value.get("text") or ""),
            page_number=page_number,
            style=str(value.get("style") or ""),
        )
    raise OptionsError("Invalid footer option: expected false, an object or {\"html\": ...}")


def build_options(data: Dict[str, Any]) -> BookletOptions:
    """Build ``BookletOptions`` from a snake_case dict layered over the defaults."""
    entry_point = data.get("entry_point")
    if not entry_point:
        raise OptionsError("An entry point is required")
    output = data.get("output") or "docs2booklet.pdf"

    cover_raw = data.get("cover")
    if cover_raw is None:
        cover_raw = {}
    elif not isinstance(cover_raw, dict):
        raise OptionsError("Invalid cover option: expected an object")
    cover = CoverOptions(
        title=str(cover_raw.get("title") or CoverOptions.title),
        subtitle=cover_raw.get("subtitle") or None,
        background_image=cover_raw.get("background_image") or None,
        version=bool(cover_raw.get("version", False)),
        margin=_build_margin(cover_raw.get("margin"), "cover.margin"),
    )

    toc_raw = data.get("toc", {})
    if toc_raw is False:
        toc = None
    elif isinstance(toc_raw, dict):
        toc = TocOptions(title=str(toc_raw.get("title") or TocOptions.title))
    else:
        toc = TocOptions()

    paper_format = str(data.get("format") or "a4").lower()
    if paper_format not in PAPER_FORMATS:
        raise OptionsError(f"Unsupported paper format: {paper_format}")

    delimiter = str(data.get("delimiter") or "dot")
    if delimiter not in AVAILABLE_DELIMITERS:
        raise OptionsError(
            f"Unsupported delimiter: {delimiter} (expected one of {', '.join(sorted(AVAILABLE_DELIMITERS))})"
        )

    selectors_raw = data.get("selectors")
    if selectors_raw is None:
        selectors_raw = {}
    elif not isinstance(selectors_raw, dict):
        raise OptionsError("Invalid selectors option: expected an object")
    defaults = Selectors()
    exclude = selectors_raw.get("exclude", defaults.exclude)
    if isinstance(exclude, str):
        exclude = [exclude]
    selectors = Selectors(
        main_content=str(selectors_raw.get("main_content") or defaults.main_content),
        pagination=str(selectors_raw.get("pagination") or defaults.pagination),
        sidebar=str(selectors_raw.get("sidebar") or defaults.sidebar),
        exclude=[str(item) for item in exclude or []],
    )

    css_raw = data.get("css", DEFAULT_CSS)
    css = Path(css_raw).expanduser() if css_raw else None

    base_directory = data.get("base_directory")
    browser_args = data.get("browser_args")
    if browser_args is not None and not isinstance(browser_args, list):
        raise OptionsError("Invalid browser_args option: expected a list of Chromium arguments")

    return BookletOptions(
        entry_point=str(entry_point),
        output=Path(output).expanduser(),
        base_directory=Path(base_directory).expanduser() if base_directory else None,
        base_url=data.get("base_url") or None,
        cover=cover,
        toc=toc,
        format=paper_format,
        margin=_build_margin(data.get("margin"), "margin") or Margin(),
        css=css,
        header=_build_header(data.get("header"), cover),
        footer=_build_footer(data.get("footer", True)),
        autonumber=bool(data.get("autonumber", True)),
        delimiter=delimiter,
        selectors=selectors,
        browser_args=list(browser_args) if browser_args is not None else list(DEFAULT_BROWSER_ARGS),
        version=str(data["version"]) if data.get("version") is not None else None,
        debug=bool(data.get("debug", False)),
    )
