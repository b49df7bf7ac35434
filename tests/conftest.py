from pathlib import Path

import pytest

# (label, link, children); a category's link is its first page, as the site renders it.
SITE_SIDEBAR = [
    ("Introduction", "/docs/intro", []),
    (
        "Guides",
        "/docs/guides/getting-started",
        [
            ("Getting Started", "/docs/guides/getting-started", []),
            ("Configurations", "/docs/guides/configurations", []),
            (
                "Advanced Guide",
                "/docs/guides/advanced/integration",
                [("Integration", "/docs/guides/advanced/integration", [])],
            ),
            ("Troubleshooting", "/docs/guides/troubleshooting", []),
        ],
    ),
    (
        "API",
        "/docs/api/first-feature",
        [
            ("First Feature", "/docs/api/first-feature", []),
            ("Second Feature", "/docs/api/second-feature", []),
        ],
    ),
]

SITE_PAGES = [
    ("/docs/intro", "Introduction"),
    ("/docs/guides/getting-started", "Getting Started"),
    ("/docs/guides/configurations", "Configurations"),
    ("/docs/guides/advanced/integration", "Integration"),
    ("/docs/guides/troubleshooting", "Troubleshooting"),
    ("/docs/api/first-feature", "First Feature"),
    ("/docs/api/second-feature", "Second Feature"),
]


def _contains(item, path: str) -> bool:
    _, link, children = item
    if not children:
        return link == path
    return any(_contains(child, path) for child in children)


def _render_sidebar_items(items, current_path: str) -> str:
    parts = []
    for item in items:
        label, link, children = item
        if not children:
            parts.append(f'<li class="menu__list-item"><a class="menu__link" href="{link}">{label}</a></li>')
            continue
        nested = ""
        # only categories on the way to the current page are expanded
        if _contains(item, current_path):
            nested = f'<ul class="menu__list">{_render_sidebar_items(children, current_path)}</ul>'
        parts.append(
            '<li class="menu__list-item">'
            '<div class="menu__list-item-collapsible">'
            f'<a class="menu__link menu__link--sublist" href="{link}">{label}</a>'
            "</div>"
            f"{nested}"
            "</li>"
        )
    return "".join(parts)


def render_site_page(path: str, title: str, next_path, body: str = "") -> str:
    pagination = ""
    if next_path:
        pagination = (
            '<nav class="pagination-nav">'
            '<div class="pagination-nav__item pagination-nav__item--next">'
            f'<a class="pagination-nav__link" href="{next_path}">Next</a>'
            "</div></nav>"
        )
    content = body or f"<p>This is a sample {title.lower()} page.</p>"
    return (
        "<html><head><title>Sample Docs</title></head><body>"
        '<nav class="navbar"><a href="/">Home</a></nav>'
        '<aside><ul class="theme-doc-sidebar-menu menu__list">'
        f"{_render_sidebar_items(SITE_SIDEBAR, path)}"
        "</ul></aside>"
        "<main>"
        '<article><div class="theme-doc-markdown markdown">'
        f"<header><h1>{title}</h1></header>"
        f"{content}"
        "</div></article>"
        f"{pagination}"
        "</main>"
        '<footer class="footer">Copyright</footer>'
        "</body></html>"
    )


def write_site(base_dir: Path, pages=None, bodies=None) -> Path:
    pages = pages or SITE_PAGES
    bodies = bodies or {}
    for index, (path, title) in enumerate(pages):
        next_path = pages[index + 1][0] if index + 1 < len(pages) else None
        target = base_dir / path.strip("/") / "index.html"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(render_site_page(path, title, next_path, bodies.get(path, "")), encoding="utf-8")
    return base_dir


@pytest.fixture
def built_site(tmp_path: Path) -> Path:
    return write_site(tmp_path / "build")


@pytest.fixture
def site_writer():
    return write_site
