"""
Default page tree.

A small server-side rendition of the client's pages: a menu bar plus one
page per route. Data is loaded by the client bundle after hydration, so
pages that list or show users render their empty shell here. Protected
pages redirect to ``/signin`` because no credentials exist server-side.
"""

from __future__ import annotations

from html import escape
from typing import Callable, Dict, List, Optional, Tuple

from routina.routing import compile_pattern

from .rendering import Markup, Redirect, RenderRequest, RenderResult

Page = Callable[[RenderRequest, Dict[str, str]], str]


def _menu(req: RenderRequest) -> str:
    palette = req.theme["palette"]
    classes = req.registry.create_style_sheet("Menu", {
        "bar": {
            "backgroundColor": palette["primary"]["main"],
            "color": palette["primary"]["contrastText"],
            "display": "flex",
            "alignItems": "center",
            "padding": "0 16px",
            "minHeight": 64,
        },
        "title": {"flexGrow": 1, "fontSize": 20},
        "link": {"color": palette["primary"]["contrastText"], "marginLeft": 16},
        "active": {"color": palette["secondary"]["main"], "marginLeft": 16},
    })

    links = [("/", "Home"), ("/users", "Users"), ("/signup", "Sign up"), ("/signin", "Sign In")]
    items = []
    for href, label in links:
        cls = classes["active"] if req.path == href else classes["link"]
        items.append(f'<a class="{cls}" href="{href}">{escape(label)}</a>')

    return (
        f'<header class="{classes["bar"]}">'
        f'<span class="{classes["title"]}">MERN Skeleton</span>'
        + "".join(items)
        + "</header>"
    )


def _card(req: RenderRequest, title: str, body: str, protected: bool = False) -> str:
    palette = req.theme["palette"]
    classes = req.registry.create_style_sheet("Card", {
        "card": {"maxWidth": 600, "margin": "40px auto", "padding": 24},
        "title": {
            "color": palette["protectedTitle"] if protected else palette["openTitle"],
            "fontSize": 24,
        },
    })
    return (
        f'<section class="{classes["card"]}">'
        f'<h2 class="{classes["title"]}">{escape(title)}</h2>'
        f"{body}</section>"
    )


def home(req: RenderRequest, params: Dict[str, str]) -> str:
    return _card(req, "Home Page", "<p>Welcome to the MERN Skeleton home page.</p>")


def users(req: RenderRequest, params: Dict[str, str]) -> str:
    return _card(req, "All Users", '<ul data-resource="/api/users"></ul>')


def signup(req: RenderRequest, params: Dict[str, str]) -> str:
    return _card(req, "Sign Up", _form("/api/users", ["name", "email", "password"], "Submit"))


def signin(req: RenderRequest, params: Dict[str, str]) -> str:
    return _card(req, "Sign In", _form("/auth/signin", ["email", "password"], "Submit"))


def profile(req: RenderRequest, params: Dict[str, str]) -> str:
    resource = escape(f"/api/users/{params['userId']}")
    return _card(req, "Profile", f'<div data-resource="{resource}"></div>', protected=True)


def _form(action: str, fields: List[str], submit: str) -> str:
    inputs = "".join(
        f'<input name="{name}" type="{"password" if name == "password" else "text"}" '
        f'placeholder="{name.capitalize()}">'
        for name in fields
    )
    return f'<form method="post" action="{action}">{inputs}<button type="submit">{submit}</button></form>'


def _private(page: Page) -> Page:
    """Send unauthenticated visitors to the sign-in page."""

    def guarded(req: RenderRequest, params: Dict[str, str]) -> str:
        if req.identity is None:
            req.context.redirect("/signin")
            return ""
        return page(req, params)

    guarded.__name__ = page.__name__
    return guarded


def edit_profile(req: RenderRequest, params: Dict[str, str]) -> str:
    form = _form(escape(f"/api/users/{params['userId']}"), ["name", "email", "password"], "Submit")
    return _card(req, "Edit Profile", form, protected=True)


class PageRouter:
    """
    Ordered ``pattern → page`` table with first-match-wins switching.

    Unmatched paths render the menu alone.
    """

    def __init__(self, pages: List[Tuple[str, Page]]):
        self._pages = [(compile_pattern(pattern)[0], page) for pattern, page in pages]

    def match(self, path: str) -> Optional[Tuple[Page, Dict[str, str]]]:
        for regex, page in self._pages:
            m = regex.match(path)
            if m is not None:
                return page, m.groupdict()
        return None

    def __call__(self, req: RenderRequest) -> RenderResult:
        parts = [_menu(req)]
        matched = self.match(req.path)
        if matched is not None:
            page, params = matched
            parts.append(page(req, params))

        if req.context.url:
            return Redirect(req.context.url)
        return Markup("".join(parts))


main_router = PageRouter([
    ("/", home),
    ("/users", users),
    ("/signup", signup),
    ("/signin", signin),
    ("/user/edit/:userId", _private(edit_profile)),
    ("/user/:userId", profile),
])
