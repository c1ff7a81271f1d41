"""Minimal listing template engine and built-in pages.

Supports the two constructs listing templates need:

* ``{{name}}`` substitutes a value, HTML-escaped.
* ``{{#items}} ... {{/items}}`` repeats its body once per element of a list,
  looking names up in the element first and in the enclosing scope after.
"""

from __future__ import annotations

import html
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

_TAG_PATTERN = re.compile(r"\{\{\s*([#/]?)\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class TemplateError(ValueError):
    """Raised when a template cannot be compiled."""


@dataclass(slots=True)
class _Variable:
    name: str


@dataclass(slots=True)
class _Section:
    name: str
    children: list[_Node] = field(default_factory=list)


_Node = str | _Variable | _Section


class Template:
    """A compiled template; immutable and safe to share between threads."""

    def __init__(self, source: str) -> None:
        self.source = source
        self._nodes = _compile(source)

    def render(self, context: Mapping[str, object]) -> str:
        parts: list[str] = []
        _render_nodes(self._nodes, [context], parts)
        return "".join(parts)


def _compile(source: str) -> list[_Node]:
    root: list[_Node] = []
    stack: list[_Section] = []
    current = root
    position = 0

    for match in _TAG_PATTERN.finditer(source):
        if match.start() > position:
            current.append(source[position : match.start()])
        position = match.end()

        marker, name = match.group(1), match.group(2)
        if marker == "#":
            section = _Section(name)
            current.append(section)
            stack.append(section)
            current = section.children
        elif marker == "/":
            if not stack or stack[-1].name != name:
                raise TemplateError(f"Unexpected closing tag {{{{/{name}}}}}")
            stack.pop()
            current = stack[-1].children if stack else root
        else:
            current.append(_Variable(name))

    if stack:
        raise TemplateError(f"Unclosed section {{{{#{stack[-1].name}}}}}")
    if position < len(source):
        current.append(source[position:])
    return root


def _lookup(scopes: list[Mapping[str, object]], name: str) -> object:
    for scope in reversed(scopes):
        if name in scope:
            return scope[name]
    return None


def _render_nodes(
    nodes: list[_Node],
    scopes: list[Mapping[str, object]],
    out: list[str],
) -> None:
    for node in nodes:
        if isinstance(node, str):
            out.append(node)
        elif isinstance(node, _Variable):
            value = _lookup(scopes, node.name)
            if value is not None:
                out.append(html.escape(str(value)))
        else:
            value = _lookup(scopes, node.name)
            if isinstance(value, Mapping):
                _render_nodes(node.children, [*scopes, value], out)
            elif isinstance(value, Sequence) and not isinstance(value, str):
                for item in value:
                    item_scope = item if isinstance(item, Mapping) else {}
                    _render_nodes(node.children, [*scopes, item_scope], out)
            elif value:
                _render_nodes(node.children, scopes, out)


DEFAULT_TEMPLATE: str = """<!DOCTYPE html>
<html>
    <head>
        <meta charset="utf-8">
        <title>{{title}}</title>
        <style type="text/css">
* {
    padding: 0;
    margin: 0;
}

body {
    color: #333;
    font: 14px Sans-Serif;
    padding: 50px;
    background: #eee;
}

h1 {
    text-align: center;
    padding: 20px 0 12px 0;
    margin: 0;
}

#container {
    box-shadow: 0 5px 10px -5px rgba(0,0,0,0.5);
    position: relative;
    background: white;
}

table {
    background-color: #F3F3F3;
    border-collapse: collapse;
    width: 100%;
    margin: 15px 0;
}

th {
    background-color: #215fa4;
    color: #FFF;
    padding: 5px 10px;
}

td, th {
    text-align: left;
}

a {
    text-decoration: none;
}

td a {
    color: #001c3b;
    display: block;
    padding: 5px 10px;
}

tr:nth-of-type(odd) {
    background-color: #E6E6E6;
}

tr:hover td {
    background-color: #CACACA;
}

tr:hover td a {
    color: #000;
}
        </style>
    </head>
    <body>
        <div id="container">
            <h1>{{title}}</h1>
            <table>
                <thead>
                    <tr>
                        <th>Name</th>
                        <th>Size</th>
                    </tr>
                </thead>
                <tbody>
                {{#content}}
                    <tr>
                        <td>
                            <a href="/{{url}}">{{name}}</a>
                        </td>
                        <td>
                            {{size}}
                        </td>
                    </tr>
                {{/content}}
                </tbody>
            </table>
        </div>
    </body>
</html>
"""

MESSAGE_TEMPLATE = Template(
    """<!DOCTYPE html>
<html>
    <head>
        <meta charset="utf-8">
        <title>{{title}}</title>
    </head>
    <body>
        <h1>{{title}}</h1>
        <p>{{message}}</p>
    </body>
</html>
"""
)


def render_message(title: str, message: str) -> bytes:
    """Render a fixed informational page."""
    return MESSAGE_TEMPLATE.render({"title": title, "message": message}).encode("utf-8")
