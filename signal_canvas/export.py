"""Source export: generated markup as a React component or standalone page."""

from __future__ import annotations

import re

_CLASS_ATTR_RE = re.compile(r"\bclass=")
_FOR_ATTR_RE = re.compile(r"\bfor=")

HTML_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <script src="https://cdn.tailwindcss.com"></script>
    <style>
        body {{ margin: 0; padding: 20px; background: #030407; color: #e0faff; font-family: sans-serif; }}
    </style>
</head>
<body>
    {body}
</body>
</html>"""


def to_react_component(markup: str, name: str = "GeneratedComponent") -> str:
    """
    Wrap markup in a default-exported React function component.

    Only the attribute renames JSX requires are applied; the markup is not
    otherwise validated.
    """
    jsx = _CLASS_ATTR_RE.sub("className=", markup)
    jsx = _FOR_ATTR_RE.sub("htmlFor=", jsx)
    body = "\n".join("      " + line for line in jsx.split("\n")).strip()
    return (
        "import React from 'react';\n\n"
        f"export default function {name}() {{\n"
        "  return (\n"
        "    <>\n"
        f"      {body}\n"
        "    </>\n"
        "  );\n"
        "}"
    )


def to_html_document(markup: str, title: str = "Signal Canvas Export") -> str:
    """Embed markup in a standalone page that loads Tailwind from its CDN."""
    return HTML_DOCUMENT_TEMPLATE.format(title=title, body=markup)


__all__ = ["to_html_document", "to_react_component"]
