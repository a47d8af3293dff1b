"""Markdown display document for a scraped package.

Layout follows the pkg.go.dev page: metadata header, overview, README, an
index of declarations, then one section per declaration kind.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from gopkgdocs.models import Example, Function, Package, Type

_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_timestamp(value: datetime | None) -> str:
    return value.strftime(_TIMESTAMP_FORMAT) if value is not None else "unknown"


def _fence(code: str, lang: str = "go") -> str:
    return f"```{lang}\n{code}\n```\n\n"


def _strip_scheme(url: str) -> str:
    for scheme in ("https://", "http://"):
        if url.startswith(scheme):
            return url.removeprefix(scheme)
    return url


def _examples(examples: list[Example]) -> str:
    parts: list[str] = []
    for ex in examples:
        if ex.name:
            parts.append(f"###### {ex.name}\n\n")
        if ex.code:
            parts.append(_fence(ex.code))
        if ex.output:
            parts.append("**Output:**\n")
            parts.append(_fence(ex.output, lang=""))
    return "".join(parts)


def _tags(entity: Function | Type) -> str:
    parts: list[str] = []
    if entity.added_in:
        parts.append(f"_Since: {entity.added_in}_\n")
    if entity.deprecated:
        parts.append("**deprecated**\n")
    return "".join(parts)


def _metadata(pkg: Package) -> list[str]:
    lines: list[str] = []
    if pkg.import_path:
        lines.append(f"**Import Path:** `{pkg.import_path}`")
    if pkg.module:
        lines.append(f"**Module:** {pkg.module}")
    if pkg.version:
        suffix = " (Latest)" if pkg.is_latest else ""
        lines.append(f"**Version:** {pkg.version}{suffix}")
    if pkg.published:
        lines.append(f"**Published:** {pkg.published}")
    if pkg.imports > 0:
        lines.append(f"**Imports:** {pkg.imports}")
    if pkg.imported_by > 0:
        lines.append(f"**Imported By:** {pkg.imported_by:,}")
    if pkg.license and pkg.license_url:
        lines.append(f"**License:** [{pkg.license}]({pkg.license_url})")
    elif pkg.license:
        lines.append(f"**License:** {pkg.license}")
    if pkg.repository:
        lines.append(f"**Repository:** [{_strip_scheme(pkg.repository)}]({pkg.repository})")
    return lines


def _index(pkg: Package) -> str:
    out: list[str] = []
    if pkg.constants:
        out.append("#### Constants\n")
        out.extend(f"- [`{c.name}`](#pkg-constants)\n" for c in pkg.constants)
        out.append("\n")
    if pkg.variables:
        out.append("#### Variables\n")
        out.extend(f"- [`{v.name}`](#pkg-variables)\n" for v in pkg.variables)
        out.append("\n")
    if pkg.functions:
        # pkg.go.dev anchors are the case-sensitive declaration ids
        out.append("#### Functions\n")
        out.extend(f"- [`{f.name}`](#{f.name})\n" for f in pkg.functions)
        out.append("\n")
    if pkg.types:
        out.append("#### Types\n")
        out.extend(f"- [`{t.name}`](#{t.name})\n" for t in pkg.types)
        out.append("\n")
    return "".join(out)


def _function(fn: Function, heading: str) -> str:
    out = [f"{heading} {fn.name}\n\n"]
    if fn.signature:
        out.append(_fence(fn.signature))
    if fn.description:
        out.append(fn.description + "\n")
    out.append(_tags(fn))
    out.append("\n")
    out.append(_examples(fn.examples))
    return "".join(out)


def package_to_markdown(pkg: Package) -> str:
    """Render ``pkg`` as a Markdown document. Pure; any ``Package`` is accepted."""
    out: list[str] = [f"# {pkg.name} package - {pkg.import_path}\n\n"]

    out.append("## Package Documentation\n\n")
    out.extend(line + "\n\n" for line in _metadata(pkg))

    overview = pkg.synopsis or pkg.description
    if overview:
        out.append(f"## Overview\n\n{overview}\n\n")

    out.append("## README\n\n")
    # Fall back to the raw HTML if the README could not be reduced
    out.append(pkg.processed_readme or pkg.readme)
    out.append("\n\n")

    out.append("## Documentation\n\n### Index\n\n")
    out.append(_index(pkg))

    if pkg.constants:
        out.append("### Constants\n\n")
        for c in pkg.constants:
            out.append(f"#### {c.name}\n\n")
            if c.value:
                if "\n" in c.value or "const " in c.value:
                    out.append(_fence(c.value))
                else:
                    out.append(f"**Value:** `{c.value}`\n\n")
            if c.type:
                out.append(f"**Type:** `{c.type}`\n\n")
            if c.description:
                out.append(f"{c.description}\n\n")

    if pkg.variables:
        out.append("### Variables\n\n")
        for v in pkg.variables:
            out.append(f"#### {v.name}\n\n")
            if v.type:
                if "\n" in v.type or "var " in v.type:
                    out.append(_fence(v.type))
                else:
                    out.append(f"**Type:** `{v.type}`\n\n")
            if v.description:
                out.append(f"{v.description}\n\n")

    if pkg.functions:
        out.append("### Functions\n\n")
        out.extend(_function(fn, "####") for fn in pkg.functions)

    if pkg.types:
        out.append("### Types\n\n")
        for t in pkg.types:
            out.append(f"#### {t.name}\n\n")
            if t.definition:
                out.append(_fence(t.definition))
            if t.kind:
                out.append(f"**Kind:** {t.kind}\n\n")
            if t.description:
                out.append(t.description + "\n")
            out.append(_tags(t))
            out.append("\n")
            if t.methods:
                out.append("##### Methods\n\n")
                out.extend(_function(m, "######") for m in t.methods)
            out.append(_examples(t.examples))

    if pkg.examples:
        out.append("### Examples\n\n")
        out.append(_examples(pkg.examples))

    out.append(f"\n*Scraped at: {format_timestamp(pkg.scraped_at)}*\n")
    return "".join(out)
