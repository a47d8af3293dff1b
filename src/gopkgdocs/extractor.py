"""Structural extractor for pkg.go.dev package pages.

The page is mapped onto a ``Package`` by an explicit pipeline of field
extractors. Each extractor takes the parsed document and returns a value or
``None``; the runner only assigns non-``None`` values, so a missing field
leaves the model default in place and never fails its neighbours.

Every extractor tries a specific selector first and falls back to a looser
one. Repeated declaration blocks (constants, variables, functions, types) are
walked in document order. Fields of one block are read from that block's own
subtree: nested methods, constructors and examples are excluded, and
description paragraphs never run past the next declaration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, NamedTuple

import structlog
from bs4 import Tag

from gopkgdocs.config import DEFAULT_BASE_URL
from gopkgdocs.errors import ErrorCode, GoPkgDocsError
from gopkgdocs.models import Constant, Example, Function, Package, Type, Variable
from gopkgdocs.reducer import reduce_html

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from bs4 import BeautifulSoup

log = structlog.get_logger()

# Subtrees owned by a nested entity rather than the block that contains them.
_NESTED_CLASSES = frozenset(
    {"Documentation-typeMethod", "Documentation-typeFunc", "Documentation-exampleDetails"}
)

_LATEST_SELECTOR = (
    ".DetailsHeader-badge--latest, .UnitHeader-badge--latest, .DetailsHeader-span--latest"
)
_LICENSE_SELECTOR = (
    "a[data-test-id='UnitHeader-license'], "
    "[data-test-id='UnitHeader-licenses'] a, "
    ".UnitHeader-license a"
)

_TITLE_RE = re.compile(r"^\s*(?P<name>\S+) package - (?P<path>\S+)")
_RECEIVER_RE = re.compile(r"^func\s*\(\s*(?:\w+\s+)?\*?\s*([\w.]+)")
_KIND_RE = re.compile(
    r"^type\s+\w+(?:\[[^\]]*\])?\s+(?P<alias>=)?\s*(?P<kind>struct|interface|func|map|chan)?"
)


class Extraction(NamedTuple):
    package: Package
    raw_html: str


@dataclass(frozen=True)
class FieldExtractor:
    """Populate one ``Package`` attribute from the parsed page."""

    field: str
    extract: Callable[[BeautifulSoup], Any | None]


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def _text(el: Tag | None) -> str:
    if el is None:
        return ""
    return el.get_text().strip()


def _is_nested(el: Tag, block: Tag) -> bool:
    """True if ``el`` sits inside a nested entity below ``block``."""
    node: Tag | None = el
    while node is not None and node is not block:
        if _NESTED_CLASSES.intersection(node.get("class") or ()):
            return True
        node = node.parent
    return False


def _select_own(block: Tag, selector: str) -> Iterator[Tag]:
    for el in block.select(selector):
        if not _is_nested(el, block):
            yield el


def _first_own(block: Tag, selector: str) -> Tag | None:
    return next(_select_own(block, selector), None)


def _own_text(block: Tag, selector: str) -> str:
    return _text(_first_own(block, selector))


def _added_in(block: Tag) -> str:
    version = _own_text(block, ".Documentation-sinceVersionVersion")
    if version:
        return version
    return _own_text(block, ".Documentation-sinceVersion")


def _deprecated(block: Tag) -> str:
    if _first_own(block, ".Documentation-deprecatedTag") is not None:
        return "deprecated"
    return ""


def _following_paragraph(decl: Tag) -> str:
    """Text of the first ``<p>`` after ``decl``, stopping at the next declaration."""
    for sibling in decl.next_siblings:
        if not isinstance(sibling, Tag):
            continue
        if "Documentation-declaration" in (sibling.get("class") or ()):
            return ""
        if sibling.name == "p":
            return _text(sibling)
    return ""


def parse_labeled_count(value: str, labels: tuple[str, ...]) -> int | None:
    """Parse ``"<Label>: 1,234"`` into ``1234``.

    Returns ``None`` when no label matches or the number does not parse;
    callers leave the count at zero in that case.
    """
    value = value.strip()
    for label in labels:
        prefix = f"{label}: "
        if value.startswith(prefix):
            digits = value[len(prefix) :].strip().replace(",", "")
            try:
                return int(digits)
            except ValueError:
                return None
    return None


def parse_receiver(signature: str) -> str:
    """Return the receiver type name of a method signature, or ``""``."""
    match = _RECEIVER_RE.match(signature)
    return match.group(1) if match else ""


def type_kind(definition: str) -> str:
    match = _KIND_RE.match(definition)
    if match is None:
        return "type"
    if match.group("alias"):
        return "alias"
    return match.group("kind") or "type"


# ---------------------------------------------------------------------------
# Scalar fields
# ---------------------------------------------------------------------------


def _title_match(soup: BeautifulSoup) -> re.Match[str] | None:
    return _TITLE_RE.match(_text(soup.title))


def extract_name(soup: BeautifulSoup) -> str | None:
    name = _text(soup.select_one("h1.UnitHeader-titleHeading"))
    if name:
        return name
    match = _title_match(soup)
    return match.group("name") if match else None


def extract_import_path(soup: BeautifulSoup) -> str | None:
    for selector in (
        ".UnitHeader-breadcrumbCurrent",
        "[data-test-id='UnitHeader-breadcrumbCurrent']",
    ):
        path = _text(soup.select_one(selector))
        if path:
            return path
    match = _title_match(soup)
    return match.group("path") if match else None


def extract_version(soup: BeautifulSoup) -> str | None:
    el = soup.select_one("a[aria-label^='Version: ']")
    if el is not None:
        version = str(el.get("aria-label", "")).removeprefix("Version: ").strip()
        if version:
            return version
    text = _text(soup.select_one("[data-test-id='UnitHeader-version'] a"))
    if text.startswith("Version: "):
        text = text.removeprefix("Version: ").strip()
    return text or None


def extract_is_latest(soup: BeautifulSoup) -> bool | None:
    badges = soup.select(_LATEST_SELECTOR)
    if any("Latest" in badge.get_text() for badge in badges):
        return True
    return None


def extract_published(soup: BeautifulSoup) -> str | None:
    text = _text(soup.select_one("[data-test-id='UnitHeader-commitTime']"))
    if text.startswith("Published: "):
        return text.removeprefix("Published: ").strip() or None
    return None


def _license_link(soup: BeautifulSoup) -> Tag | None:
    # Later matches win: the header may repeat the license in several places.
    found: Tag | None = None
    for el in soup.select(_LICENSE_SELECTOR):
        if _text(el):
            found = el
    return found


def extract_license(soup: BeautifulSoup) -> str | None:
    return _text(_license_link(soup)) or None


def _make_license_url_extractor(base_url: str) -> Callable[[BeautifulSoup], str | None]:
    def extract_license_url(soup: BeautifulSoup) -> str | None:
        el = _license_link(soup)
        if el is None:
            return None
        href = str(el.get("href", "")).strip()
        if not href:
            return None
        if href.startswith("/"):
            return base_url.rstrip("/") + href
        return href

    return extract_license_url


def _count_link_value(soup: BeautifulSoup, selector: str) -> str:
    el = soup.select_one(selector)
    if el is None:
        return ""
    # aria-label is more stable than the visible text
    return str(el.get("aria-label", "")).strip() or _text(el)


def extract_imports(soup: BeautifulSoup) -> int | None:
    value = _count_link_value(soup, "[data-test-id='UnitHeader-imports'] a")
    return parse_labeled_count(value, ("Imports",))


def extract_imported_by(soup: BeautifulSoup) -> int | None:
    value = _count_link_value(soup, "[data-test-id='UnitHeader-importedby'] a")
    return parse_labeled_count(value, ("Imported By", "Imported by"))


def extract_repository(soup: BeautifulSoup) -> str | None:
    links = soup.select(".UnitMeta-repo a")
    if not links:
        return None
    return str(links[-1].get("href", "")).strip() or None


def extract_module(soup: BeautifulSoup) -> str | None:
    for selector in ("[data-test-id='UnitHeader-module'] a", ".UnitMeta-module a"):
        module = _text(soup.select_one(selector))
        if module:
            return module
    return None


def _meta_description(soup: BeautifulSoup) -> str:
    el = soup.select_one("meta[name='description']")
    if el is None:
        return ""
    return str(el.get("content", "")).strip()


def extract_description(soup: BeautifulSoup) -> str | None:
    return _text(soup.select_one(".Documentation-overview p")) or _meta_description(soup) or None


def extract_synopsis(soup: BeautifulSoup) -> str | None:
    meta = _meta_description(soup)
    if meta:
        return meta
    overview = _text(soup.select_one(".Documentation-overview p"))
    if not overview:
        return None
    # First sentence of the overview paragraph.
    head, sep, _ = overview.partition(". ")
    return head + "." if sep else overview


def _readme_html(soup: BeautifulSoup) -> str:
    el = soup.select_one(".UnitReadme-content .Overview-readmeContent")
    if el is None:
        return ""
    return el.decode_contents()


def extract_readme(soup: BeautifulSoup) -> str | None:
    return _readme_html(soup) or None


def extract_processed_readme(soup: BeautifulSoup) -> str | None:
    html = _readme_html(soup)
    if not html:
        return None
    return reduce_html(html) or None


# ---------------------------------------------------------------------------
# Examples
# ---------------------------------------------------------------------------


def _parse_example(details: Tag) -> Example | None:
    summary = details.select_one("summary")
    name = _text(summary).replace("¶", "").strip()
    if not name:
        name = str(details.get("id", "")).removeprefix("example-")

    code_el = details.select_one("textarea.Documentation-exampleCode")
    if code_el is None:
        code_el = details.select_one(".Documentation-exampleCode")
    code = _text(code_el)
    output = _text(details.select_one(".Documentation-exampleOutput"))

    if not code and not output:
        return None
    return Example(name=name, code=code, output=output)


def _examples(block: Tag) -> list[Example]:
    """Examples belonging directly to ``block``."""
    examples: list[Example] = []
    for details in block.select("details.Documentation-exampleDetails"):
        # The details element itself is nested by definition; check its parents.
        if details.parent is not None and _is_nested(details.parent, block):
            continue
        example = _parse_example(details)
        if example is not None:
            examples.append(example)
    return examples


def extract_package_examples(soup: BeautifulSoup) -> list[Example] | None:
    overview = soup.select_one(".Documentation-overview")
    if overview is None:
        return None
    return _examples(overview) or None


# ---------------------------------------------------------------------------
# Declaration blocks
# ---------------------------------------------------------------------------


def extract_constants(soup: BeautifulSoup) -> list[Constant] | None:
    constants: list[Constant] = []
    blocks = soup.select(".Documentation-constants .Documentation-declaration")
    for i, block in enumerate(blocks, start=1):
        pre = block.select_one("pre")
        code = _text(pre)
        if pre is None or not code:
            continue
        span = pre.select_one("span[id][data-kind='constant']")
        name = str(span.get("id", "")).strip() if span is not None else ""
        constants.append(
            Constant(
                name=name or f"const-block-{i}",
                value=code,
                description=_following_paragraph(block),
            )
        )
    return constants or None


def extract_variables(soup: BeautifulSoup) -> list[Variable] | None:
    variables: list[Variable] = []
    blocks = soup.select(".Documentation-variables .Documentation-declaration")
    for i, block in enumerate(blocks, start=1):
        pre = block.select_one("pre")
        code = _text(pre)
        if pre is None or not code:
            continue
        span = pre.select_one("span[id][data-kind='variable']")
        name = str(span.get("id", "")).strip() if span is not None else ""
        variables.append(
            Variable(
                name=name or f"var-block-{i}",
                type=code,
                description=_following_paragraph(block),
            )
        )
    return variables or None


def _header_id(block: Tag) -> str:
    header = _first_own(block, "h4")
    if header is None:
        return ""
    return str(header.get("id", "")).strip()


def _parse_method(block: Tag, position: int) -> Function | None:
    header = _first_own(block, "h4")
    signature = _own_text(block, ".Documentation-declaration pre")
    if header is None and not signature:
        return None

    name = str(header.get("id", "")).strip() if header is not None else ""
    if not name:
        name = _text(header)
    receiver = ""
    if "Documentation-typeMethod" in (block.get("class") or ()):
        receiver = parse_receiver(signature)

    return Function(
        name=name or f"method-{position}",
        description=_own_text(block, "p"),
        signature=signature,
        receiver=receiver,
        deprecated=_deprecated(block),
        added_in=_added_in(block),
        examples=_examples(block),
    )


def extract_functions(soup: BeautifulSoup) -> list[Function] | None:
    functions: list[Function] = []
    blocks = soup.select(".Documentation-functions .Documentation-function")
    for i, block in enumerate(blocks, start=1):
        signature = _own_text(block, ".Documentation-declaration pre")
        if not signature:
            continue
        functions.append(
            Function(
                name=_header_id(block) or f"func-{i}",
                description=_own_text(block, "p"),
                signature=signature,
                deprecated=_deprecated(block),
                added_in=_added_in(block),
                examples=_examples(block),
            )
        )
    return functions or None


def extract_types(soup: BeautifulSoup) -> list[Type] | None:
    types: list[Type] = []
    blocks = soup.select(".Documentation-types .Documentation-type")
    for i, block in enumerate(blocks, start=1):
        definition = _own_text(block, ".Documentation-declaration pre")
        if not definition:
            continue

        methods: list[Function] = []
        nested = block.select(".Documentation-typeFunc, .Documentation-typeMethod")
        for j, method_block in enumerate(nested, start=1):
            method = _parse_method(method_block, j)
            if method is not None:
                methods.append(method)

        types.append(
            Type(
                name=_header_id(block) or f"type-{i}",
                description=_own_text(block, "p"),
                definition=definition,
                kind=type_kind(definition),
                deprecated=_deprecated(block),
                added_in=_added_in(block),
                methods=methods,
                examples=_examples(block),
            )
        )
    return types or None


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def build_pipeline(base_url: str = DEFAULT_BASE_URL) -> list[FieldExtractor]:
    return [
        FieldExtractor("name", extract_name),
        FieldExtractor("import_path", extract_import_path),
        FieldExtractor("version", extract_version),
        FieldExtractor("is_latest", extract_is_latest),
        FieldExtractor("published", extract_published),
        FieldExtractor("license", extract_license),
        FieldExtractor("license_url", _make_license_url_extractor(base_url)),
        FieldExtractor("imports", extract_imports),
        FieldExtractor("imported_by", extract_imported_by),
        FieldExtractor("repository", extract_repository),
        FieldExtractor("module", extract_module),
        FieldExtractor("description", extract_description),
        FieldExtractor("synopsis", extract_synopsis),
        FieldExtractor("readme", extract_readme),
        FieldExtractor("processed_readme", extract_processed_readme),
        FieldExtractor("constants", extract_constants),
        FieldExtractor("variables", extract_variables),
        FieldExtractor("functions", extract_functions),
        FieldExtractor("types", extract_types),
        FieldExtractor("examples", extract_package_examples),
    ]


def run_pipeline(soup: BeautifulSoup, pipeline: list[FieldExtractor]) -> Package:
    """Apply each extractor in turn, keeping defaults for fields that yield ``None``."""
    values: dict[str, Any] = {}
    for extractor in pipeline:
        value = extractor.extract(soup)
        if value is None:
            log.debug("field_missing", field=extractor.field)
            continue
        values[extractor.field] = value
    log.debug("fields_extracted", fields=sorted(values))
    return Package(**values)


def capture_raw(soup: BeautifulSoup) -> str:
    """Serialise the parsed page for the raw output path."""
    return str(soup)


def extract_package(
    soup: BeautifulSoup,
    base_url: str = DEFAULT_BASE_URL,
    import_path: str = "",
) -> Extraction:
    """Extract a ``Package`` and the raw markup from a parsed page.

    ``import_path`` is the path the page was requested for; it fills in
    ``Package.import_path`` when the page itself names none.

    Raises ``GoPkgDocsError(NO_DATA_FOUND)`` only when neither a package name
    nor an import path could be found; every other gap is left empty.
    """
    raw_html = capture_raw(soup)
    package = run_pipeline(soup, build_pipeline(base_url))
    if not package.import_path:
        package.import_path = import_path.strip()

    if not package.name and not package.import_path:
        raise GoPkgDocsError(
            code=ErrorCode.NO_DATA_FOUND,
            message="No package data found in page",
            suggestion="Check that the import path names a Go package on pkg.go.dev.",
            recoverable=False,
        )

    log.debug(
        "package_extracted",
        name=package.name,
        import_path=package.import_path,
        functions=len(package.functions),
        types=len(package.types),
    )
    return Extraction(package=package, raw_html=raw_html)
