from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class Example(BaseModel):
    """A runnable example attached to a package, function, type or method."""

    name: str = ""
    code: str = ""
    output: str = ""


class Function(BaseModel):
    """A free function, or a method when ``receiver`` is set."""

    name: str = ""
    description: str = ""
    signature: str = ""
    receiver: str = ""  # Receiver type name, e.g. "Command"
    deprecated: str = ""  # "deprecated" when tagged
    added_in: str = ""  # Version token, e.g. "v1.1.2"
    examples: list[Example] = []


class Type(BaseModel):
    name: str = ""
    description: str = ""
    definition: str = ""  # Declaration text from the <pre> block
    kind: str = ""
    deprecated: str = ""
    added_in: str = ""
    methods: list[Function] = []
    examples: list[Example] = []


class Variable(BaseModel):
    name: str = ""
    type: str = ""  # Full declaration text
    description: str = ""


class Constant(BaseModel):
    name: str = ""
    type: str = ""
    value: str = ""  # Full declaration text
    description: str = ""


class Package(BaseModel):
    """Structured record extracted from one pkg.go.dev page.

    Every field defaults to its empty value; absence is meaningful, not an
    error. The four declaration lists keep document order.
    """

    name: str = ""
    description: str = ""
    module: str = ""
    version: str = ""
    is_latest: bool = False
    published: str = ""
    synopsis: str = ""
    license: str = ""
    license_url: str = ""
    repository: str = ""
    import_path: str = ""
    scraped_at: datetime | None = None
    readme: str = ""  # Raw README HTML
    processed_readme: str = ""  # README reduced to Markdown
    imports: int = 0
    imported_by: int = 0
    functions: list[Function] = []
    types: list[Type] = []
    variables: list[Variable] = []
    constants: list[Constant] = []
    examples: list[Example] = []
