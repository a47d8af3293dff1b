"""Shared test fixtures for the gopkgdocs test suite."""

from __future__ import annotations

import aiosqlite
import pytest
from bs4 import BeautifulSoup

from gopkgdocs.cache import DocumentStore
from gopkgdocs.config import ScraperSettings

PACKAGE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
<title>cobra package - github.com/spf13/cobra - Go Packages</title>
<meta name="description" content="Package cobra is a commander for modern Go CLI interactions.">
</head>
<body>
<header class="UnitHeader">
  <h1 class="UnitHeader-titleHeading">cobra</h1>
  <div class="UnitHeader-breadcrumbCurrent">github.com/spf13/cobra</div>
  <div data-test-id="UnitHeader-version">
    <a aria-label="Version: v1.8.0" href="?tab=versions">Version: v1.8.0</a>
  </div>
  <span class="DetailsHeader-badge--latest">Latest</span>
  <span data-test-id="UnitHeader-commitTime">Published: Nov 7, 2023</span>
  <span data-test-id="UnitHeader-licenses">
    <a href="/github.com/spf13/cobra?tab=licenses">Apache-2.0</a>
  </span>
  <span data-test-id="UnitHeader-imports">
    <a aria-label="Imports: 13" href="?tab=imports">Imports: 13</a>
  </span>
  <span data-test-id="UnitHeader-importedby">
    <a aria-label="Imported By: 177,680" href="?tab=importedby">Imported by: 177,680</a>
  </span>
</header>
<aside>
  <div class="UnitMeta-module"><a href="/github.com/spf13/cobra">github.com/spf13/cobra</a></div>
  <div class="UnitMeta-repo"><a href="https://github.com/spf13/cobra">github.com/spf13/cobra</a></div>
</aside>
<div class="UnitReadme-content"><div class="Overview-readmeContent"><h3>Overview</h3><p>Cobra is a library for creating <strong>powerful</strong> CLIs &amp; tools.</p><pre><code class="language-go">cmd := &amp;cobra.Command{}</code></pre></div></div>
<section class="Documentation-overview">
  <p>Package cobra is a commander for modern Go CLI interactions. It is used by Kubernetes.</p>
  <details class="Documentation-exampleDetails" id="example-package">
    <summary class="Documentation-exampleDetailsHeader">Example (Basic) ¶</summary>
    <div class="Documentation-exampleDetailsBody">
      <textarea class="Documentation-exampleCode">package main</textarea>
      <pre class="Documentation-exampleOutput">hello</pre>
    </div>
  </details>
</section>
<section class="Documentation-constants">
  <div class="Documentation-declaration"><pre>const (
	<span id="ShellCompRequestCmd" data-kind="constant">ShellCompRequestCmd</span> = "__complete"
)</pre></div>
  <p>Constants for shell completion.</p>
</section>
<section class="Documentation-variables">
  <div class="Documentation-declaration"><pre>var <span id="EnablePrefixMatching" data-kind="variable">EnablePrefixMatching</span> = false</pre></div>
  <p>EnablePrefixMatching allows setting automatic prefix matching.</p>
  <div class="Documentation-declaration"><pre>var _ = initHooks()</pre></div>
</section>
<section class="Documentation-functions">
  <div class="Documentation-function">
    <h4 id="AddTemplateFunc">func AddTemplateFunc <span class="Documentation-sinceVersion"><span class="Documentation-sinceVersionVersion">v1.1.2</span></span></h4>
    <div class="Documentation-declaration"><pre>func AddTemplateFunc(name string, tmplFunc interface{})</pre></div>
    <p>AddTemplateFunc adds a template function.</p>
  </div>
  <div class="Documentation-function">
    <h4 id="Eq">func Eq <span class="Documentation-deprecatedTag">deprecated</span></h4>
    <div class="Documentation-declaration"><pre>func Eq(a interface{}, b interface{}) bool</pre></div>
    <p>Eq compares two values.</p>
    <details class="Documentation-exampleDetails" id="example-Eq">
      <summary>Example</summary>
      <p>Not the description.</p>
      <textarea class="Documentation-exampleCode">cobra.Eq(1, 1)</textarea>
      <pre class="Documentation-exampleOutput">true</pre>
    </details>
  </div>
</section>
<section class="Documentation-types">
  <div class="Documentation-type">
    <h4 id="Command">type Command</h4>
    <div class="Documentation-declaration"><pre>type Command struct {
	Use string
}</pre></div>
    <p>Command is just that, a command for your application.</p>
    <div class="Documentation-typeFunc">
      <h4 id="NewCommand">func NewCommand</h4>
      <div class="Documentation-declaration"><pre>func NewCommand() *Command</pre></div>
      <p>NewCommand creates a command.</p>
    </div>
    <div class="Documentation-typeMethod">
      <h4 id="Command.Execute">func (*Command) Execute</h4>
      <div class="Documentation-declaration"><pre>func (c *Command) Execute() error</pre></div>
      <p>Execute uses the args and runs through the command tree.</p>
    </div>
  </div>
  <div class="Documentation-type">
    <h4 id="PositionalArgs">type PositionalArgs</h4>
    <div class="Documentation-declaration"><pre>type PositionalArgs func(cmd *Command, args []string) error</pre></div>
  </div>
</section>
</body>
</html>
"""

# Two adjacent function blocks whose bodies differ in every field.
SIBLING_BLOCKS_HTML = """<html><body>
<h1 class="UnitHeader-titleHeading">pair</h1>
<section class="Documentation-functions">
  <div class="Documentation-function">
    <h4 id="First">func First</h4>
    <div class="Documentation-declaration"><pre>func First()</pre></div>
    <p>First does one thing.</p>
  </div>
  <div class="Documentation-function">
    <h4 id="Second">func Second <span class="Documentation-deprecatedTag">deprecated</span></h4>
    <div class="Documentation-declaration"><pre>func Second() int</pre></div>
    <p>Second does another.</p>
    <details class="Documentation-exampleDetails" id="example-Second">
      <summary>Example</summary>
      <textarea class="Documentation-exampleCode">Second()</textarea>
    </details>
  </div>
</section>
<section class="Documentation-types">
  <div class="Documentation-type">
    <div class="Documentation-declaration"><pre>type anon struct{}</pre></div>
  </div>
</section>
</body></html>
"""

# A page whose only structured content is one function block.
EXECUTE_ONLY_HTML = """<html>
<head><title>cobra package - github.com/spf13/cobra - Go Packages</title></head>
<body>
<section class="Documentation-functions">
  <div class="Documentation-function">
    <h4 id="Execute">func Execute</h4>
    <div class="Documentation-declaration"><pre>func Execute() error</pre></div>
  </div>
</section>
</body>
</html>
"""

# Same function block with no title, heading or breadcrumb to name the package.
HEADERLESS_EXECUTE_HTML = """<html>
<body>
<section class="Documentation-functions">
  <div class="Documentation-function">
    <h4 id="Execute">func Execute</h4>
    <div class="Documentation-declaration"><pre>func Execute() error</pre></div>
  </div>
</section>
</body>
</html>
"""


@pytest.fixture()
def package_soup() -> BeautifulSoup:
    return BeautifulSoup(PACKAGE_HTML, "html.parser")


@pytest.fixture()
def sibling_soup() -> BeautifulSoup:
    return BeautifulSoup(SIBLING_BLOCKS_HTML, "html.parser")


@pytest.fixture()
def scraper_settings() -> ScraperSettings:
    """Parallel settings with no inter-request delay."""
    return ScraperSettings(max_concurrency=2, delay_seconds=0.0)


@pytest.fixture()
async def store() -> DocumentStore:
    """In-memory document store, initialised and ready."""
    async with aiosqlite.connect(":memory:") as db:
        document_store = DocumentStore(db)
        await document_store.init_db()
        yield document_store


@pytest.fixture()
def package_html() -> str:
    return PACKAGE_HTML


@pytest.fixture()
def execute_only_html() -> str:
    return EXECUTE_ONLY_HTML


@pytest.fixture()
def headerless_execute_html() -> str:
    return HEADERLESS_EXECUTE_HTML
