"""
MkDocs plugin for generating API documentation from C source comments.

Hooks into MkDocs' build lifecycle to discover source files, parse their
declarations, and render one Markdown page per source file plus an overview
page with the macro/type/function index. Ordinary pages can pull documentation
in with ``::: c:autodoc`` style directives.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import re
from mkdocs.config import config_options
from mkdocs.config.base import Config
from mkdocs.plugins import BasePlugin
from mkdocs.structure.files import File

from .parser import PARSERS, CLANG_AVAILABLE, SourceDoc, SymbolKind, parse_source
from .renderer import RenderConfig, render_index, render_single, render_source

log = logging.getLogger("mkdocs.plugins.cmarkdoc")

_DIRECTIVE_RE = re.compile(
    r"^(?P<indent>[ \t]*):::[ \t]+c:"
    r"(?P<directive>autodoc|autofunction|autostruct|autounion|autoenum|automacro|autotype)\s*\n"
    r"(?P<body>(?:(?P=indent)[ \t]+:\w+:.*\n)*)",
    re.MULTILINE,
)
_OPTION_RE = re.compile(r"^\s+:(\w+):\s*(.+)$", re.MULTILINE)

_DIRECTIVE_KIND_MAP = {
    "autofunction": SymbolKind.FUNCTION,
    "autostruct": SymbolKind.STRUCT,
    "autounion": SymbolKind.UNION,
    "autoenum": SymbolKind.ENUM,
    "automacro": SymbolKind.MACRO,
    "autotype": SymbolKind.TYPEDEF,
}

_INDEX = "__INDEX__"


class CmarkdocConfig(Config):
    source_root = config_options.Type(str, default="")
    extensions = config_options.Type(list, default=[".c", ".h"])
    exclude = config_options.Type(list, default=[])
    ignore = config_options.Type(list, default=[])
    clang_args = config_options.Type(list, default=[])
    parser = config_options.Choice(PARSERS, default="auto")
    output_dir = config_options.Type(str, default="api_reference")
    nav_title = config_options.Type(str, default="API Reference")
    heading_level = config_options.Type(int, default=2)
    show_location = config_options.Type(bool, default=True)
    source_uri = config_options.Type(str, default="")


def _discover_sources(root, extensions, exclude):
    out = []
    exts = [e if e.startswith(".") else f".{e}" for e in extensions]
    for dirpath, dirnames, fnames in os.walk(root):
        dirnames.sort()
        for fn in sorted(fnames):
            _, ext = os.path.splitext(fn)
            if ext.lower() not in exts:
                continue
            rel = os.path.relpath(os.path.join(dirpath, fn), root)
            if any(fnmatch.fnmatch(fn, p) or fnmatch.fnmatch(rel, p) for p in exclude):
                continue
            out.append(rel)
    return out


def _source_rel_to_md_uri(rel, output_dir):
    return f"{output_dir}/{rel.replace(os.sep, '/')}.md"


class CmarkdocPlugin(BasePlugin[CmarkdocConfig]):

    def __init__(self):
        super().__init__()
        self._cache = {}
        self._pages = {}
        self._root = ""
        self._discovered = []
        self._tmpfiles = []

    # ── Parsing ──

    def _parse(self, abspath):
        abspath = os.path.normpath(abspath)
        if abspath in self._cache:
            return self._cache[abspath]
        rel = os.path.relpath(abspath, self._root) if self._root else abspath
        rel = rel.replace(os.sep, "/")
        if not os.path.isfile(abspath):
            log.error("cmarkdoc: file not found: %s", abspath)
            source = SourceDoc(path=rel)
        else:
            source = parse_source(
                abspath,
                clang_args=self.config["clang_args"],
                ignore=self.config["ignore"],
                parser=self.config["parser"],
            )
            if source is None:
                source = SourceDoc(path=rel)
            source.path = rel
            for doc in source.docs:
                doc.filename = rel
        self._cache[abspath] = source
        return source

    def _resolve_file(self, path):
        if os.path.isabs(path):
            return path
        return os.path.normpath(os.path.join(self._root or ".", path))

    # ── Navigation ──

    def _index_uri(self):
        return f"{self.config['output_dir']}/index.md"

    def _inject_nav(self, config):
        title = self.config["nav_title"]
        out_dir = self.config["output_dir"]
        pages = [{"Overview": self._index_uri()}]
        for rel in self._discovered:
            pages.append({rel.replace(os.sep, "/"): _source_rel_to_md_uri(rel, out_dir)})
        section = {title: pages}
        nav = config.get("nav")
        if nav is None:
            config["nav"] = [section]
            return
        for i, item in enumerate(nav):
            if isinstance(item, dict) and title in item:
                nav[i] = section
                return
        nav.append(section)

    # ── MkDocs lifecycle hooks ──

    def on_config(self, config, **kwargs):
        config_dir = os.path.dirname(config.get("config_file_path", "") or "") or os.getcwd()
        if not CLANG_AVAILABLE and self.config["parser"] == "auto":
            log.warning("cmarkdoc: clang not found, falling back to regex parser")

        self._cache.clear()
        self._pages.clear()
        self._tmpfiles.clear()
        self._discovered = []

        root = self.config["source_root"] or "."
        if not os.path.isabs(root):
            root = os.path.normpath(os.path.join(config_dir, root))
        self._root = root

        # Index links point at generated .md pages MkDocs cannot validate
        try:
            config["validation"]["links"]["unrecognized_links"] = 0
        except (KeyError, TypeError):
            pass

        if not os.path.isdir(root):
            log.error("cmarkdoc: source root missing: %s", root)
            return config

        self._discovered = _discover_sources(root, self.config["extensions"], self.config["exclude"])
        log.info("cmarkdoc: %d files in %s", len(self._discovered), root)
        if not self._discovered:
            return config

        for rel in self._discovered:
            uri = _source_rel_to_md_uri(rel, self.config["output_dir"])
            self._pages[uri] = os.path.normpath(os.path.join(root, rel))
        self._pages[self._index_uri()] = _INDEX

        self._inject_nav(config)
        return config

    def on_files(self, files, *, config, **kwargs):
        for uri in sorted(self._pages):
            try:
                f = File.generated(config, uri, content="")
            except (AttributeError, TypeError):
                f = File(
                    uri,
                    config["docs_dir"],
                    config["site_dir"],
                    config.get("use_directory_urls", True),
                )
                dest = os.path.join(config["docs_dir"], uri)
                os.makedirs(os.path.dirname(dest), exist_ok=True)
                open(dest, "w").close()
                self._tmpfiles.append(dest)
            f.edit_uri = None
            files.append(f)
        return files

    def on_page_markdown(self, markdown, *, page, config, files, **kwargs):
        src_uri = getattr(page.file, "src_uri", None) or page.file.src_path

        target = self._pages.get(src_uri)
        if target == _INDEX:
            return self._mk_index()
        if target:
            return self._mk_page(target)
        return _DIRECTIVE_RE.sub(lambda m: self._handle_directive(m), markdown)

    def on_post_build(self, *, config, **kwargs):
        docs_dir = config["docs_dir"]
        for p in self._tmpfiles:
            try:
                os.remove(p)
            except OSError:
                pass
            d = os.path.dirname(p)
            while d != docs_dir:
                try:
                    os.rmdir(d)
                except OSError:
                    break
                d = os.path.dirname(d)

    # ── Page rendering ──

    def _rcfg(self):
        return RenderConfig(
            heading_level=self.config["heading_level"],
            show_location=self.config["show_location"],
            source_uri=self.config["source_uri"],
        )

    def _sources(self):
        return [
            self._parse(os.path.join(self._root, rel)) for rel in self._discovered
        ]

    def _mk_page(self, abspath):
        source = self._parse(abspath)
        cfg = self._rcfg()
        page = render_source(source, cfg, title=source.path)
        if not source.docs:
            page += "_No documented symbols found in this file._\n"
        return page

    def _mk_index(self):
        out_dir = self.config["output_dir"]
        sources = self._sources()
        nsym = sum(len(s.docs) for s in sources)
        lines = [
            f"# {self.config['nav_title']}",
            "",
            f"{len(sources)} source file{'s' if len(sources) != 1 else ''}, {nsym} symbols.",
            "",
            "## Source Files",
            "",
        ]
        for source in sources:
            link = _source_rel_to_md_uri(source.path, out_dir)[len(out_dir) + 1 :]
            n = len(source.docs)
            lines.append(f"- [{source.path}]({link}) — {n} symbol{'s' if n != 1 else ''}")
        lines.append("")

        def page_of(source, doc):
            return _source_rel_to_md_uri(source.path, out_dir)[len(out_dir) + 1 :]

        index = render_index(sources, RenderConfig(heading_level=3), link=page_of)
        return "\n".join(lines) + "\n" + index

    def _handle_directive(self, match):
        directive = match.group("directive")
        opts = {}
        for m in _OPTION_RE.finditer(match.group("body")):
            opts[m.group(1)] = m.group(2).strip()
        fpath = opts.get("file", "")
        if not fpath:
            return f"<!-- cmarkdoc: missing :file: for c:{directive} -->\n"
        source = self._parse(self._resolve_file(fpath))
        cfg = self._rcfg()
        if "heading_level" in opts:
            try:
                cfg.heading_level = int(opts["heading_level"])
            except ValueError:
                log.warning("cmarkdoc: bad :heading_level: %r", opts["heading_level"])
        if directive == "autodoc":
            return render_source(source, cfg, title=opts.get("title", source.path))
        name = opts.get("name", "")
        if not name:
            return f"<!-- cmarkdoc: missing :name: for c:{directive} -->\n"
        return render_single([source], name, kind=_DIRECTIVE_KIND_MAP.get(directive), cfg=cfg)
