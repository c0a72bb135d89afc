"""Code fence language mapping.

The docx code block stores its language as an integer enum.  Fence info
strings are normalized (case-insensitive, first word only, trailing
version digits dropped) and looked up in :data:`_LANGUAGE_ALIASES`;
anything unknown falls back to plain text.
"""

from __future__ import annotations

import re
from enum import IntEnum


class CodeLanguage(IntEnum):
    """Code block languages understood by the docx API."""

    PLAIN_TEXT = 1
    ABAP = 2
    ADA = 3
    APACHE = 4
    APEX = 5
    ASSEMBLY = 6
    BASH = 7
    CSHARP = 8
    CPP = 9
    C = 10
    COBOL = 11
    CSS = 12
    COFFEESCRIPT = 13
    D = 14
    DART = 15
    DELPHI = 16
    DJANGO = 17
    DOCKERFILE = 18
    ERLANG = 19
    FORTRAN = 20
    FOXPRO = 21
    GO = 22
    GROOVY = 23
    HTML = 24
    HTMLBARS = 25
    HTTP = 26
    HASKELL = 27
    JSON = 28
    JAVA = 29
    JAVASCRIPT = 30
    JULIA = 31
    KOTLIN = 32
    LATEX = 33
    LISP = 34
    LOGO = 35
    LUA = 36
    MATLAB = 37
    MAKEFILE = 38
    MARKDOWN = 39
    NGINX = 40
    OBJECTIVE_C = 41
    OPENEDGE_ABL = 42
    PHP = 43
    PERL = 44
    POSTSCRIPT = 45
    POWERSHELL = 46
    PROLOG = 47
    PROTOBUF = 48
    PYTHON = 49
    R = 50
    RPG = 51
    RUBY = 52
    RUST = 53
    SAS = 54
    SCSS = 55
    SQL = 56
    SCALA = 57
    SCHEME = 58
    SCRATCH = 59
    SHELL = 60
    SWIFT = 61
    THRIFT = 62
    TYPESCRIPT = 63
    VBSCRIPT = 64
    VISUAL_BASIC = 65
    XML = 66
    YAML = 67
    CMAKE = 68
    DIFF = 69
    GHERKIN = 70
    GRAPHQL = 71
    GLSL = 72
    PROPERTIES = 73
    SOLIDITY = 74
    TOML = 75


_LANGUAGE_ALIASES: dict[str, CodeLanguage] = {
    "text": CodeLanguage.PLAIN_TEXT,
    "plaintext": CodeLanguage.PLAIN_TEXT,
    "plain": CodeLanguage.PLAIN_TEXT,
    "txt": CodeLanguage.PLAIN_TEXT,
    "abap": CodeLanguage.ABAP,
    "ada": CodeLanguage.ADA,
    "apache": CodeLanguage.APACHE,
    "apex": CodeLanguage.APEX,
    "assembly": CodeLanguage.ASSEMBLY,
    "asm": CodeLanguage.ASSEMBLY,
    "bash": CodeLanguage.BASH,
    "shell": CodeLanguage.SHELL,
    "sh": CodeLanguage.SHELL,
    "zsh": CodeLanguage.SHELL,
    "console": CodeLanguage.SHELL,
    "c": CodeLanguage.C,
    "h": CodeLanguage.C,
    "cpp": CodeLanguage.CPP,
    "c++": CodeLanguage.CPP,
    "cc": CodeLanguage.CPP,
    "hpp": CodeLanguage.CPP,
    "csharp": CodeLanguage.CSHARP,
    "c#": CodeLanguage.CSHARP,
    "cs": CodeLanguage.CSHARP,
    "objectivec": CodeLanguage.OBJECTIVE_C,
    "objective-c": CodeLanguage.OBJECTIVE_C,
    "objc": CodeLanguage.OBJECTIVE_C,
    "cobol": CodeLanguage.COBOL,
    "css": CodeLanguage.CSS,
    "scss": CodeLanguage.SCSS,
    "sass": CodeLanguage.SCSS,
    "coffeescript": CodeLanguage.COFFEESCRIPT,
    "coffee": CodeLanguage.COFFEESCRIPT,
    "d": CodeLanguage.D,
    "dart": CodeLanguage.DART,
    "delphi": CodeLanguage.DELPHI,
    "pascal": CodeLanguage.DELPHI,
    "django": CodeLanguage.DJANGO,
    "dockerfile": CodeLanguage.DOCKERFILE,
    "docker": CodeLanguage.DOCKERFILE,
    "erlang": CodeLanguage.ERLANG,
    "erl": CodeLanguage.ERLANG,
    "elixir": CodeLanguage.ERLANG,
    "fortran": CodeLanguage.FORTRAN,
    "go": CodeLanguage.GO,
    "golang": CodeLanguage.GO,
    "groovy": CodeLanguage.GROOVY,
    "gradle": CodeLanguage.GROOVY,
    "html": CodeLanguage.HTML,
    "htm": CodeLanguage.HTML,
    "handlebars": CodeLanguage.HTMLBARS,
    "http": CodeLanguage.HTTP,
    "haskell": CodeLanguage.HASKELL,
    "hs": CodeLanguage.HASKELL,
    "json": CodeLanguage.JSON,
    "jsonc": CodeLanguage.JSON,
    "java": CodeLanguage.JAVA,
    "javascript": CodeLanguage.JAVASCRIPT,
    "js": CodeLanguage.JAVASCRIPT,
    "jsx": CodeLanguage.JAVASCRIPT,
    "mjs": CodeLanguage.JAVASCRIPT,
    "julia": CodeLanguage.JULIA,
    "kotlin": CodeLanguage.KOTLIN,
    "kt": CodeLanguage.KOTLIN,
    "latex": CodeLanguage.LATEX,
    "tex": CodeLanguage.LATEX,
    "lisp": CodeLanguage.LISP,
    "clojure": CodeLanguage.LISP,
    "lua": CodeLanguage.LUA,
    "matlab": CodeLanguage.MATLAB,
    "makefile": CodeLanguage.MAKEFILE,
    "make": CodeLanguage.MAKEFILE,
    "markdown": CodeLanguage.MARKDOWN,
    "md": CodeLanguage.MARKDOWN,
    "nginx": CodeLanguage.NGINX,
    "php": CodeLanguage.PHP,
    "perl": CodeLanguage.PERL,
    "pl": CodeLanguage.PERL,
    "postscript": CodeLanguage.POSTSCRIPT,
    "powershell": CodeLanguage.POWERSHELL,
    "ps1": CodeLanguage.POWERSHELL,
    "prolog": CodeLanguage.PROLOG,
    "protobuf": CodeLanguage.PROTOBUF,
    "proto": CodeLanguage.PROTOBUF,
    "python": CodeLanguage.PYTHON,
    "py": CodeLanguage.PYTHON,
    "r": CodeLanguage.R,
    "ruby": CodeLanguage.RUBY,
    "rb": CodeLanguage.RUBY,
    "rust": CodeLanguage.RUST,
    "rs": CodeLanguage.RUST,
    "sas": CodeLanguage.SAS,
    "sql": CodeLanguage.SQL,
    "scala": CodeLanguage.SCALA,
    "scheme": CodeLanguage.SCHEME,
    "swift": CodeLanguage.SWIFT,
    "thrift": CodeLanguage.THRIFT,
    "typescript": CodeLanguage.TYPESCRIPT,
    "ts": CodeLanguage.TYPESCRIPT,
    "tsx": CodeLanguage.TYPESCRIPT,
    "vbscript": CodeLanguage.VBSCRIPT,
    "vb": CodeLanguage.VISUAL_BASIC,
    "vb.net": CodeLanguage.VISUAL_BASIC,
    "xml": CodeLanguage.XML,
    "svg": CodeLanguage.XML,
    "yaml": CodeLanguage.YAML,
    "yml": CodeLanguage.YAML,
    "cmake": CodeLanguage.CMAKE,
    "diff": CodeLanguage.DIFF,
    "patch": CodeLanguage.DIFF,
    "gherkin": CodeLanguage.GHERKIN,
    "cucumber": CodeLanguage.GHERKIN,
    "graphql": CodeLanguage.GRAPHQL,
    "gql": CodeLanguage.GRAPHQL,
    "glsl": CodeLanguage.GLSL,
    "shader": CodeLanguage.GLSL,
    "ini": CodeLanguage.PROPERTIES,
    "properties": CodeLanguage.PROPERTIES,
    "solidity": CodeLanguage.SOLIDITY,
    "sol": CodeLanguage.SOLIDITY,
    "toml": CodeLanguage.TOML,
}


def fence_language(info: str | None) -> str:
    """Return the lower-cased first word of a fence info string."""
    if not info:
        return ""
    words = info.strip().lower().split()
    return words[0] if words else ""


def is_mermaid(info: str | None) -> bool:
    return fence_language(info) == "mermaid"


def normalize_language(info: str | None) -> CodeLanguage:
    """Map a code fence info string to a :class:`CodeLanguage`.

    ``"Python3"`` and ``"py"`` both map to :attr:`CodeLanguage.PYTHON`;
    unknown or empty strings (``mermaid`` included) map to
    :attr:`CodeLanguage.PLAIN_TEXT`.
    """
    lang = fence_language(info)
    if not lang:
        return CodeLanguage.PLAIN_TEXT
    if lang in _LANGUAGE_ALIASES:
        return _LANGUAGE_ALIASES[lang]
    stripped = re.sub(r"\d+$", "", lang)
    return _LANGUAGE_ALIASES.get(stripped, CodeLanguage.PLAIN_TEXT)
