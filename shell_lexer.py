# ============================================================================
# SHELL COMMAND LEXER
# ============================================================================

from __future__ import annotations

import re

from pygments.lexer import RegexLexer, include
from pygments.token import (
    Comment,
    Keyword,
    Name,
    Number,
    Operator,
    Punctuation,
    String,
    Text,
    Token,
)
from rich.style import Style
from rich.syntax import SyntaxTheme
from rich.text import Text as RichText

# Custom token types so Rich and Pygments know about them
Name.Argument = Token.Name.Argument
Name.Variable.Magic = Token.Name.Variable.Magic


class ShellCommandLexer(RegexLexer):
    """
    A small lexer for single history entries of bash and zsh.
    It only has to colour one command line, so it keeps two states: the
    command word, and its tail of flags and arguments.
    """

    name = "Shell command"
    aliases = ["shell-command"]
    filenames = []

    flags = re.MULTILINE

    tokens = {
        "_base": [
            (r"\\.", String.Escape),
            (r"\$\(", String.Interpol, "command_substitution"),
            (r"\$\{[^}]*\}", Name.Variable.Magic),
            (r"\$[a-zA-Z0-9_@*#?$!~-]+", Name.Variable),
            (r"'[^']*'", String.Single),
            (r'"(\\.|[^"\\])*"', String.Double),
            (r"`[^`]*`", String.Backtick),
            (r"#.*$", Comment.Single),
        ],
        "root": [
            (r"\s+", Text),
            (r"\b(if|then|else|elif|fi|for|in|while|do|done|case|esac|function)\b", Keyword.Reserved),
            (r"\b(cd|echo|export|source|sudo|exec|eval|alias|unset)\b", Name.Builtin, "cmdtail"),
            (r"(<<<|<<-?|>>?|<&|>&)?[0-9]*[<>]", Operator),
            (r"\|\|?|&&|&", Operator),
            (r"[;()\[\]{}]", Punctuation),
            include("_base"),
            (r"[a-zA-Z0-9_./~+-]+", Name.Function, "cmdtail"),
            (r".", Text),
        ],
        "cmdtail": [
            (r"\n", Text, "#pop"),
            (r"\|\|?|&&", Operator, "#pop"),
            (r"[;&]", Punctuation, "#pop"),
            (r"\s+", Text),
            (r"(?:--?|\+)[a-zA-Z0-9][\w-]*", Name.Attribute),
            (r"=", Operator),
            (r"(<<<|<<-?|>>?|<&|>&)?[0-9]*[<>]", Operator),
            (r"\b[0-9]+\b", Number.Integer),
            include("_base"),
            (r"[^=\s;&|(){}<>\[\]$'\"`\\]+", Name.Argument),
            (r".", Text),
        ],
        "command_substitution": [
            (r"\)", String.Interpol, "#pop"),
            include("root"),
        ],
    }


class HistPickTheme(SyntaxTheme):
    """Muted Monokai-style colours for history rows."""

    _RED = "#ff6188"
    _GREEN = "#a9dc76"
    _YELLOW = "#ffd866"
    _ORANGE = "#fc9867"
    _PURPLE = "#ab9df2"
    _CYAN = "#78dce8"
    _WHITE = "#fcfcfa"
    _COMMENT_GRAY = "#727072"

    default_style = Style(color=_WHITE)

    styles = {
        Name.Function: Style(color=_GREEN, bold=True),
        Name.Builtin: Style(color=_CYAN, italic=True),
        Name.Attribute: Style(color=_ORANGE),
        Name.Argument: Style(color=_WHITE),
        Name.Variable: Style(color=_PURPLE),
        Name.Variable.Magic: Style(color=_PURPLE),
        Number: Style(color=_CYAN),
        Keyword: Style(color=_RED, bold=True),
        Operator: Style(color=_RED),
        Punctuation: Style(color=_WHITE),
        String: Style(color=_YELLOW),
        String.Escape: Style(color=_PURPLE),
        String.Interpol: Style(color=_PURPLE, bold=True),
        Comment: Style(color=_COMMENT_GRAY, italic=True),
        Text: Style(color=_WHITE),
    }

    @classmethod
    def get_style_for_token(cls, t):
        # Walk up the token hierarchy so String.Single falls back to String
        while t not in cls.styles and t.parent is not None:
            t = t.parent
        return cls.styles.get(t, cls.default_style)

    @classmethod
    def get_background_style(cls):
        return Style()


LEXER = ShellCommandLexer(stripnl=False, ensurenl=False)
THEME = HistPickTheme()

MATCH_STYLE = Style(color="#ff6188", bold=True)
FAVORITE_STYLE = Style(color="#78dce8")
SELECTED_STYLE = Style(bgcolor="#2f6f3e")
NEWLINE_MARK = "\u23ce"

# Lone surrogates from undecodable history bytes; one char each, so spans stay aligned
ESCAPED_BYTE_RE = re.compile("[\udc80-\udcff]")


def displayable(text: str) -> str:
    return ESCAPED_BYTE_RE.sub("\ufffd", text)


def highlight_command(
    command: str,
    spans: list[tuple[int, int]] | None = None,
    favorite: bool = False,
    selected: bool = False,
) -> RichText:
    """
    Renders one history row: syntax colours first, then favorite colouring,
    then matched characters, then the selection background on top.
    """
    # One character per newline keeps match spans aligned with the entry
    line = displayable(command).replace("\n", NEWLINE_MARK)
    text = RichText(no_wrap=True, overflow="ellipsis")
    if favorite:
        text.append(line, style=FAVORITE_STYLE)
    else:
        for token_type, value in LEXER.get_tokens(line):
            text.append(value, style=THEME.get_style_for_token(token_type))
    for start, end in spans or []:
        text.stylize(MATCH_STYLE, start, end)
    if selected:
        text.stylize(SELECTED_STYLE)
    return text
