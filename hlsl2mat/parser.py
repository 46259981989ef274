"""
Scanner extracting function definitions from a library source.

Only the subset of the HLSL grammar needed to find function boundaries is
understood: leading // comments, the return type, the name, the argument list
and the brace-delimited body. Bodies are kept as opaque text.
"""

from dataclasses import dataclass, field
from enum import Enum, auto

from loguru import logger

from hlsl2mat.errors import ParseError
from hlsl2mat.models import SourceFunction

_LINE_BREAKS = "\n\r\x0b\x0c"


class _Scope(Enum):
    """Scanner state."""

    GLOBAL = auto()
    PREPROCESSOR = auto()
    FUNCTION_COMMENT = auto()
    FUNCTION_RETURN = auto()
    FUNCTION_NAME = auto()
    FUNCTION_ARGS = auto()
    FUNCTION_BODY_START = auto()
    FUNCTION_BODY = auto()


@dataclass
class _PendingFunction:
    """Mutable function record filled while scanning."""

    start_line: int = 0
    comment: str = ""
    return_type: str = ""
    name: str = ""
    arguments: list[str] = field(default_factory=list)
    body: str = ""

    def freeze(self) -> SourceFunction:
        arguments = self.arguments
        # "Foo( )" has no arguments
        if len(arguments) == 1 and not arguments[0].strip():
            arguments = []
        return SourceFunction(
            start_line=self.start_line,
            comment=self.comment,
            return_type=self.return_type,
            name=self.name,
            arguments=tuple(arguments),
            body=self.body,
        )


def parse_functions(text: str) -> list[SourceFunction]:
    """Scan a library source and return its functions in file order.

    Args:
        text: Content of the library source

    Returns:
        List of parsed functions

    Raises:
        ParseError: If braces or parentheses are not properly nested
    """
    text = text.replace("\r\n", "\n")

    functions: list[_PendingFunction] = []
    scope = _Scope.GLOBAL
    index = 0
    line = 0
    body_depth = 0
    paren_depth = 0
    bracket_depth = 0

    while index < len(text):
        char = text[index]
        index += 1

        if char in _LINE_BREAKS:
            line += 1

        match scope:
            case _Scope.GLOBAL:
                if char in _LINE_BREAKS:
                    # An empty line drops any pending comment
                    if functions and not functions[-1].return_type:
                        functions.pop()
                    continue
                if char.isspace():
                    continue
                if char == "}":
                    name = functions[-1].name if functions else ""
                    raise ParseError(
                        f"Invalid function body for {name}: too many }}",
                        lineno=line + 1,
                    )

                if not functions or functions[-1].return_type:
                    functions.append(_PendingFunction())

                # Process this character again in the new scope
                index -= 1

                if char == "#":
                    scope = _Scope.PREPROCESSOR
                elif char == "/":
                    scope = _Scope.FUNCTION_COMMENT
                else:
                    scope = _Scope.FUNCTION_RETURN

            case _Scope.PREPROCESSOR:
                if char in _LINE_BREAKS:
                    scope = _Scope.GLOBAL

            case _Scope.FUNCTION_COMMENT:
                if char not in _LINE_BREAKS:
                    functions[-1].comment += char
                    continue
                functions[-1].comment += "\n"
                scope = _Scope.GLOBAL

            case _Scope.FUNCTION_RETURN:
                if not char.isspace():
                    functions[-1].return_type += char
                    continue
                scope = _Scope.FUNCTION_NAME

            case _Scope.FUNCTION_NAME:
                if char != "(":
                    if not char.isspace():
                        functions[-1].name += char
                    continue
                scope = _Scope.FUNCTION_ARGS
                paren_depth = 1
                bracket_depth = 0

            case _Scope.FUNCTION_ARGS:
                if char == "(":
                    paren_depth += 1
                elif char == ")":
                    paren_depth -= 1
                elif char == "[":
                    bracket_depth += 1
                elif char == "]":
                    bracket_depth -= 1

                if paren_depth == 0:
                    scope = _Scope.FUNCTION_BODY_START
                    continue

                arguments = functions[-1].arguments
                if char == "," and paren_depth == 1 and bracket_depth == 0:
                    if not arguments:
                        arguments.append("")
                    arguments.append("")
                else:
                    if not arguments:
                        arguments.append("")
                    arguments[-1] += char

            case _Scope.FUNCTION_BODY_START:
                if char.isspace():
                    continue
                if char != "{":
                    raise ParseError(
                        f"Invalid function body for {functions[-1].name}: missing {{",
                        lineno=line + 1,
                    )
                functions[-1].start_line = line
                body_depth = 1
                scope = _Scope.FUNCTION_BODY

            case _Scope.FUNCTION_BODY:
                if char == "{":
                    body_depth += 1
                elif char == "}":
                    body_depth -= 1

                if body_depth > 0:
                    functions[-1].body += char
                    continue
                logger.debug(
                    f"Scanned function: {functions[-1].name}, "
                    f"arguments: {functions[-1].arguments}"
                )
                scope = _Scope.GLOBAL

    if scope is _Scope.FUNCTION_COMMENT:
        # A commented out function at the end of the file
        scope = _Scope.GLOBAL

    if scope is not _Scope.GLOBAL:
        name = functions[-1].name if functions else ""
        raise ParseError(
            f"Parsing error: unexpected end of file while reading {name or 'a function'}",
            lineno=line + 1,
        )

    # A trailing comment or directive without a function is dropped
    return [function.freeze() for function in functions if function.return_type]
