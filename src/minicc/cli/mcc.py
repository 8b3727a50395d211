"""
mcc - minicc Compiler Command-Line Interface
============================================

This module implements the command-line interface for the minicc
compiler. The program text is given directly on the command line, or
read from a file with --file; the assembly goes to stdout unless -o is
given.

Usage Examples
--------------
Compile a program given inline:
    $ mcc "a = 3; return a * 2;"

From a file, to an output file:
    $ mcc -f prog.c -o prog.s

Build and run natively:
    $ mcc "return 42;" -o prog.s && cc -o prog prog.s && ./prog; echo $?

Run on the bundled emulator:
    $ mcc --run "for (i = 0; i < 10; i = i + 1) ; return i;"
    10

Inspect the front end:
    $ mcc --tokens "return 1 + 2;"
    $ mcc --ast "if (a < 3) b = 1; else b = 2;"

Environment:
    MINICC_ENTRY_POINT, MINICC_OUTPUT_COMMENTS and MINICC_STACK_ALIGNMENT
    provide defaults that the command-line options override.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Optional

import click

from minicc import __version__
from minicc.cli.errors import handle_cli_exception
from minicc.compiler import MiniCCompiler, CompilerOptions, tokenize
from minicc.compiler.ast import ASTPrinter
from minicc.emulator import Machine


logger = logging.getLogger(__name__)


# =============================================================================
# CLI Definition
# =============================================================================

@click.command()
@click.argument("source")
@click.option(
    "-f", "--file", "from_file",
    is_flag=True,
    help="Treat SOURCE as the path of a source file",
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Output assembly file (default: stdout)",
)
@click.option(
    "--ast",
    is_flag=True,
    help="Print AST and exit (for debugging)",
)
@click.option(
    "--tokens",
    is_flag=True,
    help="Print the token stream and exit (for debugging)",
)
@click.option(
    "--run",
    is_flag=True,
    help="Execute the program on the emulator and print its result",
)
@click.option(
    "-c", "--comments",
    is_flag=True,
    help="Annotate the generated assembly with comments",
)
@click.option(
    "--entry",
    metavar="NAME",
    default=None,
    help="Entry-point symbol (default: main)",
)
@click.option(
    "-v", "--verbose",
    is_flag=True,
    help="Verbose output (debug logging on stderr)",
)
@click.version_option(version=__version__, prog_name="mcc")
def main(
    source: str,
    from_file: bool,
    output: Optional[Path],
    ast: bool,
    tokens: bool,
    run: bool,
    comments: bool,
    entry: Optional[str],
    verbose: bool,
) -> None:
    """
    Compile a minicc program to x86-64 assembly.

    SOURCE is the program text, or a file path when --file is given.

    \b
    Examples:
        mcc "return 42;"                   # Assembly on stdout
        mcc -f prog.c -o prog.s            # From file to file
        mcc --run "a = 6; return a * 7;"   # Run on the emulator
        mcc --ast "while (i < 3) i = i + 1;"

    \b
    Supported language:
        - 64-bit integer variables, created on first use
        - + - * / == != < <= > >= and assignment
        - return, if/else, while, for, { blocks }
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s %(name)s: %(message)s",
        )

    try:
        options = _build_options(comments, entry)

        if from_file:
            filename = source
            text = Path(source).read_text(encoding="utf-8")
        else:
            filename = "<input>"
            text = source

        if tokens:
            for token in tokenize(text, filename):
                click.echo(repr(token))
            return

        compiler = MiniCCompiler(options)
        result = compiler.compile_source(text, filename)

        # AST dump mode
        if ast:
            printer = ASTPrinter()
            click.echo(printer.print(result.ast))
            return

        if output is not None:
            output.write_text(result.assembly, encoding="utf-8")
            logger.debug(f"Wrote {len(result.assembly)} bytes to {output}")
            if not run:
                click.echo(f"Compiled {filename} -> {output}")
        elif not run:
            click.echo(result.assembly, nl=False)

        if run:
            machine = Machine(result.assembly, entry_point=options.entry_point)
            value = machine.run()
            logger.debug(f"Program finished in {machine.steps} steps")
            click.echo(str(value))

    except Exception as e:
        handle_cli_exception(e, verbose)


def _build_options(comments: bool, entry: Optional[str]) -> CompilerOptions:
    """Environment defaults, overridden by explicit command-line options."""
    try:
        options = CompilerOptions.from_env()
        overrides = {}
        if comments:
            overrides["output_comments"] = True
        if entry is not None:
            overrides["entry_point"] = entry
        return dataclasses.replace(options, **overrides)
    except ValueError as e:
        raise click.BadParameter(str(e)) from e


if __name__ == "__main__":
    main()
