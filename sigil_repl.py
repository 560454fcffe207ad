import sys

from sigil.sigil_runtime import SigilRunner
from sigil.sigil_printer import Printer
from sigil.sigil_serialize import serialize

# A basic input prompt.
def read_line(prompt: str) -> str:
    return input(prompt)

def compile_one(source: str):
    """Compile a single literal non-interactively and exit with appropriate status."""
    runner = SigilRunner()
    printer = Printer()
    result = runner.handle_literal(source)
    if result.status == 'error':
        print(result.format_error(), file=sys.stderr)
        raise SystemExit(1)
    print(printer.pformat(result.value))

def main(argv=None):
    """Compile the literal given as an argument, otherwise start the interactive REPL."""
    argv = sys.argv[1:] if argv is None else argv
    if argv and not argv[0].startswith("-"):
        compile_one(argv[0])
        return

    print("SIGIL REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit. ':tags' lists literal tags.")

    runner = SigilRunner()
    printer = Printer()

    while True:
        try:
            line = read_line(">> ").strip()
        except EOFError:
            print("\nExiting.")
            break

        if not line:
            continue
        if line == "exit":
            break
        if line == ":tags":
            print(serialize(runner.registry.describe(), fmt="yaml"), end="")
            continue

        result = runner.handle_literal(line)
        if result.status == 'error':
            print(result.format_error(), file=sys.stderr)
            continue

        for effect in result.side_effects:
            if effect.get('topics') == ['stdout']:
                print(effect.get('message', ''))
        print(printer.pformat(result.value))

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\nExiting.")
