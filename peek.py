import asyncio
import sys
from pathlib import Path

from peek.peek_config import Config
from peek.peek_printer import Printer
from peek.peek_runtime import Interpreter
from peek.peek_serialize import load_document

USAGE = "usage: peek.py [--config FILE] [DATA_FILE]"


# A basic awaitable input prompt.
async def ainput(prompt: str) -> str:
    loop = asyncio.get_running_loop()
    sys.stdout.write(prompt)
    sys.stdout.flush()
    return await loop.run_in_executor(None, sys.stdin.readline)


def _parse_args(argv):
    config_path = None
    data_path = None
    args = list(argv)
    while args:
        arg = args.pop(0)
        if arg in ("-c", "--config"):
            if not args:
                raise SystemExit(USAGE)
            config_path = args.pop(0)
        elif arg.startswith("-"):
            raise SystemExit(USAGE)
        elif data_path is None:
            data_path = arg
        else:
            raise SystemExit(USAGE)
    return config_path, data_path


def build_session(argv):
    """Creates the interpreter and printer, binding a data file as `data` when given."""
    config_path, data_path = _parse_args(argv)
    if config_path:
        config = Config.from_file(config_path)
    else:
        config = Config.from_env(tag="json")
    interpreter = Interpreter(config)
    if data_path:
        p = Path(data_path)
        try:
            interpreter.bind("data", load_document(p))
        except FileNotFoundError:
            print(f"Error: file not found: {data_path}", file=sys.stderr)
            raise SystemExit(1)
    return interpreter, Printer.from_config(config)


async def main(argv=None):
    """Start the interactive REPL."""
    interpreter, printer = build_session(sys.argv[1:] if argv is None else argv)

    print("peek REPL v0.1")
    print("Type 'exit' or press Ctrl+D to quit.")

    # REPL Loop
    while True:
        try:
            raw = await ainput(">> ")
            if raw == "":
                raise EOFError
            line = raw.strip()

            if line == "exit":
                break

            for result in interpreter.eval(line):
                if result.status == 'error':
                    # Pretty, location-aware message
                    print(result.format_error(), file=sys.stderr)
                    continue
                text = printer.pformat(result.value)
                if text:
                    print(text)

        except EOFError:
            print("\nExiting.")
            break
        except Exception as e:
            # Rendering failures must not end the session
            print(f"Error: {e}", file=sys.stderr)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting.")
