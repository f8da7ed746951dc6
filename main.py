from pathlib import Path

from rich.pretty import pprint

from argtree import *


class Server:
    port: int = Option("port", "p", default=8080)
    config: Path = Option(must_exist=True)

    @command
    def start(self):
        pprint({"port": self.port, "config": self.config})


class Application:
    verbose: bool = Option(shortcut="v")
    server: Server = Command()

    @command("greet")
    def greet(self, name: str, count: int = Option("n")):
        for _ in range(max(count, 1)):
            pprint(f"hello {name}")


if __name__ == '__main__':
    pprint(invoke(Application(), prompt="app", colorful=True))
