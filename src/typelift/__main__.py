"""Module entrypoint for ``python -m typelift``."""

from __future__ import annotations

from typelift.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
