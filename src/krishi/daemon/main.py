"""Server entrypoint for the Krishi-Mitra voice backend."""

from __future__ import annotations

import argparse

from src.krishi.runtime.service import get_runtime_service


def run_server(*, host: str = "127.0.0.1", port: int = 8000, warm: bool = True) -> int:
    if warm:
        # Builds the store and collaborators before the first request arrives.
        get_runtime_service().health()

    try:
        import uvicorn
    except Exception as exc:  # pragma: no cover - dependency error guard
        raise RuntimeError("uvicorn is required to serve the app") from exc

    uvicorn.run("app.main:app", host=host, port=port, reload=False)
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the Krishi-Mitra voice backend.")
    parser.add_argument("--host", default="127.0.0.1", help="Bind host.")
    parser.add_argument("--port", type=int, default=8000, help="Bind port.")
    parser.add_argument(
        "--no-warm",
        action="store_true",
        help="Skip building the runtime before the server starts.",
    )
    args = parser.parse_args(argv)
    return run_server(host=args.host, port=args.port, warm=not args.no_warm)


if __name__ == "__main__":
    raise SystemExit(main())
