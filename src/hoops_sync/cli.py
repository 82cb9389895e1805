from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Dict

from .app import build_sync_client, create_app
from .config import load_config
from .logging_utils import log_json, setup_logging
from .mapper import map_details, map_game, map_players, map_teams

MAPPERS = {
    "players": map_players,
    "teams": map_teams,
    "details": map_details,
}


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="hoops-sync")
    parser.add_argument("--config", default="config.yaml", help="Path to YAML config (optional)")
    sub = parser.add_subparsers(dest="command", required=True)

    parse = sub.add_parser("parse", help="Map a game JSON file and print the records")
    parse.add_argument("path")
    parse.add_argument("--table", choices=["players", "teams", "details", "all"], default="all")

    sync = sub.add_parser("sync", help="Map a game JSON file and sync all tables")
    sync.add_argument("path")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host")
    serve.add_argument("--port", type=int)

    return parser.parse_args(argv)


def _read_document(path: str) -> Dict[str, Any]:
    if path == "-":
        return json.load(sys.stdin)
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _parse(doc: Dict[str, Any], table: str) -> Any:
    if table == "all":
        game = map_game(doc)
        return {"players": game.players, "teams": game.teams, "details": game.details}
    return MAPPERS[table](doc)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    cfg = load_config(args.config)
    logger = setup_logging(cfg.log_level)

    if args.command == "parse":
        out = _parse(_read_document(args.path), args.table)
        print(json.dumps(out, ensure_ascii=False, indent=2, default=str))
    elif args.command == "sync":
        doc = _read_document(args.path)
        sync = build_sync_client(cfg, logger)

        async def _run() -> Dict[str, Any]:
            try:
                return await sync.submit_game(map_game(doc))
            finally:
                await sync.client.close()

        responses = asyncio.run(_run())
        log_json(logger, "sync_done", tables=sorted(responses))
    elif args.command == "serve":
        import uvicorn

        server = cfg.server
        uvicorn.run(
            create_app(cfg),
            host=args.host or server.get("host", "0.0.0.0"),
            port=args.port or int(server.get("port", 3000)),
            log_config=None,
        )
