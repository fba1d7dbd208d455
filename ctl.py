import argparse
import os
from typing import Optional

import requests

API_BASE = os.getenv("BRIDGE_API_BASE", "http://localhost:3000")
API_PASSWORD = os.getenv("API_PASSWORD")


def _do(method: str, path: str, params: Optional[dict] = None) -> requests.Response:
    params = dict(params or {})
    if API_PASSWORD:
        params["password"] = API_PASSWORD
    url = f"{API_BASE}{path}"
    # charging can take up to the 40s reply timeout on the bridge side
    resp = requests.request(method, url, params=params, headers={"Connection": "close"}, timeout=60)
    print(f"{method} {path} -> {resp.status_code} {resp.reason}")
    print(resp.text)
    return resp


def start_charge(charger: Optional[str], if_home: bool = False) -> None:
    params = {"charger": charger} if charger else {}
    path = "/gigacharger/start_if_home" if if_home else "/gigacharger/start"
    _do("GET", path, params)


def find_vehicle(flashes: int, horn: bool) -> None:
    _do("GET", "/vehicle/find", {"flashes": flashes, "horn": str(horn).lower()})


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Control the Gigacharger bridge over its HTTP API")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_start = sub.add_parser("start", help="start charging")
    p_start.add_argument("charger", nargs="?")

    p_home = sub.add_parser("start-if-home", help="start charging if the car is at home")
    p_home.add_argument("charger", nargs="?")

    sub.add_parser("logout", help="drop the cached Gigacharger session")
    sub.add_parser("location", help="show the vehicle location")
    for name in ("unlock", "lock", "frunk", "climate"):
        sub.add_parser(name, help=f"vehicle: {name}")

    p_find = sub.add_parser("find", help="flash the lights (and honk)")
    p_find.add_argument("--flashes", type=int, default=1)
    p_find.add_argument("--horn", action="store_true")

    return parser.parse_args()


def main() -> None:
    args = parse_args()
    if args.cmd == "start":
        start_charge(args.charger)
    elif args.cmd == "start-if-home":
        start_charge(args.charger, if_home=True)
    elif args.cmd == "logout":
        _do("POST", "/gigacharger/logout")
    elif args.cmd == "find":
        find_vehicle(args.flashes, args.horn)
    else:
        _do("GET", f"/vehicle/{args.cmd}")


if __name__ == "__main__":
    main()
