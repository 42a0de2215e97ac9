import argparse
import logging
import sys

from intolescan import config
from intolescan.allergens import INTOLERANCES, get_label
from intolescan.session import ScanSession
from intolescan.utils import status_badge


def print_report(result, out=None, colour: bool = False) -> None:
    out = out or sys.stdout
    if result is None:
        print("Nothing to show.", file=out)
        return
    product = result.product
    print("\n=== PRODUCT ===", file=out)
    print(f"Name: {product.name if product else 'Unknown product'}", file=out)
    if product and product.brand:
        print(f"Brand: {product.brand}", file=out)
    print(f"Code: {result.code}", file=out)
    print(f"Verdict: {status_badge(result.verdict.status, colour)}", file=out)
    for n in result.verdict.notes:
        print(f"  - {n}", file=out)
    if product:
        tags = [t.rsplit(":", 1)[-1] for t in product.allergen_tags]
        print(f"Allergens (database): {', '.join(tags) if tags else 'Not listed'}", file=out)
        print(f"Ingredients: {product.ingredient_text or 'Not listed'}", file=out)
    if result.escalated:
        print("(AI second opinion requested)", file=out)
    print("===============\n", file=out)


def print_profile(profile, lang: str, out=None) -> None:
    out = out or sys.stdout
    if profile is None:
        print("No profile yet. Run 'intolescan profile complete' to create one.", file=out)
        return
    print(f"Name: {profile.name}", file=out)
    for key in INTOLERANCES:
        mark = "x" if key in profile.intolerances else " "
        print(f"  [{mark}] {key:<13} {get_label(key, lang)}", file=out)


def print_history(history, out=None) -> None:
    out = out or sys.stdout
    if not history:
        print("History is empty.", file=out)
        return
    for h in history:
        when = h.ts.astimezone().strftime("%Y-%m-%d %H:%M")
        brand = f"{h.brand} • " if h.brand else ""
        print(f"{when}  {status_badge(h.status):<7} {h.name} ({brand}{h.code})", file=out)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="intolescan",
                                     description="Check packaged food against your intolerance profile.")
    parser.add_argument("--lang", default=config.NOTES_LANG, choices=["en", "sk", "cs"],
                        help="language of the verdict notes")
    parser.add_argument("--no-colour", action="store_true", help="plain verdict labels")
    sub = parser.add_subparsers(dest="command", required=True)

    p_profile = sub.add_parser("profile", help="show or edit your profile")
    p_profile.add_argument("action", nargs="?", default="show",
                           choices=["show", "toggle", "complete", "reset"])
    p_profile.add_argument("value", nargs="?", default="", help="name or intolerance key")

    p_lookup = sub.add_parser("lookup", help="look up a product code typed by hand")
    p_lookup.add_argument("code")

    p_scan = sub.add_parser("scan", help="scan a barcode with the camera or from an image")
    p_scan.add_argument("--device", type=int, default=None, help="camera index")
    p_scan.add_argument("--timeout", type=float, default=30.0, help="seconds to wait for a code")
    p_scan.add_argument("--image", default=None, help="decode a barcode from this image instead")

    p_history = sub.add_parser("history", help="recent scans")
    p_history.add_argument("--clear", action="store_true")

    p_serve = sub.add_parser("serve", help="run the HTTP API")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    return parser


def _scan(session: ScanSession, args):
    # camera libraries are only needed for this command
    from intolescan.barcode import BarcodeScanner, decode_image

    if args.image:
        code = decode_image(args.image)
        if not code:
            print(f"No barcode found in {args.image}.")
            return None
        return session.search(code)

    scanner = BarcodeScanner(device_index=args.device)
    print("Point the camera at a barcode...")
    result = session.scan(scanner, timeout=args.timeout)
    if session.error:
        print(f"Error: {session.error}")
    elif result is None:
        print("No barcode scanned.")
    return result


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=config.LOG_LEVEL)
    colour = not args.no_colour and sys.stdout.isatty()

    if args.command == "serve":
        import uvicorn
        uvicorn.run("intolescan.main:app", host=args.host, port=args.port)
        return 0

    session = ScanSession(lang=args.lang)

    if args.command == "profile":
        if args.action == "toggle":
            try:
                session.toggle_intolerance(args.value)
            except ValueError as e:
                print(f"Error: {e}. Known keys: {', '.join(INTOLERANCES)}")
                return 2
        elif args.action == "complete":
            session.complete_profile(args.value)
        elif args.action == "reset":
            session.reset_profile()
        print_profile(session.profile, args.lang)
        return 0

    if args.command == "history":
        if args.clear:
            session.clear_history()
        print_history(session.history)
        return 0

    if args.command == "lookup":
        result = session.search(args.code)
        print_report(result, colour=colour)
        return 0 if result else 1

    if args.command == "scan":
        result = _scan(session, args)
        if result is None:
            return 1
        print_report(result, colour=colour)
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
