# cli version of bmpstego, hides a whole file inside a .bmp and gets it back
#
# how to use it:
#   hide a file:
#     python cli.py encode -i beach.bmp -s notes.txt
#     python cli.py encode -i beach.bmp -s notes.txt -o beach_stego.bmp -g "#*"
#
#   get it back (the extension comes out of the image, -o is just the base name):
#     python cli.py decode -i beach_stego.bmp
#     python cli.py decode -i beach_stego.bmp -o recovered -g "#*"
#
#   check how much you can hide in an image:
#     python cli.py info -i beach.bmp -e .txt

import argparse
import sys

from steganography import (
    DEFAULT_OUTPUT_BASE,
    DEFAULT_SIGNATURE,
    DEFAULT_STEGO_NAME,
    hide_file,
    image_capacity,
    reveal_file,
)


def _is_bmp(path: str) -> bool:
    return path.lower().endswith(".bmp")


def _step_printer(args):
    # -v prints one line per framing step
    if not args.verbose:
        return None
    return lambda step: print(f"    [i] {step}")


def cmd_encode(args):
    if args.output is None:
        args.output = DEFAULT_STEGO_NAME
        print(f"No stego image file provided. Using default: {args.output}")
    print(f"\n[→] Hiding '{args.secret}' inside '{args.image}' ...")
    result = hide_file(
        args.image,
        args.secret,
        output_path=args.output,
        signature=args.signature,
        on_step=_step_printer(args),
    )
    if result["success"]:
        print(f"[✓] {result['message']}")
        print(f"    Output    : {result['output']}")
        print(f"    Extension : {result['extension'] or '(none)'}")
        print(f"    Used      : {result['required']:,} of {result['usable']:,} carrier bytes")
    else:
        print(f"[✗] {result['message']}", file=sys.stderr)
        sys.exit(1)


def cmd_decode(args):
    if args.output is None:
        args.output = DEFAULT_OUTPUT_BASE
        print(f"No output file provided. Using default: {args.output}")
    print(f"\n[→] Extracting secret file from '{args.image}' ...")
    result = reveal_file(
        args.image,
        signature=args.signature,
        output_base=args.output,
        on_step=_step_printer(args),
    )
    if result["success"]:
        print(f"[✓] {result['message']}")
        print(f"    Output : {result['output']}")
        print(f"    Size   : {result['payload_size']:,} bytes")
    else:
        print(f"[✗] {result['message']}", file=sys.stderr)
        sys.exit(1)


def cmd_info(args):
    result = image_capacity(args.image, signature=args.signature, extension=args.extension)
    if result["success"]:
        print(f"\n[i] Image info for '{args.image}':")
        print(f"    Dimensions : {result['width']} × {result['height']} px")
        print(f"    Mode       : {result['mode']} ({result['format']})")
        print(f"    Usable     : {result['usable_bytes']:,} carrier bytes")
        print(f"    Capacity   : ≈ {result['capacity_bytes']:,} bytes of secret file")
    else:
        print(f"[✗] {result.get('message', 'Unknown error')}", file=sys.stderr)
        sys.exit(1)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bmpstego",
        description="bmpstego: hide files in 24-bit BMP images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    enc = sub.add_parser("encode", help="Hide a file inside a .bmp image")
    enc.add_argument("-i", "--image",     required=True, help="Carrier image path (.bmp)")
    enc.add_argument("-s", "--secret",    required=True, help="Secret file to hide")
    enc.add_argument("-o", "--output",    default=None,  help=f"Output stego image (.bmp, default {DEFAULT_STEGO_NAME})")
    enc.add_argument("-g", "--signature", default=DEFAULT_SIGNATURE, help="Signature (magic string)")
    enc.add_argument("-v", "--verbose",   action="store_true", help="Print every encoding step")

    dec = sub.add_parser("decode", help="Recover a hidden file from a .bmp image")
    dec.add_argument("-i", "--image",     required=True, help="Stego image path (.bmp)")
    dec.add_argument("-o", "--output",    default=None,  help=f"Output base name (default {DEFAULT_OUTPUT_BASE})")
    dec.add_argument("-g", "--signature", default=DEFAULT_SIGNATURE, help="Signature the image was encoded with")
    dec.add_argument("-v", "--verbose",   action="store_true", help="Print every decoding step")

    inf = sub.add_parser("info", help="Show image info and how much it can hide")
    inf.add_argument("-i", "--image",     required=True, help="Image path (.bmp)")
    inf.add_argument("-g", "--signature", default=DEFAULT_SIGNATURE, help="Signature to account for")
    inf.add_argument("-e", "--extension", default="", help="Extension of the file you plan to hide")

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    # carrier and stego images have to be .bmp files
    if not _is_bmp(args.image):
        parser.error("image must have a .bmp extension")
    if args.command == "encode" and args.output is not None and not _is_bmp(args.output):
        parser.error("output image must have a .bmp extension")

    dispatch = {"encode": cmd_encode, "decode": cmd_decode, "info": cmd_info}
    dispatch[args.command](args)


if __name__ == "__main__":
    main()
