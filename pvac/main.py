import os
import sys
import argparse
from pvac.utils.keystore import (create_keystore, store_key_in_keystore, retrieve_key_from_keystore)
from pvac.utils.menu import (
    menu_inspect, menu_gsum, menu_ratio_attack, menu_generate_keystore, menu_store_seckey,
    menu_export_seckey
)
from pvac.models import (AnalyzerConfig, SeedMatch, FormatError, DomainError, bcolors)
from pvac.core import (inspect_files, gsum_file, ratio_attack_files, load_seckey, save_seckey)

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PVAC - codec, public evaluation and seed-reuse analysis")
    subparsers = parser.add_subparsers(dest="command")

    inspect_parser = subparsers.add_parser("inspect", help="Show the public structure of a ciphertext file")
    inspect_parser.add_argument("--ct", required=True, help="Ciphertext file")
    inspect_parser.add_argument("--pk", help="Public key file (optional)")
    inspect_parser.add_argument("--edges", type=int, default=AnalyzerConfig.preview_edges, help="Edges to preview")

    gsum_parser = subparsers.add_parser("gsum", help="Compute the public G-sum of a ciphertext")
    gsum_parser.add_argument("--pk", default="pk.bin", help="Public key file")
    gsum_parser.add_argument("--ct", required=True, help="Ciphertext file")
    gsum_parser.add_argument("--index", type=int, default=0, help="Ciphertext index within the file")

    ratio_parser = subparsers.add_parser("ratio", help="Seed-reuse ratio attack on two ciphertexts")
    ratio_parser.add_argument("--a", required=True, help="First ciphertext file")
    ratio_parser.add_argument("--b", required=True, help="Second ciphertext file")
    ratio_parser.add_argument("--index", type=int, default=0, help="Ciphertext index within each file")
    ratio_parser.add_argument("--strict", action="store_true", help="Also require nonce.hi to match")

    ks_create_parser = subparsers.add_parser("keystore-create", help="Create encrypted keystore")
    ks_create_parser.add_argument("--passphrase", required=True, help="Keystore passphrase")
    ks_create_parser.add_argument("--keystore", default="keystore.json", help="Keystore filename")

    ks_store_parser = subparsers.add_parser("keystore-store", help="Store a secret key file in the keystore")
    ks_store_parser.add_argument("--sk", default="sk.bin", help="Secret key file")
    ks_store_parser.add_argument("--keystore", default="keystore.json", help="Keystore filename")
    ks_store_parser.add_argument("--passphrase", required=True, help="Keystore passphrase")
    ks_store_parser.add_argument("--key_name", required=True, help="Key name in keystore")

    ks_export_parser = subparsers.add_parser("keystore-export", help="Write a stored secret key back to a file")
    ks_export_parser.add_argument("--out", default="sk.bin", help="Output secret key file")
    ks_export_parser.add_argument("--keystore", default="keystore.json", help="Keystore filename")
    ks_export_parser.add_argument("--passphrase", required=True, help="Keystore passphrase")
    ks_export_parser.add_argument("--key_name", required=True, help="Key name in keystore")
    return parser

def interactive_menu():
    _=os.system("cls") | os.system("clear")
    while True:
        print(f"{bcolors.WARNING}{bcolors.BOLD}PVAC - codec, public evaluation and seed-reuse analysis{bcolors.ENDC}")
        print(f"{bcolors.GREY}{bcolors.BOLD}========================================{bcolors.ENDC}")
        print("")
        print(f"{bcolors.BOLD}1){bcolors.ENDC} Inspect ciphertext file")
        print(f"{bcolors.BOLD}2){bcolors.ENDC} Compute public G-sum")
        print(f"{bcolors.BOLD}3){bcolors.ENDC} Seed-reuse ratio attack")
        print(f"{bcolors.BOLD}4){bcolors.ENDC} Create encrypted keystore")
        print(f"{bcolors.BOLD}5){bcolors.ENDC} Store secret key in keystore")
        print(f"{bcolors.BOLD}6){bcolors.ENDC} Export secret key from keystore")
        print(f"{bcolors.BOLD}0){bcolors.ENDC} Exit")
        print("")
        choice = input(f"{bcolors.BOLD}Choice: {bcolors.ENDC}").strip()
        try:
            match choice:
                case "0":
                    break
                case "1":
                    menu_inspect()
                case "2":
                    menu_gsum()
                case "3":
                    menu_ratio_attack()
                case "4":
                    menu_generate_keystore()
                case "5":
                    menu_store_seckey()
                case "6":
                    menu_export_seckey()
                case _:
                    print("Invalid choice")
        except (OSError, ValueError, IndexError, DomainError) as e:
            print(f"{bcolors.FAIL}ERROR:{bcolors.ENDC}", e)
        _=input(f"{bcolors.OKGREEN}Enter to continue...{bcolors.ENDC}")
        _=os.system("cls") | os.system("clear")

def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        match args.command:
            case "inspect":
                inspect_files(args.ct, args.pk, AnalyzerConfig(preview_edges=args.edges))
            case "gsum":
                gsum_file(args.pk, args.ct, args.index)
            case "ratio":
                mode = SeedMatch.STRICT if args.strict else SeedMatch.LOOSE
                ratio_attack_files(args.a, args.b, AnalyzerConfig(seed_match=mode), args.index)
            case "keystore-create":
                create_keystore(args.passphrase, args.keystore)
                print(f"Keystore created: {args.keystore}")
            case "keystore-store":
                store_key_in_keystore(args.passphrase, args.key_name, load_seckey(args.sk), args.keystore)
                print(f"Secret key {args.sk} stored in {args.keystore} as {args.key_name}")
            case "keystore-export":
                save_seckey(retrieve_key_from_keystore(args.passphrase, args.key_name, args.keystore), args.out)
                print(f"Secret key {args.key_name} written to {args.out}")
            case _:
                interactive_menu()
    except FormatError as e:
        print(f"{bcolors.FAIL}FORMAT ERROR:{bcolors.ENDC}", e)
        return 1
    except (OSError, ValueError, IndexError, DomainError) as e:
        print(f"{bcolors.FAIL}ERROR:{bcolors.ENDC}", e)
        return 1
    return 0

if __name__ == "__main__":
    sys.exit(main())
