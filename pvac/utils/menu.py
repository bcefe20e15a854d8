import os
from pvac.models import (AnalyzerConfig, SeedMatch)
from pvac.utils.keystore import (create_keystore, store_key_in_keystore, retrieve_key_from_keystore)
from pvac.core import (inspect_files, gsum_file, ratio_attack_files, load_seckey, save_seckey)

# -----------------------------
# Interactive Menu Actions
# -----------------------------
def _existing(path: str) -> bool:
    if not os.path.exists(path):
        print(f"{path} not found.")
        return False
    return True

def menu_inspect():
    """
    Interactive structure dump of a ciphertext file.

    Shows only what any observer of the file can see: layer seeds, edge
    indices, signs and blinded weights.
    """
    ct_path = input("Ciphertext file (default a.ct): ").strip() or "a.ct"
    pk_path = input("Public key file (blank = skip): ").strip() or None
    if not _existing(ct_path) or (pk_path and not _existing(pk_path)):
        return
    edges = int(input(f"Edges to preview (default {AnalyzerConfig.preview_edges}): ").strip() or AnalyzerConfig.preview_edges)
    inspect_files(ct_path, pk_path, AnalyzerConfig(preview_edges=edges))

def menu_gsum():
    pk_path = input("Public key file (default pk.bin): ").strip() or "pk.bin"
    ct_path = input("Ciphertext file (default b.ct): ").strip() or "b.ct"
    if not _existing(pk_path) or not _existing(ct_path):
        return
    index = int(input("Ciphertext index (default 0): ").strip() or 0)
    gsum_file(pk_path, ct_path, index)

def menu_ratio_attack():
    """
    Interactive seed-reuse ratio attack.

    Needs two ciphertext files and no keys. Succeeds only when the two
    ciphertexts were built from the same secret randomness.
    """
    a_path = input("First ciphertext (default a.ct): ").strip() or "a.ct"
    b_path = input("Second ciphertext (default divresult.ct): ").strip() or "divresult.ct"
    if not _existing(a_path) or not _existing(b_path):
        return
    strict = (input("Require nonce.hi to match too? (y/n) [n]: ").strip().lower() or "n") == "y"
    mode = SeedMatch.STRICT if strict else SeedMatch.LOOSE
    ratio_attack_files(a_path, b_path, AnalyzerConfig(seed_match=mode))

def menu_generate_keystore():
    passphrase = input("Enter keystore passphrase: ")
    keystore_file = input("Keystore filename (default keystore.json): ").strip() or "keystore.json"
    create_keystore(passphrase, keystore_file)
    print(f"Keystore created at {keystore_file}")

def menu_store_seckey():
    sk_path = input("Secret key file (default sk.bin): ").strip() or "sk.bin"
    if not _existing(sk_path):
        return
    keystore = input("Keystore filename (default keystore.json): ").strip() or "keystore.json"
    passphrase = input("Keystore passphrase: ")
    key_name = input("Key name in keystore: ")
    store_key_in_keystore(passphrase, key_name, load_seckey(sk_path), keystore)
    print(f"Secret key stored in {keystore} as {key_name}")

def menu_export_seckey():
    keystore = input("Keystore filename (default keystore.json): ").strip() or "keystore.json"
    if not _existing(keystore):
        return
    passphrase = input("Keystore passphrase: ")
    key_name = input("Key name in keystore: ")
    out_path = input("Output file (default sk.bin): ").strip() or "sk.bin"
    save_seckey(retrieve_key_from_keystore(passphrase, key_name, keystore), out_path)
    print(f"Secret key written to {out_path}")
