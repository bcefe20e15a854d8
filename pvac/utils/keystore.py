import json
import secrets
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from cryptography.hazmat.primitives import hashes
from base64 import b64encode, b64decode

from pvac.models import (SecKey, bcolors)
from pvac.utils.codec import (encode_seckey, decode_seckey)

KDF_ITERATIONS = 100000

# -----------------------------
# Key Management
# -----------------------------
def _derive_fernet(passphrase: str, salt: bytes) -> Fernet:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,                # 256-bit key for Fernet
        salt=salt,
        iterations=KDF_ITERATIONS,
    )
    return Fernet(b64encode(kdf.derive(passphrase.encode())))

def create_keystore(passphrase: str, keystore_file: str):
    """
    Create an empty encrypted keystore for PVAC secret keys.

    Secret keys are kept in their binary sk.bin form, encrypted with Fernet
    under a PBKDF2-HMAC-SHA256 key derived from the passphrase.

    Args:
        passphrase: User passphrase for keystore encryption
        keystore_file: File path for keystore storage
    """
    salt = secrets.token_bytes(16)
    # Derive once so a broken passphrase setup fails here and not on first store
    _derive_fernet(passphrase, salt)
    keystore = {"salt": b64encode(salt).decode(), "keys": {}}
    with open(keystore_file, "w") as kf:
        json.dump(keystore, kf)

def load_keystore(passphrase: str, keystore_file: str):
    """
    Load a keystore and rebuild its Fernet cipher from the passphrase.

    Returns:
        Tuple of (keystore_data, fernet_cipher)

    Raises:
        ValueError: If the file lacks the salt or keys entries
    """
    with open(keystore_file, "r") as kf:
        keystore = json.load(kf)
    if not isinstance(keystore, dict) or not isinstance(keystore.get("salt"), str) \
            or not isinstance(keystore.get("keys"), dict):
        raise ValueError(f"{bcolors.FAIL}{keystore_file} is not a PVAC keystore{bcolors.ENDC}")
    salt = b64decode(keystore["salt"])
    return keystore, _derive_fernet(passphrase, salt)

def store_key_in_keystore(passphrase: str, key_name: str, sk: SecKey, keystore_file: str):
    keystore, fernet = load_keystore(passphrase, keystore_file)
    keystore["keys"][key_name] = fernet.encrypt(encode_seckey(sk)).decode()
    with open(keystore_file, "w") as kf:
        json.dump(keystore, kf)

def retrieve_key_from_keystore(passphrase: str, key_name: str, keystore_file: str) -> SecKey:
    """
    Decrypt and decode a secret key stored under `key_name`.

    Raises:
        ValueError: If the key is missing or the passphrase is wrong
        FormatError: If the decrypted blob is not a valid secret key
    """
    keystore, fernet = load_keystore(passphrase, keystore_file)
    if key_name not in keystore["keys"]:
        raise ValueError(f"{bcolors.FAIL}Key {key_name} not found in keystore{bcolors.ENDC}")
    try:
        blob = fernet.decrypt(keystore["keys"][key_name].encode())
    except InvalidToken as e:
        raise ValueError(f"{bcolors.FAIL}Failed to decrypt key. Wrong passphrase?{bcolors.ENDC}") from e
    return decode_seckey(blob)
