import struct
import pytest

from pvac.main import (main)
from pvac.models import (MAGIC_CT, FormatError, Fp)
from pvac.core import (
    save_pubkey, save_seckey, save_ciphertexts, load_pubkey, load_seckey, load_ciphertexts,
    load_ciphertext_files, gsum_file, ratio_attack_files, decrypt_file
)
from pvac.utils.analysis import (gsum)


@pytest.fixture
def data_dir(tmp_path, pk, sk, division_corpus):
    """Write pk.bin, sk.bin, a.ct, b.ct and divresult.ct into a scratch directory."""
    save_pubkey(pk, str(tmp_path / "pk.bin"))
    save_seckey(sk, str(tmp_path / "sk.bin"))
    for name in ("a", "b", "divresult"):
        save_ciphertexts([division_corpus[name]], str(tmp_path / f"{name}.ct"))
    return tmp_path

# -----------------------------
# File helpers
# -----------------------------
def test_files_round_trip(data_dir, pk, sk, division_corpus):
    assert load_pubkey(str(data_dir / "pk.bin")) == pk
    assert load_seckey(str(data_dir / "sk.bin")) == sk
    assert load_ciphertexts(str(data_dir / "a.ct")) == [division_corpus["a"]]


def test_batch_loading_keeps_input_order(data_dir, division_corpus):
    names = ["divresult", "a", "b"]
    loaded = load_ciphertext_files([str(data_dir / f"{n}.ct") for n in names])
    assert [cts[0] for cts in loaded] == [division_corpus[n] for n in names]


def test_truncated_file_raises_format_error(data_dir):
    path = data_dir / "a.ct"
    path.write_bytes(path.read_bytes()[:-3])
    with pytest.raises(FormatError):
        load_ciphertexts(str(path))


def test_gsum_file_uses_public_key_only(data_dir, pk, division_corpus, capsys):
    g = gsum_file(str(data_dir / "pk.bin"), str(data_dir / "b.ct"))
    assert g == gsum(pk, division_corpus["b"])
    assert "not a decryption" in capsys.readouterr().out


def test_gsum_file_index_out_of_range(data_dir):
    with pytest.raises(IndexError):
        gsum_file(str(data_dir / "pk.bin"), str(data_dir / "b.ct"), index=1)


def test_ratio_attack_files(data_dir, capsys):
    report = ratio_attack_files(str(data_dir / "a.ct"), str(data_dir / "divresult.ct"))
    assert report.ratio == Fp.from_int(7)
    assert "Ratio k = w_a / w_b: 7" in capsys.readouterr().out
    report = ratio_attack_files(str(data_dir / "a.ct"), str(data_dir / "b.ct"))
    assert report.ratio is None
    assert "ratio attack not applicable" in capsys.readouterr().out


def test_decrypt_file_through_backend(data_dir, scheme):
    values = decrypt_file(str(data_dir / "pk.bin"), str(data_dir / "sk.bin"), str(data_dir / "divresult.ct"), scheme)
    assert values == [Fp.from_int(5) / Fp.from_int(7)]

# -----------------------------
# Command line
# -----------------------------
def test_cli_inspect(data_dir, capsys):
    assert main(["inspect", "--ct", str(data_dir / "a.ct"), "--pk", str(data_dir / "pk.bin"), "--edges", "1"]) == 0
    out = capsys.readouterr().out
    assert "Layer 0: BASE" in out
    assert "Layer 2: PROD (pa=0, pb=1)" in out
    assert "Edge 0:" in out
    assert "... and 1 more edges" in out
    assert "consistent" in out


def test_cli_gsum(data_dir, capsys):
    assert main(["gsum", "--pk", str(data_dir / "pk.bin"), "--ct", str(data_dir / "a.ct")]) == 0
    assert "G-sum" in capsys.readouterr().out


def test_cli_ratio_strict(data_dir, capsys):
    assert main(["ratio", "--a", str(data_dir / "a.ct"), "--b", str(data_dir / "divresult.ct"), "--strict"]) == 0
    assert "Seed reuse detected" in capsys.readouterr().out


def test_cli_bad_magic_exits_non_zero(data_dir, capsys):
    path = data_dir / "bad.ct"
    data = bytearray((data_dir / "a.ct").read_bytes())
    data[0:4] = struct.pack("<I", MAGIC_CT ^ 1)
    path.write_bytes(bytes(data))
    assert main(["gsum", "--pk", str(data_dir / "pk.bin"), "--ct", str(path)]) == 1
    assert "FORMAT ERROR" in capsys.readouterr().out


def test_cli_missing_file_exits_non_zero(tmp_path, capsys):
    assert main(["inspect", "--ct", str(tmp_path / "nope.ct")]) == 1
    assert "ERROR" in capsys.readouterr().out


def test_cli_keystore_round_trip(data_dir, sk):
    ks = str(data_dir / "keystore.json")
    out = str(data_dir / "restored.bin")
    assert main(["keystore-create", "--passphrase", "pw", "--keystore", ks]) == 0
    assert main(["keystore-store", "--sk", str(data_dir / "sk.bin"), "--keystore", ks,
                 "--passphrase", "pw", "--key_name", "bounty"]) == 0
    assert main(["keystore-export", "--out", out, "--keystore", ks,
                 "--passphrase", "pw", "--key_name", "bounty"]) == 0
    assert load_seckey(out) == sk
    assert (data_dir / "restored.bin").read_bytes() == (data_dir / "sk.bin").read_bytes()


def test_cli_keystore_wrong_passphrase(data_dir, capsys):
    ks = str(data_dir / "keystore.json")
    main(["keystore-create", "--passphrase", "pw", "--keystore", ks])
    main(["keystore-store", "--sk", str(data_dir / "sk.bin"), "--keystore", ks, "--passphrase", "pw", "--key_name", "k"])
    capsys.readouterr()
    assert main(["keystore-export", "--keystore", ks, "--passphrase", "nope", "--key_name", "k",
                 "--out", str(data_dir / "x.bin")]) == 1
    assert "Wrong passphrase" in capsys.readouterr().out


def test_cli_malformed_keystore_exits_non_zero(data_dir, capsys):
    ks = data_dir / "keystore.json"
    ks.write_text('{"keys": {}}')
    assert main(["keystore-export", "--keystore", str(ks), "--passphrase", "pw", "--key_name", "k",
                 "--out", str(data_dir / "x.bin")]) == 1
    assert "is not a PVAC keystore" in capsys.readouterr().out
