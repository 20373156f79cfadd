import json

import pytest

from merkle_airdrop.tooling.cli import load_allocations_csv, main
from merkle_airdrop.tooling.credential_issuer import signer_identity
from merkle_airdrop.tooling.standard_merkle_tree import StandardMerkleTree

from conftest import SIGNER_KEYS, UNBOUNDED, USER1, USER2

KEY_HEX = "0x" + SIGNER_KEYS[0].to_bytes().hex()


@pytest.fixture
def allocations_csv(tmp_path):
    path = tmp_path / "allocations.csv"
    path.write_text(
        "signer,amount,begin_time,end_time\n"
        f"{signer_identity(SIGNER_KEYS[0])},30,1000,2000\n"
        f"{signer_identity(SIGNER_KEYS[1])},2500,1000,\n"
    )
    return path


@pytest.fixture
def tree_path(tmp_path, allocations_csv, capsys):
    out = tmp_path / "tree.json"
    assert main(["build", "--csv", str(allocations_csv), "--out", str(out)]) == 0
    capsys.readouterr()
    return out


def _root(tree_path) -> str:
    return "0x" + StandardMerkleTree.from_file(str(tree_path)).root.hex()


class TestLoadAllocationsCsv:

    def test_rows(self, allocations_csv):
        rows = load_allocations_csv(str(allocations_csv))
        assert rows[0][1:] == (30, 1000, 2000)
        assert rows[1][1:] == (2500, 1000, None)

    def test_missing_column(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("signer,amount\n0x" + "11" * 20 + ",1\n")
        with pytest.raises(ValueError):
            load_allocations_csv(str(path))

    def test_bad_amount(self, tmp_path):
        path = tmp_path / "bad.csv"
        path.write_text("signer,amount,begin_time,end_time\n0x" + "11" * 20 + ",lots,0,1\n")
        with pytest.raises(ValueError):
            load_allocations_csv(str(path))


class TestCommands:

    def test_build_prints_root(self, tmp_path, allocations_csv, capsys):
        out = tmp_path / "tree.json"
        assert main(["build", "--csv", str(allocations_csv), "--out", str(out)]) == 0
        printed = capsys.readouterr().out
        assert _root(out) in printed
        assert "Token total: 2530" in printed

    def test_proof(self, tree_path, capsys):
        assert main(["proof", "--tree", str(tree_path), "--id", "1"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["id"] == 1
        assert payload["amount"] == "2500"
        assert payload["endTime"] == str(UNBOUNDED)
        assert len(payload["proof"]) == 1

    def test_proof_unknown_id(self, tree_path):
        assert main(["proof", "--tree", str(tree_path), "--id", "5"]) == 1

    def test_sign_then_verify(self, tree_path, capsys):
        root = _root(tree_path)
        assert main(["sign", "--root", root, "--beneficiary", USER1, "--key", KEY_HEX]) == 0
        credential = capsys.readouterr().out.strip()
        assert credential.startswith("ethsig:")

        args = ["verify", "--tree", str(tree_path), "--id", "0", "--credential", credential, "--now", "1500"]
        assert main(args + ["--caller", USER1]) == 0
        assert "Valid claim: 30" in capsys.readouterr().out

        assert main(args + ["--caller", USER2]) == 1
        assert "Invalid claim: InvalidProof" in capsys.readouterr().out

        # Without --caller the credential is checked as a relayed claim.
        assert main(args) == 0

    def test_verify_reports_window(self, tree_path, capsys):
        main(["sign", "--root", _root(tree_path), "--beneficiary", USER1, "--key", KEY_HEX])
        credential = capsys.readouterr().out.strip()

        base = ["verify", "--tree", str(tree_path), "--id", "0", "--credential", credential]
        assert main(base + ["--now", "999"]) == 1
        assert "NotReadyYet" in capsys.readouterr().out
        assert main(base + ["--now", "2000"]) == 1
        assert "Expired" in capsys.readouterr().out

    def test_sign_key_from_env(self, tree_path, monkeypatch, capsys):
        monkeypatch.setenv("CREDENTIAL_SIGNER_KEY", KEY_HEX)
        assert main(["sign", "--root", _root(tree_path), "--beneficiary", USER1]) == 0
        assert capsys.readouterr().out.startswith("ethsig:")

    def test_sign_without_key(self, monkeypatch, capsys):
        monkeypatch.delenv("CREDENTIAL_SIGNER_KEY", raising=False)
        monkeypatch.setattr("merkle_airdrop.tooling.cli.load_dotenv", lambda: None)
        assert main(["sign", "--root", "0x" + "00" * 32, "--beneficiary", USER1]) == 1
