import argparse
import asyncio
import csv
import json
import logging
import os
import sys
from typing import List, Optional, Tuple

from dotenv import load_dotenv

from ..claim.airdrop import Airdrop
from ..errors import ClaimError
from ..providers.clock import FixedClock, SystemClock
from ..providers.in_memory_token_ledger import InMemoryTokenLedger
from .credential_issuer import issue_credential
from .standard_merkle_tree import StandardMerkleTree, build_airdrop_tree

logger = logging.getLogger(__name__)

CSV_FIELDS = ["signer", "amount", "begin_time", "end_time"]


def load_allocations_csv(path: str) -> List[Tuple[str, int, int, Optional[int]]]:
    """
    Reads `signer,amount,begin_time,end_time` rows.
    An empty end_time means the allocation never expires.
    """
    rows = []
    with open(path, newline="") as f:
        reader = csv.DictReader(f)
        missing = [name for name in CSV_FIELDS if name not in (reader.fieldnames or [])]
        if missing:
            raise ValueError(f"CSV header is missing: {', '.join(missing)}")
        for line_no, row in enumerate(reader, start=2):
            signer = (row.get("signer") or "").strip()
            if not signer:
                continue
            try:
                end_raw = (row.get("end_time") or "").strip()
                rows.append((
                    signer,
                    int(row["amount"].strip()),
                    int(row["begin_time"].strip()),
                    int(end_raw) if end_raw else None,
                ))
            except (AttributeError, ValueError) as e:
                raise ValueError(f"Invalid row at line {line_no}: {row}") from e
    if not rows:
        raise ValueError("No valid rows in CSV")
    return rows


def cmd_build(args) -> int:
    tree = build_airdrop_tree(load_allocations_csv(args.csv))
    tree.save(args.out)
    total = sum(leaf.amount for _, leaf in tree.entries())
    print("Merkle root:", "0x" + tree.root.hex())
    print("Token total:", total)
    print(f"Wrote {args.out}")
    return 0


def _claim_payload(tree: StandardMerkleTree, allocation_id: int) -> dict:
    index = tree.find_allocation(allocation_id)
    leaf = tree.leaf_at(index)
    return {
        "signer": "0x" + leaf.recipient.hex(),
        "amount": str(leaf.amount),
        "id": leaf.allocation_id,
        "beginTime": leaf.begin_time,
        "endTime": str(leaf.end_time),
        "proof": ["0x" + node.hex() for node in tree.get_proof(index)],
    }


def cmd_proof(args) -> int:
    tree = StandardMerkleTree.from_file(args.tree)
    try:
        payload = _claim_payload(tree, args.id)
    except KeyError as e:
        print(e.args[0])
        return 1
    print(json.dumps(payload, indent=2))
    return 0


def cmd_sign(args) -> int:
    key = args.key or os.getenv("CREDENTIAL_SIGNER_KEY")
    if not key:
        print("Signer key required (--key or CREDENTIAL_SIGNER_KEY)")
        return 1
    print(issue_credential(key, bytes.fromhex(args.root.removeprefix("0x")), args.beneficiary))
    return 0


async def _verify(tree: StandardMerkleTree, args) -> int:
    payload = _claim_payload(tree, args.id)
    clock = FixedClock(args.now) if args.now is not None else SystemClock()
    # The check never touches the ledger; any address works here.
    ledger = InMemoryTokenLedger("0x" + "00" * 20)
    airdrop = Airdrop(ledger, tree.root, "0x" + "00" * 20, clock=clock, bind_caller=args.caller is not None)

    try:
        claim = await airdrop.check_valid_claim(
            args.caller or "0x" + "00" * 20,
            args.credential,
            int(payload["amount"]),
            payload["id"],
            payload["beginTime"],
            int(payload["endTime"]),
            payload["proof"],
        )
    except ClaimError as e:
        print(f"Invalid claim: {e.kind.value} ({e})")
        return 1
    print(f"Valid claim: {claim.amount} to {claim.beneficiary}")
    return 0


def cmd_verify(args) -> int:
    tree = StandardMerkleTree.from_file(args.tree)
    try:
        return asyncio.run(_verify(tree, args))
    except KeyError as e:
        print(e.args[0])
        return 1


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="merkle-airdrop", description="Merkle airdrop tree and credential tooling")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p = sub.add_parser("build", help="build tree JSON from an allocations CSV")
    p.add_argument("--csv", required=True)
    p.add_argument("--out", default="tree.json")
    p.set_defaults(func=cmd_build)

    p = sub.add_parser("proof", help="print claim data and proof for an allocation id")
    p.add_argument("--tree", default="tree.json")
    p.add_argument("--id", type=int, required=True)
    p.set_defaults(func=cmd_proof)

    p = sub.add_parser("sign", help="issue a claim credential")
    p.add_argument("--root", required=True)
    p.add_argument("--beneficiary", required=True)
    p.add_argument("--key", help="signer private key (hex); defaults to $CREDENTIAL_SIGNER_KEY")
    p.set_defaults(func=cmd_sign)

    p = sub.add_parser("verify", help="pre-flight check a credential against the tree")
    p.add_argument("--tree", default="tree.json")
    p.add_argument("--id", type=int, required=True)
    p.add_argument("--credential", required=True)
    p.add_argument("--caller", help="submitting address; omit for relayed claims")
    p.add_argument("--now", type=int, help="unix time to check against (default: system time)")
    p.set_defaults(func=cmd_verify)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
