#!/usr/bin/env python3
"""Stand-in for `pact-message update <json> --consumer ... --pact-dir ...`."""
import json
import os
import sys
from pathlib import Path


def main(argv: list[str]) -> int:
    if os.environ.get("FAKE_MESSAGE_BEHAVIOR") == "fail":
        sys.stderr.write("could not update message pact\n")
        return 1

    if len(argv) < 2 or argv[0] != "update":
        sys.stderr.write(f"unexpected arguments: {argv}\n")
        return 2

    message = json.loads(argv[1])
    options = dict(zip(argv[2::2], argv[3::2], strict=False))

    pact_dir = Path(options["--pact-dir"])
    pact_dir.mkdir(parents=True, exist_ok=True)
    pact_file = pact_dir / f"{options['--consumer']}-{options['--provider']}.json"

    keep_existing = options.get("--pact-file-write-mode", "overwrite") != "overwrite"
    if keep_existing and pact_file.exists():
        pact = json.loads(pact_file.read_text())
    else:
        pact = {"messages": []}
    pact["messages"].append(message)
    pact_file.write_text(json.dumps(pact))

    print(f"Wrote {pact_file}")
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
