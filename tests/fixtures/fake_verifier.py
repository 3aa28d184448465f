#!/usr/bin/env python3
"""Stand-in for `pact-provider-verifier`.

FAKE_VERIFIER_BEHAVIOR selects the outcome:
  pass     - one passing example, exit 0
  fail     - one failing example, exit 1
  garbage  - non-JSON output on both streams, exit 2
  noisy    - a lot of stderr before a passing result
  message  - ask the message bridge at --provider-base-url for each
             description in FAKE_VERIFIER_MESSAGES and report the outcome

When FAKE_VERIFIER_MARKER is set, each invocation appends its arguments there.
"""
import json
import os
import sys
import urllib.error
import urllib.request


def _example(description: str, passed: bool, message: str = "") -> dict:
    example = {
        "id": f"./spec.rb[1:{description}]",
        "description": description,
        "full_description": f"Verifying a pact {description}",
        "status": "passed" if passed else "failed",
        "file_path": "./spec.rb",
        "line_number": 1,
        "run_time": 0.01,
        "pending_message": None,
    }
    if not passed:
        example["exception"] = {"class": "RSpec::Expectations::ExpectationNotMetError", "message": message}
    return example


def _result(examples: list[dict], argv: list[str]) -> dict:
    failures = sum(1 for e in examples if e["status"] != "passed")
    return {
        "version": "3.8.0",
        "examples": examples,
        "summary": {"duration": 0.1, "example_count": len(examples), "failure_count": failures, "pending_count": 0},
        "summary_line": " ".join(argv),
    }


def _option(argv: list[str], name: str) -> str:
    return argv[argv.index(name) + 1]


def _ask_bridge(base_url: str, description: str) -> dict:
    request = urllib.request.Request(
        base_url,
        data=json.dumps({"description": description}).encode("utf-8"),
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=5) as response:
            json.loads(response.read())
            return _example(description, True)
    except urllib.error.HTTPError as e:
        return _example(description, False, f"bridge responded {e.code}")


def main(argv: list[str]) -> int:
    marker = os.environ.get("FAKE_VERIFIER_MARKER")
    if marker:
        with open(marker, "a") as f:
            f.write(" ".join(argv) + "\n")

    behavior = os.environ.get("FAKE_VERIFIER_BEHAVIOR", "pass")

    if behavior == "garbage":
        sys.stderr.write("verifier blew up\n")
        sys.stdout.write("this is not json\n")
        return 2

    if behavior == "noisy":
        sys.stderr.write("x" * 1024 * 1024)
        sys.stderr.flush()

    if behavior == "fail":
        examples = [_example("has status code 200", False, "expected 200, got 500")]
        print(json.dumps(_result(examples, argv)))
        print("trailing text after the document")
        return 1

    if behavior == "message":
        base_url = _option(argv, "--provider-base-url")
        descriptions = json.loads(os.environ.get("FAKE_VERIFIER_MESSAGES", "[]"))
        examples = [_ask_bridge(base_url, d) for d in descriptions]
        print(json.dumps(_result(examples, argv)))
        return 0 if all(e["status"] == "passed" for e in examples) else 1

    print(json.dumps(_result([_example("has status code 200", True)], argv)))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
