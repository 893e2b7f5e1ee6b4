"""Tests for the poa CLI."""

import io
import json
import time

import pytest

from poa.cli import build_parser, main


def test_no_command(capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_parser_levels():
    parser = build_parser()
    args = parser.parse_args(["verify", "https://a.test", "-c", "trading", "-c", "social",
                              "--level", "standard"])
    assert args.capability == ["trading", "social"]
    assert args.level == "standard"
    with pytest.raises(SystemExit):
        parser.parse_args(["verify", "https://a.test", "--level", "extreme"])


def test_prove_json(capsys):
    assert main(["--json", "prove", "scout", "--score", "72", "--threshold", "60"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["meetsThreshold"] is True
    assert data["publicInputs"]["threshold"] == 60
    assert "score" not in data


def test_prove_human(capsys):
    assert main(["prove", "scout", "--score", "40"]) == 0
    out = capsys.readouterr().out
    assert "Proof generated for scout" in out
    assert "Meets:      False" in out


def test_prove_out_of_range(capsys):
    assert main(["prove", "scout", "--score", "200"]) == 2
    assert "range_valid" in capsys.readouterr().err


def test_prove_expired(capsys):
    old = int(time.time()) - 60 * 24 * 3600
    assert main(["prove", "scout", "--score", "90", "--timestamp", str(old)]) == 2
    assert "not_expired" in capsys.readouterr().err


def test_prove_to_file_then_verify(tmp_path, capsys):
    path = tmp_path / "proof.json"
    assert main(["prove", "scout", "--score", "88", "-o", str(path)]) == 0
    saved = json.loads(path.read_text())
    assert set(saved) == {"commitment", "trace", "proofHash", "publicInputs", "metadata"}
    capsys.readouterr()

    assert main(["--json", "verify-proof", str(path)]) == 0
    assert json.loads(capsys.readouterr().out) == {"valid": True, "threshold": 60}


def test_verify_proof_stdin(monkeypatch, capsys):
    forged = {"commitment": "ab", "trace": "1", "proofHash": "cd",
              "publicInputs": {"threshold": 500}}
    monkeypatch.setattr("sys.stdin", io.StringIO(json.dumps(forged)))
    assert main(["verify-proof", "-"]) == 0
    assert "INVALID" in capsys.readouterr().out


def test_verify_unreachable(monkeypatch, capsys):
    from poa import engine as engine_module
    from poa.transport import TransportError

    class DeadTransport:
        async def get(self, url, timeout, *, accept_any_status=False):
            raise TransportError(url, "connection refused")

        async def post(self, url, body, timeout, *, accept_any_status=False):
            raise TransportError(url, "connection refused")

        async def aclose(self):
            pass

    monkeypatch.setattr(engine_module, "HttpTransport", DeadTransport)
    assert main(["--json", "verify", "https://dead.test", "--name", "ghost"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["status"] == "failed"
    assert data["score"] == 0
    assert list(data["checks"]) == ["liveness"]
