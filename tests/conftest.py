"""Shared pytest fixtures for pactum tests."""

from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, pkcs12
from cryptography.x509.oid import NameOID

from pactum.archive import Keystore
from pactum.core.template import Template

FIXTURES = Path(__file__).parent / "fixtures"
TEMPLATES = FIXTURES / "templates"

KEYSTORE_PASSPHRASE = "correct horse"

# Clock two days and nine hours after the agreed delivery in request.json
CLOCK = "2017-12-19T17:38:01Z"


@pytest.fixture
def fixtures_dir() -> Path:
    """Return path to fixtures directory."""
    return FIXTURES


@pytest.fixture
def template_dir() -> Path:
    """The late delivery template with .logic clause logic."""
    return TEMPLATES / "latedeliveryandpenalty"


@pytest.fixture
def native_template_dir() -> Path:
    """The same template with native Python clause logic."""
    return TEMPLATES / "latedeliveryandpenalty_py"


@pytest.fixture
def template(template_dir: Path) -> Template:
    return Template.from_directory(template_dir)


@pytest.fixture
def native_template(native_template_dir: Path) -> Template:
    return Template.from_directory(native_template_dir)


@pytest.fixture(params=["latedeliveryandpenalty", "latedeliveryandpenalty_py"])
def any_template(request: pytest.FixtureRequest) -> Template:
    """Both backends, for behaviour they must share."""
    return Template.from_directory(TEMPLATES / request.param)


def load_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


@pytest.fixture
def sample_text(template_dir: Path) -> str:
    return (template_dir / "text" / "sample.md").read_text(encoding="utf-8")


@pytest.fixture
def data(template_dir: Path) -> dict:
    return load_json(template_dir / "data.json")


@pytest.fixture
def request_json(template_dir: Path) -> dict:
    return load_json(template_dir / "request.json")


@pytest.fixture
def keystore(tmp_path: Path) -> Keystore:
    """A PKCS#12 keystore with a fresh RSA key and self-signed certificate."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "Template Author")])
    now = dt.datetime.now(dt.UTC)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - dt.timedelta(days=1))
        .not_valid_after(now + dt.timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
    data = pkcs12.serialize_key_and_certificates(
        b"author",
        key,
        certificate,
        None,
        BestAvailableEncryption(KEYSTORE_PASSPHRASE.encode("utf-8")),
    )
    path = tmp_path / "author.p12"
    path.write_bytes(data)
    return Keystore(path, KEYSTORE_PASSPHRASE)


COUNTER_MODEL = """\
namespace org.example.counter

import org.accordproject.contract.Clause
import org.accordproject.runtime.*

asset CounterClause extends Clause {
  o Integer limit
}

asset CounterState extends State {
  o Integer count
}

transaction Increment extends Request {
  o Integer by
}

transaction CounterResponse extends Response {
  o Integer count
}

event LimitReached {
  o Integer count
}
"""

COUNTER_LOGIC = """\
namespace org.example.counter

contract Counter over CounterClause state CounterState {
  clause init() : CounterResponse {
    set state CounterState{ count: 0 };
    return CounterResponse{ count: 0 };
  }

  clause increment(request : Increment) : CounterResponse {
    let next = state.count + request.by;
    enforce next <= contract.limit else throw "Limit exceeded";
    set state CounterState{ count: next };
    if next == contract.limit {
      emit LimitReached{ count: next };
    }
    return CounterResponse{ count: next };
  }
}
"""


def write_counter_template(root: Path, target: str = "bytecode") -> Path:
    """A stateful template: counts up to a limit and emits when it gets there."""
    (root / "model").mkdir(parents=True)
    (root / "text").mkdir()
    (root / "logic").mkdir()
    (root / "template.toml").write_text(
        f'[template]\nname = "counter"\nversion = "1.0.0"\n\n[logic]\ntarget = "{target}"\n',
        encoding="utf-8",
    )
    (root / "model" / "counter.model").write_text(COUNTER_MODEL, encoding="utf-8")
    (root / "logic" / "counter.logic").write_text(COUNTER_LOGIC, encoding="utf-8")
    (root / "text" / "grammar.md").write_text("Count up to {{limit}}.\n", encoding="utf-8")
    (root / "text" / "sample.md").write_text("Count up to 3.\n", encoding="utf-8")
    return root


@pytest.fixture(params=["bytecode", "python"])
def counter_template(request: pytest.FixtureRequest, tmp_path: Path) -> Template:
    """The counter template on both backends; ``python`` runs generated code."""
    return Template.from_directory(write_counter_template(tmp_path / "counter", request.param))


@pytest.fixture
def counter_data() -> dict:
    return {"$class": "org.example.counter.CounterClause", "clauseId": "counter-1", "limit": 3}
