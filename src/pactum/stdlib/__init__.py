"""
Built-in model namespaces shipped with pactum.

Every template can import these without declaring them in its own
``model/`` directory.
"""

from __future__ import annotations

from importlib import resources

TIME_NS = "org.accordproject.time"
RUNTIME_NS = "org.accordproject.runtime"
CONTRACT_NS = "org.accordproject.contract"
MONEY_NS = "org.accordproject.money"
PARTY_NS = "org.accordproject.party"

DURATION = f"{TIME_NS}.Duration"
PERIOD = f"{TIME_NS}.Period"
MONETARY_AMOUNT = f"{MONEY_NS}.MonetaryAmount"

REQUEST = f"{RUNTIME_NS}.Request"
RESPONSE = f"{RUNTIME_NS}.Response"
STATE = f"{RUNTIME_NS}.State"
OBLIGATION = f"{RUNTIME_NS}.Obligation"

CONTRACT = f"{CONTRACT_NS}.Contract"
CLAUSE = f"{CONTRACT_NS}.Clause"

# Units accepted by Duration / Period values
TEMPORAL_UNITS = ("seconds", "minutes", "hours", "days", "weeks")
PERIOD_UNITS = ("days", "weeks", "months", "quarters", "years")


def builtin_model_sources() -> dict[str, str]:
    """Return ``{file name: source}`` for every built-in ``.model`` file."""
    sources: dict[str, str] = {}
    for entry in sorted(resources.files(__name__).iterdir(), key=lambda e: e.name):
        if entry.name.endswith(".model"):
            sources[entry.name] = entry.read_text(encoding="utf-8")
    return sources
