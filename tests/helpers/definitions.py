"""Definitions file fixtures shared by application and CLI tests."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

SKYLAKE_OE: dict[str, object] = {
    "oeEnvName": "Linux 5.4",
    "cpe": "cpe:2.3:o:linux:linux_kernel:5.4:*:*:*:*:*:*:*",
    "manufacturer": "Intel",
    "procFamily": "X86",
    "procName": "Skylake",
    "procSeries": "Skylake",
}

CORTEX_OE: dict[str, object] = {
    "oeEnvName": "Zephyr 3.1",
    "manufacturer": "ARM",
    "procFamily": "ARMv8",
    "procName": "Cortex-A53",
    "procSeries": "Cortex-A",
}


def write_definitions(path: Path, *, oes: dict[str, dict[str, object]] | None = None) -> Path:
    """Write one definition per OE, all from the same vendor."""

    oes = {"linux-skylake": SKYLAKE_OE} if oes is None else oes
    document = {
        "vendors": {"acme": {"vendorName": "Acme Corp"}},
        "oes": oes,
        "definitions": [
            {
                "module": {"moduleName": "Acme Crypto", "moduleVersion": "1.0"},
                "vendor": "acme",
                "oe": key,
                "algorithms": ["AES-GCM"],
            }
            for key in oes
        ],
    }
    target = path / "definitions.json"
    target.write_text(json.dumps(document), encoding="utf-8")
    return target
