from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from acvpmeta.adapters.definitions import DefinitionFileError, load_definitions
from acvpmeta.domain.registry import SearchCriteria
from acvpmeta.domain.types import EnvType, ProcessorFeature

if TYPE_CHECKING:
    from pathlib import Path


def _document(**overrides: object) -> dict[str, object]:
    document: dict[str, object] = {
        "vendors": {"acme": {"vendorName": "Acme Corp", "contactEmail": "crypto@acme.example"}},
        "oes": {
            "linux-skylake": {
                "oeEnvName": "Linux 5.4",
                "cpe": "cpe:2.3:o:linux:linux_kernel:5.4:*:*:*:*:*:*:*",
                "manufacturer": "Intel",
                "procFamily": "X86",
                "procName": "Skylake",
                "procSeries": "Skylake",
                "features": ["aes-ni", "RDRAND"],
            },
            "bare-metal": {"envType": "firmware", "oeEnvName": "  ", "procName": "Cortex-A53"},
        },
        "definitions": [
            {
                "module": {"moduleName": "Acme Crypto", "moduleVersion": "1.0"},
                "vendor": "acme",
                "oe": "linux-skylake",
                "algorithms": ["AES-GCM"],
            },
            {
                "module": {"moduleName": "Acme Crypto", "moduleVersion": "1.0"},
                "vendor": "acme",
                "oe": "linux-skylake",
                "algorithms": ["SHA2-256"],
            },
            {
                "module": {"moduleName": "Acme Boot"},
                "vendor": "acme",
                "oe": "bare-metal",
            },
        ],
    }
    document.update(overrides)
    return document


def _write(tmp_path: Path, document: object) -> Path:
    path = tmp_path / "definitions.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path


def test_load_builds_shared_records(tmp_path: Path) -> None:
    registry = load_definitions(_write(tmp_path, _document()))

    first, second, third = registry
    assert len(registry) == 3
    assert first.oe is second.oe
    assert first.module is second.module
    assert first.vendor is third.vendor
    assert first.oe.key == "oe:linux-skylake"
    assert first.module.key == "module:Acme Crypto:1.0"
    assert third.module.key == "module:Acme Boot"
    assert first.vendor.contact_email == "crypto@acme.example"
    assert second.algorithms == ("SHA2-256",)
    assert [oe.key for oe in registry.operational_environments()] == [
        "oe:linux-skylake",
        "oe:bare-metal",
    ]


def test_oe_fields_are_normalized(tmp_path: Path) -> None:
    registry = load_definitions(_write(tmp_path, _document()))
    oes = {oe.key: oe for oe in registry.operational_environments()}

    skylake = oes["oe:linux-skylake"]
    assert skylake.features == ProcessorFeature.AES_NI | ProcessorFeature.RDRAND
    assert skylake.has_software
    bare = oes["oe:bare-metal"]
    assert bare.env_type is EnvType.FIRMWARE
    assert bare.env_name is None
    assert not bare.has_software


def test_search_over_loaded_definitions(tmp_path: Path) -> None:
    registry = load_definitions(_write(tmp_path, _document()))

    matches = list(registry.iter_matches(SearchCriteria(processor="cortex", fuzzy=True)))

    assert [d.module.name for d in matches] == ["Acme Boot"]


def test_unknown_vendor_is_reported(tmp_path: Path) -> None:
    document = _document(
        definitions=[{"module": {"moduleName": "X"}, "vendor": "nobody", "oe": "bare-metal"}]
    )

    with pytest.raises(DefinitionFileError, match="unknown vendor 'nobody'"):
        load_definitions(_write(tmp_path, document))


def test_unknown_oe_is_reported(tmp_path: Path) -> None:
    document = _document(
        definitions=[{"module": {"moduleName": "X"}, "vendor": "acme", "oe": "mainframe"}]
    )

    with pytest.raises(DefinitionFileError, match="unknown OE 'mainframe'"):
        load_definitions(_write(tmp_path, document))


def test_unknown_feature_is_reported(tmp_path: Path) -> None:
    document = _document(oes={"x": {"oeEnvName": "Linux", "features": ["warp-drive"]}})
    document["definitions"] = []

    with pytest.raises(DefinitionFileError, match="Unknown processor feature"):
        load_definitions(_write(tmp_path, document))


@pytest.mark.parametrize(
    "content",
    ["{not json", json.dumps({"oes": {"x": {"oeName": "typo"}}}), json.dumps([1, 2])],
)
def test_invalid_files_are_rejected(tmp_path: Path, content: str) -> None:
    path = tmp_path / "definitions.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(DefinitionFileError):
        load_definitions(path)


def test_missing_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(DefinitionFileError, match="Cannot read"):
        load_definitions(tmp_path / "absent.json")
