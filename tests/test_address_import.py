"""Unit tests for cohort address import."""

import json
import pytest
from decimal import Decimal

from inflation_tracker.core.errors import AddressImportError
from inflation_tracker.utils.address_import import (
    clean_address,
    detect_format,
    extract_link_address,
    import_addresses,
    is_valid_polkadot_address,
    parse_addresses,
    parse_nominators_csv,
)
from tests.conftest import ADDR_A, ADDR_B, ADDR_C


def link_cell(address, text=None):
    text = text or address
    return (f"<a href='https://polkadot.subscan.io/account/{address}' target=_blank>{text}</a>")


class TestAddressHelpers:

    @pytest.mark.parametrize("address, valid", [
        (ADDR_A, True),
        (ADDR_A + "y", True),
        (ADDR_A + "yy", False),
        (ADDR_A[:-1], False),
        ("2" + ADDR_A[1:], False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_polkadot_address(self, address, valid):
        assert is_valid_polkadot_address(address) is valid

    def test_clean_address_strips_link_tail(self):
        assert clean_address(f"{ADDR_A} target=_blank>{ADDR_A[:6]}...</a>") == ADDR_A
        assert clean_address(f"  {ADDR_A}  ") == ADDR_A
        assert clean_address("") is None

    @pytest.mark.parametrize("content, fmt", [
        (json.dumps([ADDR_A]), "json-array"),
        (json.dumps([{"address": ADDR_A}]), "json-detailed"),
        (json.dumps({ADDR_A: {}}), "json-object"),
        (f"{ADDR_A},1\n{ADDR_B},2", "csv"),
        (f"{ADDR_A}\n{ADDR_B}", "text"),
    ])
    def test_detect_format(self, content, fmt):
        assert detect_format(content) == fmt


class TestParseAddresses:

    def test_text_deduplicates_in_order(self):
        content = f"{ADDR_B}\n{ADDR_A}\nshort line\n{ADDR_B}\n"

        assert parse_addresses(content, "text") == [ADDR_B, ADDR_A]

    def test_csv_uses_first_column(self):
        content = f"address,balance\n{ADDR_A},10\n{ADDR_B},20\n"

        assert parse_addresses(content, "csv") == [ADDR_A, ADDR_B]

    def test_json_variants(self):
        assert parse_addresses(json.dumps([ADDR_A, 5, "bad"]), "json-array") == [ADDR_A]
        assert parse_addresses(json.dumps({ADDR_B: 1, "x": 2}), "json-object") == [ADDR_B]
        detailed = json.dumps([{"address": ADDR_C}, {"name": "none"}, "skip"])
        assert parse_addresses(detailed, "json-detailed") == [ADDR_C]

    def test_unknown_format(self):
        with pytest.raises(AddressImportError, match="Unknown address format"):
            parse_addresses(ADDR_A, "xml")

    def test_malformed_json(self):
        with pytest.raises(AddressImportError):
            parse_addresses("[not json", "json-array")

    def test_wrong_json_shape(self):
        with pytest.raises(AddressImportError):
            parse_addresses(json.dumps({ADDR_A: 1}), "json-array")


class TestImportAddresses:

    def test_import_ranks_from_one(self, tmp_path):
        path = tmp_path / "cohort.txt"
        path.write_text(f"{ADDR_A}\n{ADDR_B}\n")

        receivers = import_addresses(path)

        assert [(r.rank, r.address) for r in receivers] == [(1, ADDR_A), (2, ADDR_B)]
        assert receivers[0].source == str(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(AddressImportError, match="Cannot read"):
            import_addresses(tmp_path / "missing.txt")

    def test_no_valid_addresses(self, tmp_path):
        path = tmp_path / "cohort.txt"
        path.write_text("nothing useful here\n")

        with pytest.raises(AddressImportError, match="No valid addresses"):
            import_addresses(path)


class TestNominatorCsv:

    def test_extract_link_address(self):
        assert extract_link_address(link_cell(ADDR_A)) == ADDR_A
        assert extract_link_address("plain text") is None

    def test_abbreviated_link_falls_back_to_url_parameter(self):
        cell = (f"<a href='https://pos.dog/nominator?nominator_ss58={ADDR_B}' "
                f"target=_blank>{ADDR_B[:6]}...{ADDR_B[-6:]}</a>")

        assert extract_link_address(cell) == ADDR_B

    def test_parse_nominators(self):
        content = "\n".join([
            "rank,name,nominator,validators,era,delegated,rewards",
            f"1,x,\"{link_cell(ADDR_A)}\",3,1500,12000.5,340.25",
            "2,x,\"<a href='x'>not-an-address</a>\",3,1500,1,1",
            "",
            f"3,x,\"{link_cell(ADDR_C)}\",3,1500,500,12",
        ])

        receivers = parse_nominators_csv(content)

        assert [r.address for r in receivers] == [ADDR_A, ADDR_C]
        first = receivers[0]
        assert first.rank == 1
        assert first.identity == "Nominator #1"
        assert first.balance == Decimal("12000.5")
        assert first.total_rewards == Decimal("340.25")
        assert first.source == "nominators-csv"

    def test_parse_nominators_respects_limit(self):
        rows = [f"{i},x,\"{link_cell(address)}\",1,1,1,1"
                for i, address in enumerate([ADDR_A, ADDR_B, ADDR_C], start=1)]
        content = "header\n" + "\n".join(rows)

        assert len(parse_nominators_csv(content, limit=2)) == 2

    def test_quoted_cells_with_commas_keep_columns_aligned(self):
        cell = (f"<a href='https://pos.dog/nominator?eras=1,2,3' title=\"\"Top, ranked\"\" "
                f"target=_blank>{ADDR_B}</a>")
        content = "\n".join([
            "rank,name,nominator,validators,era,delegated,rewards",
            f"7,\"Pool, main\",\"{cell}\",\"4,5\",1500,\"2500\",75.5",
        ])

        receivers = parse_nominators_csv(content)

        assert [r.address for r in receivers] == [ADDR_B]
        assert receivers[0].rank == 7
        assert receivers[0].identity == "pos.dog"
        assert receivers[0].balance == Decimal("2500")
        assert receivers[0].total_rewards == Decimal("75.5")
