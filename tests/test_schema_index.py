from __future__ import annotations

from pathlib import Path

import pytest

from dbschema.dumpfile import DumpFileError, parse_dump_file, parse_dump_text
from dbschema.index import SchemaStore, build_snapshot

FIXTURE_DF = Path(__file__).parent / "fixtures" / "sports_repo" / "db" / "sports.df"

ITEM_DF = """\
ADD TABLE "Item"
  LABEL "Item"

ADD FIELD "ItemNum" OF "Item" AS integer
  FORMAT "zzzz9"

ADD FIELD "Name" OF "Item" AS character

.
PSC
"""


def test_tables_fields_and_indexes_parsed() -> None:
    dump = parse_dump_file(FIXTURE_DF)

    assert [table.name for table in dump.tables] == ["Customer", "Z9ZW_MSTR"]
    customer = dump.tables[0]
    assert [f.name for f in customer.fields] == ["CustNum", "Name"]
    assert customer.label == "Customer"
    assert customer.description == "Customer master"

    name = customer.field("NAME")
    assert name is not None
    assert name.type_name == "CHARACTER"
    assert name.format == "x(30)"
    assert name.label == "Name"
    assert name.description == "Customer name"

    index = customer.index("custnum")
    assert index is not None
    assert index.fields == ("CustNum",)
    assert index.unique
    assert index.primary


def test_locations_point_at_quoted_names() -> None:
    dump = parse_dump_file(FIXTURE_DF)
    customer = dump.tables[0]

    assert customer.location.path == FIXTURE_DF.as_posix()
    assert customer.location.span.start.line == 0
    assert customer.location.span.start.character == len("ADD TABLE ")
    assert customer.location.span.end.character == len('ADD TABLE "Customer"')
    assert customer.fields[0].location.span.start.line == 6


def test_other_statements_skipped() -> None:
    dump = parse_dump_file(FIXTURE_DF)

    assert all(table.name != "NextCustNum" for table in dump.tables)


def test_single_quotes_and_doubled_quotes() -> None:
    text = "ADD TABLE 'odd'\n  LABEL \"say \"\"hi\"\"\"\n"

    dump = parse_dump_text(text, Path("odd.df"))

    assert dump.tables[0].name == "odd"
    assert dump.tables[0].label == 'say "hi"'


def test_field_of_table_defined_elsewhere_is_kept_as_extension() -> None:
    text = (
        'UPDATE TABLE "customer"\n'
        '  DESCRIPTION "changed"\n'
        "\n"
        'ADD FIELD "email" OF "customer" AS character\n'
        '  FORMAT "x(40)"\n'
        "\n"
        'ADD INDEX "email" ON "customer"\n'
        '  INDEX-FIELD "email" ASCENDING\n'
        "\n"
        'ADD TABLE "invoice"\n'
        "\n"
        'ADD FIELD "InvNum" OF "invoice" AS integer\n'
        "\n"
        ".\n"
        "PSC\n"
    )

    dump = parse_dump_text(text, Path("delta.df"))

    assert [table.name for table in dump.tables] == ["invoice"]
    (extension,) = dump.extensions
    assert extension.name == "customer"
    assert [f.name for f in extension.fields] == ["email"]
    assert extension.fields[0].location.span.start.line == 3
    assert [i.name for i in extension.indexes] == ["email"]


def test_snapshot_attaches_extension_fields_to_owner() -> None:
    delta = parse_dump_text(
        'ADD FIELD "Email" OF "customer" AS character\n\n'
        'ADD FIELD "Name" OF "customer" AS character\n\n'
        'ADD FIELD "Ghost" OF "nowhere" AS character\n',
        Path("delta.df"),
    )

    snapshot = build_snapshot([delta, parse_dump_file(FIXTURE_DF)], version=1)

    customer = snapshot.table("customer")
    assert customer is not None
    assert [f.name for f in customer.fields] == ["CustNum", "Name", "Email"]
    email = snapshot.unique_field("email")
    assert email is not None
    assert email.table == "Customer"
    assert email.location.path == "delta.df"
    assert customer.field("name").location.path == FIXTURE_DF.as_posix()
    assert snapshot.table("nowhere") is None
    assert snapshot.owners("ghost") == ()
    assert [site.path for site in snapshot.sites("customer")] == [FIXTURE_DF.as_posix()]


def test_quoted_value_spanning_lines() -> None:
    text = (
        'ADD TABLE "customer"\n'
        '  DESCRIPTION "First line.\n'
        "\n"
        'Second line."\n'
        '  LABEL "Cust"\n'
        "\n"
        'ADD FIELD "name" OF "customer" AS character\n'
        "\n"
        ".\n"
        "PSC\n"
    )

    dump = parse_dump_text(text, Path("a.df"))

    (customer,) = dump.tables
    assert customer.description == "First line.\n\nSecond line."
    assert customer.label == "Cust"
    assert customer.fields[0].location.span.start.line == 6


def test_unterminated_quote_fails() -> None:
    with pytest.raises(DumpFileError):
        parse_dump_text('ADD TABLE "broken\n', Path("bad.df"))


def test_unreadable_file_fails(tmp_path: Path) -> None:
    with pytest.raises(DumpFileError) as excinfo:
        parse_dump_file(tmp_path / "absent.df")

    assert excinfo.value.line is None


def test_snapshot_lookup_is_case_insensitive() -> None:
    snapshot = build_snapshot([parse_dump_file(FIXTURE_DF)], version=1)

    assert snapshot.table("z9zw_mstr") is snapshot.table("Z9ZW_MSTR")
    assert snapshot.table("Z9zw_Mstr") is not None


def test_first_definition_owns_lookup_but_all_sites_kept() -> None:
    first = parse_dump_text(ITEM_DF, Path("first.df"))
    second = parse_dump_text(
        'ADD TABLE "ITEM"\n\nADD FIELD "Extra" OF "ITEM" AS logical\n', Path("second.df")
    )

    snapshot = build_snapshot([first, second], version=1)

    item = snapshot.table("item")
    assert item is not None
    assert item.location.path == "first.df"
    assert [site.path for site in snapshot.sites("Item")] == ["first.df", "second.df"]
    assert snapshot.owners("extra") == ()


def test_field_owners_and_unique_field() -> None:
    snapshot = build_snapshot(
        [parse_dump_file(FIXTURE_DF), parse_dump_text(ITEM_DF, Path("item.df"))],
        version=1,
    )

    assert sorted(t.name for t in snapshot.owners("name")) == ["Customer", "Item"]
    assert snapshot.unique_field("name") is None
    unique = snapshot.unique_field("ITEMNUM")
    assert unique is not None
    assert unique.table == "Item"


def test_reload_swaps_snapshot_and_bumps_version(tmp_path: Path) -> None:
    dump = tmp_path / "item.df"
    dump.write_text(ITEM_DF, encoding="utf-8")
    store = SchemaStore()
    before = store.snapshot

    after = store.reload([dump])

    assert store.snapshot is after
    assert after.version == before.version + 1
    assert before.table("item") is None
    assert after.table("item") is not None


def test_reload_keeps_previous_good_parse(tmp_path: Path) -> None:
    dump = tmp_path / "item.df"
    dump.write_text(ITEM_DF, encoding="utf-8")
    store = SchemaStore()
    store.reload([dump])

    dump.write_text('ADD TABLE "Item\n', encoding="utf-8")
    snapshot = store.reload([dump])

    assert snapshot.table("item") is not None
    assert dump.as_posix() in snapshot.errors


def test_bad_file_does_not_block_good_ones(tmp_path: Path) -> None:
    good = tmp_path / "good.df"
    good.write_text(ITEM_DF, encoding="utf-8")
    bad = tmp_path / "bad.df"
    bad.write_text('ADD INDEX "i"\n', encoding="utf-8")
    store = SchemaStore()

    snapshot = store.reload([bad, good])

    assert snapshot.table("item") is not None
    assert list(snapshot.errors) == [bad.as_posix()]
    assert snapshot.files == (good,)
