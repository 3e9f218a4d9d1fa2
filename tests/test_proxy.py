"""Tests for the dynamic proxy tables, including alternate-identity tables."""

from __future__ import annotations

import pytest
from conftest import CONTRACT_ADDRESS, COUNTER_SOURCE, FakeClient, FakeClientFactory

from forgae.catalog import extract_from_source
from forgae.constants import DEFAULT_TTL
from forgae.encoding import CallOptions
from forgae.errors import InvalidKeypairError, UnknownFunctionError
from forgae.proxy import AlternateIdentityTable, ProxyFunction, ProxyFunctionTable, parse_call_args


def _table(client: FakeClient, factory: FakeClientFactory, network, **kwargs) -> ProxyFunctionTable:
    return ProxyFunctionTable(
        extract_from_source(COUNTER_SOURCE),
        address=CONTRACT_ADDRESS,
        source=COUNTER_SOURCE,
        bytecode="cb_fakebytecode",
        client=client,
        network=network,
        client_factory=factory,
        **kwargs,
    )


@pytest.fixture
def default_client(keypair, counter_results) -> FakeClient:
    return FakeClient(keypair, counter_results)


@pytest.fixture
def table(default_client, client_factory, network) -> ProxyFunctionTable:
    return _table(default_client, client_factory, network)


def test_bindings_cover_catalog(table: ProxyFunctionTable) -> None:
    assert table.keys() == ["get", "add", "owner", "flag", "pair"]
    assert len(table) == 5
    assert "add" in table
    assert isinstance(table.add, ProxyFunction)
    assert table["add"] is table.add
    assert "add(x: int, y: int) : int" in repr(table.add)


@pytest.mark.anyio
async def test_invoke_encodes_calls_and_decodes(table: ProxyFunctionTable, default_client: FakeClient) -> None:
    assert await table.add(2, 3) == 5
    assert await table.invoke("add", [2, 3]) == 5

    call = default_client.calls[0]
    assert call["function"] == "add"
    assert call["address"] == CONTRACT_ADDRESS
    assert call["args"] == ["2", "3"]
    assert call["options"] == CallOptions()


@pytest.mark.anyio
async def test_bool_round_trip_through_proxy(table: ProxyFunctionTable) -> None:
    assert await table.flag(True) is True
    assert await table.flag(False) is False


@pytest.mark.anyio
async def test_address_results_are_public_keys(table: ProxyFunctionTable, keypair) -> None:
    owner = await table.owner()
    assert owner == keypair.public_key
    assert owner.startswith("ak_")


@pytest.mark.anyio
async def test_trailing_value_attaches_funds(table: ProxyFunctionTable, default_client: FakeClient) -> None:
    assert await table.add(1, 2, {"value": 100}) == 3

    call = default_client.calls[-1]
    assert call["args"] == ["1", "2"]
    assert call["options"].amount == 100


@pytest.mark.anyio
async def test_call_options_are_fresh_per_call(table: ProxyFunctionTable, default_client: FakeClient) -> None:
    await table.add(1, 2, {"amount": 5, "ttl": 3})
    await table.add(1, 2)

    first, second = (c["options"] for c in default_client.calls)
    assert first == CallOptions(amount=5, ttl=3)
    assert second == CallOptions(amount=0, ttl=DEFAULT_TTL)


@pytest.mark.anyio
async def test_explicit_options_skip_detection(table: ProxyFunctionTable, default_client: FakeClient) -> None:
    await table.invoke("add", [1, 2, {"amount": 99}], CallOptions(amount=1))
    assert default_client.calls[-1]["options"] == CallOptions(amount=1)


@pytest.mark.anyio
async def test_trailing_client_overrides_identity_for_one_call(
    table: ProxyFunctionTable, default_client: FakeClient, other_keypair, counter_results
) -> None:
    other = FakeClient(other_keypair, counter_results)

    assert await table.get(other) == 42
    assert len(other.calls) == 1
    assert default_client.calls == []

    await table.get()
    assert len(default_client.calls) == 1
    assert len(other.calls) == 1


@pytest.mark.anyio
async def test_from_identity_builds_independent_table(
    table: ProxyFunctionTable,
    default_client: FakeClient,
    client_factory: FakeClientFactory,
    other_keypair,
) -> None:
    alt = table.from_(other_keypair.secret_key)

    assert isinstance(alt, AlternateIdentityTable)
    assert alt.keypair == other_keypair
    assert alt.address == table.address
    assert alt.keys() == table.keys()
    assert table.keypair == default_client.keypair

    alt_client = client_factory.clients[-1]
    assert alt_client.keypair == other_keypair

    assert await alt.add(4, 5) == await table.add(4, 5)
    assert [c["function"] for c in alt_client.calls] == ["add"]
    assert [c["function"] for c in default_client.calls] == ["add"]

    await alt.add(1, 1, {"amount": 50})
    await table.add(1, 1)
    assert default_client.calls[-1]["options"] == CallOptions()


def test_from_accepts_item_access_and_keypair_mapping(table: ProxyFunctionTable, other_keypair) -> None:
    alt = table["from"](other_keypair.to_dict())
    assert alt.keypair == other_keypair
    assert table.from_identity(other_keypair).keypair == other_keypair


def test_invalid_secret_fails_before_building_a_client(
    table: ProxyFunctionTable, client_factory: FakeClientFactory
) -> None:
    with pytest.raises(InvalidKeypairError):
        table.from_("deadbeef")
    with pytest.raises(InvalidKeypairError):
        table.from_({"publicKey": "ak_nope", "secretKey": "00" * 64})
    assert client_factory.clients == []


@pytest.mark.anyio
async def test_unknown_function(table: ProxyFunctionTable) -> None:
    with pytest.raises(UnknownFunctionError) as exc_info:
        table["missing"]
    assert exc_info.value.data["available"] == table.keys()

    with pytest.raises(UnknownFunctionError):
        await table.invoke("missing", [])

    with pytest.raises(AttributeError):
        table.missing


@pytest.mark.anyio
async def test_raw_call_escape_hatch(table: ProxyFunctionTable, default_client: FakeClient) -> None:
    result = await table.call("not_cataloged", {"args": "(1, \"two\")", "amount": 5})

    call = default_client.calls[-1]
    assert call["function"] == "not_cataloged"
    assert call["args"] == ["1", '"two"']
    assert call["options"].amount == 5
    assert result.value is None


@pytest.mark.anyio
async def test_raw_call_through_alternate_identity(
    table: ProxyFunctionTable, client_factory: FakeClientFactory, other_keypair
) -> None:
    alt = table.from_(other_keypair)
    result = await alt["call"]("get", {"args": []})

    assert result.value == 42
    assert client_factory.clients[-1].calls[-1]["function"] == "get"


@pytest.mark.anyio
async def test_remote_failures_propagate(table: ProxyFunctionTable, default_client: FakeClient) -> None:
    default_client.results["get"] = RuntimeError("node went away")
    with pytest.raises(RuntimeError, match="node went away"):
        await table.get()


@pytest.mark.anyio
async def test_legacy_table_quotes_structured_arguments(default_client, client_factory, network) -> None:
    table = _table(default_client, client_factory, network, legacy=True)
    await table.pair("{}", "(1,true)")
    assert default_client.calls[-1]["args"] == ['"{}"', '"(1,true)"']


def test_parse_call_args() -> None:
    assert parse_call_args(None) == []
    assert parse_call_args("()") == []
    assert parse_call_args("(1, (2, 3), {a = 1, b = 2})") == ["1", "(2, 3)", "{a = 1, b = 2}"]
    assert parse_call_args([1, "x"]) == ["1", "x"]


@pytest.mark.anyio
async def test_alternate_table_closes_only_its_own_client(
    table: ProxyFunctionTable,
    default_client: FakeClient,
    client_factory: FakeClientFactory,
    other_keypair,
) -> None:
    async with table.from_(other_keypair) as alt:
        assert await alt.get() == 42

    assert client_factory.clients[-1].closed is True
    assert default_client.closed is False

    await table.aclose()
    assert default_client.closed is True
