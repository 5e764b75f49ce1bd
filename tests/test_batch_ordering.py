"""
Test suite for batch ordering and settlement.

Members of a batch must settle in the order they were registered, and
``execute()`` must only return after every member's callbacks have run.
"""

import asyncio
import json

import pytest

from spquery.core.batch import Batch, BatchStatus
from spquery.core.request import RequestStatus
from spquery.exceptions import BatchStateError, ODataError, ParseError, TransportError
from spquery.sp.items import ItemAddResult
from spquery.sp.lists import List as SPList

from conftest import (
    SITE_URL,
    batch_parts,
    json_response,
    list_payload_minimal,
    lists_collection_minimal,
    sp_batch_echo,
    sp_batch_response,
    web_payload,
)


ENTITY_TYPE = "SP.Data.BatchItemAddTestListItem"


def answer_everything(method: str, url: str):
    """Answer web, list collection and item-add parts."""
    if method == "POST":
        return 201, {"Id": 7, "Title": "Hello"}
    if "/lists" in url:
        return 200, lists_collection_minimal(["Docs", "Tasks"])
    return 200, web_payload()


def push(order, value):
    return lambda _: order.append(value)


# ============================================================================
# Test Batch Model
# ============================================================================

class TestBatchModel:
    """Tests for the Batch data model."""

    @pytest.mark.asyncio
    async def test_batch_creation(self, sp_client):
        """Test creating an empty batch."""
        batch = sp_client.create_batch()

        assert isinstance(batch, Batch)
        assert batch.batch_id is not None
        assert batch.status == BatchStatus.OPEN
        assert batch.is_empty is True
        assert batch.size == 0
        assert batch.codec.endpoint == f"{SITE_URL}/_api/$batch"

    @pytest.mark.asyncio
    async def test_node_create_batch_targets_node_web(self, sp_client):
        """Test that a node-created batch posts to the node's web."""
        batch = sp_client.web.lists.create_batch()

        assert batch.codec.endpoint == f"{SITE_URL}/_api/$batch"

    @pytest.mark.asyncio
    async def test_registration_assigns_sequence(self, sp_client):
        """Test that registration assigns 1-based sequence ids in insertion order."""
        batch = sp_client.create_batch()

        sp_client.web.in_batch(batch).get()
        sp_client.web.lists.in_batch(batch).get()

        requests = batch.requests
        assert [r.sequence for r in requests] == [1, 2]
        assert all(r.status == RequestStatus.QUEUED for r in requests)
        assert all(r.batch is batch for r in requests)

    @pytest.mark.asyncio
    async def test_batched_invocation_sends_nothing(self, sp_client, transport):
        """Test that batched invocations do not reach the transport before execute."""
        batch = sp_client.create_batch()

        sp_client.web.in_batch(batch).get()
        await asyncio.sleep(0)

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_empty_batch_executes_without_request(self, sp_client, transport):
        """Test executing a batch with no members."""
        batch = sp_client.create_batch()

        await batch.execute()

        assert batch.status == BatchStatus.COMPLETED
        assert transport.calls == []


# ============================================================================
# Test Settlement Order
# ============================================================================

class TestBatchOrdering:
    """Tests for the order in which batch members settle."""

    @pytest.mark.asyncio
    async def test_single_request(self, sp_client, transport):
        """Test order for a single request."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        order = []

        batch = sp_client.web.create_batch()
        sp_client.web.in_batch(batch).get().add_done_callback(push(order, 1))

        await batch.execute()
        order.append(2)

        assert order == [1, 2]

    @pytest.mark.asyncio
    async def test_even_number_of_requests(self, sp_client, transport):
        """Test order for four requests."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        order = []
        web = sp_client.web

        batch = web.create_batch()
        web.in_batch(batch).get().add_done_callback(push(order, 1))
        web.lists.in_batch(batch).get().add_done_callback(push(order, 2))
        web.lists.top(2).in_batch(batch).get().add_done_callback(push(order, 3))
        web.lists.select("Title").in_batch(batch).get().add_done_callback(push(order, 4))

        await batch.execute()
        order.append(5)

        assert order == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_odd_number_of_requests(self, sp_client, transport):
        """Test order for three requests."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        order = []
        web = sp_client.web

        batch = web.create_batch()
        web.in_batch(batch).get().add_done_callback(push(order, 1))
        web.lists.in_batch(batch).get().add_done_callback(push(order, 2))
        web.lists.top(2).in_batch(batch).get().add_done_callback(push(order, 3))

        await batch.execute()
        order.append(4)

        assert order == [1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_coroutine_continuations_run_before_execute_returns(self, sp_client, transport):
        """Test that awaiting callers resume before execute() resolves."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        order = []
        batch = sp_client.create_batch()

        async def caller(awaitable, value):
            await awaitable
            order.append(value)

        first = asyncio.ensure_future(caller(sp_client.web.in_batch(batch).get(), 1))
        second = asyncio.ensure_future(caller(sp_client.web.lists.in_batch(batch).get(), 2))
        await asyncio.sleep(0)

        await batch.execute()
        order.append(3)

        assert order == [1, 2, 3]
        await asyncio.gather(first, second)

    @pytest.mark.asyncio
    async def test_exactly_one_outbound_request(self, sp_client, transport):
        """Test that a batch produces a single HTTP call."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        batch = sp_client.create_batch()

        for _ in range(3):
            sp_client.web.in_batch(batch).get()
        await batch.execute()

        assert len(transport.calls) == 1
        assert transport.calls[0].url == f"{SITE_URL}/_api/$batch"
        assert len(batch_parts(transport.calls[0].body)) == 3

    @pytest.mark.asyncio
    async def test_members_receive_hydrated_values(self, sp_client, transport):
        """Test that batched and direct invocations produce the same values."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        transport.add("GET", "/_api/web/lists", json_response(lists_collection_minimal(["Docs", "Tasks"])))

        batch = sp_client.create_batch()
        batched = sp_client.web.lists.in_batch(batch).get()
        await batch.execute()
        direct = await sp_client.web.lists.get()

        batched = batched.result()
        assert [type(node) for node in batched] == [SPList, SPList]
        assert [node.url for node in batched] == [node.url for node in direct]
        assert [node.data for node in batched] == [node.data for node in direct]


# ============================================================================
# Test Dependent Follow-ups
# ============================================================================

class TestDependentRequests:
    """Tests for batches whose members issue follow-up requests."""

    @pytest.mark.asyncio
    async def test_ensure_list_then_add_items(self, sp_client, transport):
        """Test two item adds after ensuring a list settle as [1, 2, 3]."""
        transport.add("GET", "getByTitle('BatchItemAddTest')", json_response(list_payload_minimal("BatchItemAddTest")))
        transport.add(
            "GET",
            "ListItemEntityTypeFullName",
            json_response({"ListItemEntityTypeFullName": ENTITY_TYPE}),
        )
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        order = []

        ensured = await sp_client.web.lists.ensure("BatchItemAddTest")
        entity_type = await ensured.list.get_list_item_entity_type_full_name()

        batch = sp_client.web.create_batch()
        ensured.list.items.in_batch(batch).add({"Title": "Hello 1"}, entity_type).add_done_callback(push(order, 1))
        ensured.list.items.in_batch(batch).add({"Title": "Hello 2"}, entity_type).add_done_callback(push(order, 2))

        await batch.execute()
        order.append(3)

        assert entity_type == ENTITY_TYPE
        assert ensured.created is False
        assert order == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_add_without_entity_type_reserves_slot(self, sp_client, transport):
        """Test that an add which first looks up the entity type keeps its position."""
        transport.add(
            "GET",
            "ListItemEntityTypeFullName",
            json_response({"ListItemEntityTypeFullName": ENTITY_TYPE}),
        )
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        order = []
        items = sp_client.web.lists.get_by_title("BatchItemAddTest").items

        batch = sp_client.create_batch()
        first = items.in_batch(batch).add({"Title": "Hello 1"})
        first.add_done_callback(push(order, 1))
        second = items.in_batch(batch).add({"Title": "Hello 2"})
        second.add_done_callback(push(order, 2))

        assert batch.size == 2

        await batch.execute()
        order.append(3)

        assert order == [1, 2, 3]

        lookups = transport.calls_to("ListItemEntityTypeFullName")
        batch_call = transport.calls_to("$batch")
        assert len(lookups) == 2
        assert len(batch_call) == 1
        assert transport.calls[-1] is batch_call[0]

        body = batch_call[0].body
        assert body.index("Hello 1") < body.index("Hello 2")
        assert ENTITY_TYPE in body

        result = first.result()
        assert isinstance(result, ItemAddResult)
        assert result.data["Id"] == 7
        assert result.item.url.endswith("/items(7)")

    @pytest.mark.asyncio
    async def test_failed_lookup_releases_slot(self, sp_client, transport):
        """Test that a failed entity type lookup does not block the batch."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        items = sp_client.web.lists.get_by_title("Missing").items

        batch = sp_client.create_batch()
        web = sp_client.web.in_batch(batch).get()
        add = items.in_batch(batch).add({"Title": "Hello"})

        await batch.execute()

        assert web.result()["Title"] == "Dev"
        with pytest.raises(ODataError) as exc_info:
            await add
        assert exc_info.value.status == 404
        assert len(batch_parts(transport.calls_to("$batch")[0].body)) == 1

    @pytest.mark.asyncio
    async def test_cancelled_add_releases_slot(self, sp_client, transport):
        """Test cancelling an add during its lookup does not block the batch."""
        lookup_started = asyncio.Event()
        unblock = asyncio.Event()

        async def slow_lookup(method, url, headers, body):
            lookup_started.set()
            await unblock.wait()
            return json_response({"ListItemEntityTypeFullName": ENTITY_TYPE})

        transport.add("GET", "ListItemEntityTypeFullName", slow_lookup)
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        items = sp_client.web.lists.get_by_title("Docs").items

        batch = sp_client.create_batch()
        web = sp_client.web.in_batch(batch).get()
        add = items.in_batch(batch).add({"Title": "Hello"})
        await lookup_started.wait()
        add.cancel()

        await asyncio.wait_for(batch.execute(), 1.0)

        assert batch.status == BatchStatus.COMPLETED
        assert web.result()["Title"] == "Dev"
        assert add.cancelled()
        assert len(batch_parts(transport.calls_to("$batch")[0].body)) == 1

        unblock.set()
        await asyncio.sleep(0)

    @pytest.mark.asyncio
    async def test_add_cancelled_before_it_starts_releases_slot(self, sp_client, transport):
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        items = sp_client.web.lists.get_by_title("Docs").items

        batch = sp_client.create_batch()
        web = sp_client.web.in_batch(batch).get()
        add = items.in_batch(batch).add({"Title": "Hello"})
        add.cancel()

        await asyncio.wait_for(batch.execute(), 1.0)

        assert batch.status == BatchStatus.COMPLETED
        assert web.result()["Title"] == "Dev"
        assert add.cancelled()
        assert transport.calls_to("ListItemEntityTypeFullName") == []


# ============================================================================
# Test Batch State
# ============================================================================

class TestBatchState:
    """Tests for the batch state machine."""

    @pytest.mark.asyncio
    async def test_late_registration_raises(self, sp_client, transport):
        """Test registering on an executed batch."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        batch = sp_client.create_batch()
        tagged = sp_client.web.in_batch(batch)
        tagged.get()

        await batch.execute()

        with pytest.raises(BatchStateError):
            sp_client.web.lists.in_batch(batch)
        with pytest.raises(BatchStateError):
            tagged.get()
        assert batch.size == 1

    @pytest.mark.asyncio
    async def test_second_execute_raises(self, sp_client, transport):
        """Test that a batch can only be executed once."""
        transport.add("POST", "$batch", sp_batch_echo(answer_everything))
        batch = sp_client.create_batch()
        sp_client.web.in_batch(batch).get()

        await batch.execute()

        assert batch.status == BatchStatus.COMPLETED
        with pytest.raises(BatchStateError):
            await batch.execute()
        assert len(transport.calls) == 1

    @pytest.mark.asyncio
    async def test_envelope_failure_rejects_every_member(self, sp_client, transport):
        """Test that a failed envelope rejects all members with the same error."""
        transport.add("POST", "$batch", json_response(
            {"odata.error": {"code": "-1", "message": {"value": "Batch failed"}}},
            status=500,
        ))
        batch = sp_client.create_batch()
        first = sp_client.web.in_batch(batch).get()
        second = sp_client.web.lists.in_batch(batch).get()

        with pytest.raises(ODataError) as exc_info:
            await batch.execute()

        error = exc_info.value
        assert error.status == 500
        assert batch.status == BatchStatus.FAILED
        assert batch.error_message == str(error)
        assert first.exception() is error
        assert second.exception() is error

    @pytest.mark.asyncio
    async def test_transport_failure_rejects_every_member(self, sp_client, transport):
        """Test that a transport error surfaces from execute and every member."""
        failure = TransportError("connection reset", url=f"{SITE_URL}/_api/$batch")
        transport.add("POST", "$batch", failure)
        batch = sp_client.create_batch()
        first = sp_client.web.in_batch(batch).get()
        second = sp_client.web.in_batch(batch).get()

        with pytest.raises(TransportError) as exc_info:
            await batch.execute()

        assert exc_info.value is failure
        assert first.exception() is failure
        assert second.exception() is failure

    @pytest.mark.asyncio
    async def test_member_failure_is_isolated(self, sp_client, transport):
        """Test that one member's error does not affect its siblings."""
        transport.add("POST", "$batch", lambda *args: sp_batch_response([
            (200, web_payload()),
            (404, {"odata.error": {"code": "-1", "message": {"value": "List does not exist"}}}),
            (200, "{not json"),
            (200, web_payload("Other")),
        ]))
        batch = sp_client.create_batch()
        first = sp_client.web.in_batch(batch).get()
        missing = sp_client.web.lists.get_by_title("Missing").in_batch(batch).get()
        garbled = sp_client.web.in_batch(batch).get()
        last = sp_client.web.in_batch(batch).get()

        await batch.execute()

        assert batch.status == BatchStatus.COMPLETED
        assert first.result()["Title"] == "Dev"
        assert last.result()["Title"] == "Other"
        assert isinstance(missing.exception(), ODataError)
        assert missing.exception().status == 404
        assert missing.exception().message == "List does not exist"
        assert isinstance(garbled.exception(), ParseError)

    @pytest.mark.asyncio
    async def test_missing_sub_response_raises_parse_error(self, sp_client, transport):
        """Test that members without a matching sub-response fail with ParseError."""
        transport.add("POST", "$batch", sp_batch_response([(200, web_payload())]))
        batch = sp_client.create_batch()
        first = sp_client.web.in_batch(batch).get()
        second = sp_client.web.in_batch(batch).get()

        await batch.execute()

        assert first.result()["Title"] == "Dev"
        assert isinstance(second.exception(), ParseError)

    @pytest.mark.asyncio
    async def test_write_members_settle_with_empty_result(self, sp_client, transport):
        """Test that 204 sub-responses resolve to an empty value."""
        transport.add("POST", "$batch", sp_batch_response([(204, None), (204, None)]))
        batch = sp_client.create_batch()
        item = sp_client.web.lists.get_by_title("Docs").items.get_by_id(1)

        update = item.in_batch(batch).update({"Title": "New"}, entity_type_name="SP.Data.DocsListItem")
        delete = sp_client.web.lists.get_by_title("Docs").items.get_by_id(2).in_batch(batch).delete()

        await batch.execute()

        assert update.result().data == {}
        assert update.result().item is item
        assert delete.result() == {}

        body = transport.calls[0].body
        parts = batch_parts(body)
        assert [method for method, _ in parts] == ["POST", "POST"]
        assert body.count("changeset_") == 4
        assert "X-HTTP-Method: MERGE" in body
        assert "X-HTTP-Method: DELETE" in body
        assert json.dumps({"__metadata": {"type": "SP.Data.DocsListItem"}, "Title": "New"}) in body
