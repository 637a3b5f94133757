"""Tests for TreeController state transitions, driven through a fake gateway."""

import asyncio

import pytest
from conftest import GENDERS, RELATIONSHIPS, TREE_ID, make_people

from controller import TreeController, TreeStatus
from gateway import CreateResult, GatewayError, PersistenceGateway
from models import ConnectionOptions, Gender, NewMember, RelationType
from validation import DeleteRefusal
from viewport import MAX_FIT_SCALE, MIN_FIT_SCALE, ViewportSize

SIZE = ViewportSize(1200, 800)


class FakeGateway(PersistenceGateway):
    def __init__(self, persons, tree_id=TREE_ID):
        self.persons = persons
        self.tree_id = tree_id
        self.fetches = []
        self.created = []
        self.deleted = []
        self.fail_fetch = None
        self.fail_mutation = None
        self.gate = None

    async def resolve_family_tree_id(self, user_id):
        return self.tree_id

    async def fetch_graph(self, family_tree_id, root_id=None):
        self.fetches.append((family_tree_id, root_id))
        if self.fail_fetch:
            raise GatewayError(self.fail_fetch)
        return self.persons

    async def create_member(self, member, relation, selected_id, options):
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_mutation:
            raise GatewayError(self.fail_mutation)
        self.created.append((member, relation, selected_id, options))
        return CreateResult(True, "new-1")

    async def delete_member(self, member_id, family_tree_id):
        if self.fail_mutation:
            raise GatewayError(self.fail_mutation)
        self.deleted.append((member_id, family_tree_id))
        self.persons = [p for p in self.persons if p.id != member_id]
        return True


class QueuedGateway(FakeGateway):
    """Serves each fetch from a queue of (gate, persons) pairs."""

    def __init__(self, responses):
        super().__init__([])
        self.responses = responses

    async def fetch_graph(self, family_tree_id, root_id=None):
        gate, persons = self.responses.pop(0)
        await gate.wait()
        return persons


MEMBER = NewMember(first_name="Ada", last_name="Lovelace", gender=Gender.FEMALE)


@pytest.fixture
def gateway(people):
    return FakeGateway(people)


@pytest.fixture
def controller(gateway):
    return TreeController(gateway, actor_id="me", viewport_size=SIZE)


def loaded(controller):
    asyncio.run(controller.load())
    return controller


class TestLoad:
    def test_ready(self, controller, gateway):
        states = []
        controller.subscribe(states.append)
        loaded(controller)

        state = controller.state
        assert state.status == TreeStatus.READY
        assert state.root_id == "me"
        assert state.layout.position_of("me") is not None
        assert MIN_FIT_SCALE <= state.scale <= MAX_FIT_SCALE
        assert not state.loading
        assert gateway.fetches == [(TREE_ID, "me")]
        assert states[0].loading and not states[-1].loading

    def test_no_tree(self, people):
        controller = TreeController(FakeGateway(people, tree_id=None), "me", SIZE)
        loaded(controller)
        assert controller.state.status == TreeStatus.NO_TREE
        assert controller.state.layout is None

    def test_empty_tree(self):
        controller = TreeController(FakeGateway([]), "me", SIZE)
        loaded(controller)
        assert controller.state.status == TreeStatus.EMPTY
        assert controller.state.layout is None

    def test_root_falls_back_when_actor_missing(self, people):
        controller = TreeController(FakeGateway(people), "someone-else", SIZE)
        loaded(controller)
        assert controller.state.root_id == people[0].id

    def test_error_before_any_snapshot(self, controller, gateway):
        gateway.fail_fetch = "Backend unavailable"
        loaded(controller)
        assert controller.state.status == TreeStatus.ERROR
        assert controller.state.error == "Backend unavailable"
        assert controller.state.layout is None

    def test_tree_lookup_failure(self, people):
        class UnreachableGateway(FakeGateway):
            async def resolve_family_tree_id(self, user_id):
                raise GatewayError("network down")

        gateway = UnreachableGateway(people)
        controller = TreeController(gateway, "me", SIZE)
        loaded(controller)
        assert controller.state.status == TreeStatus.ERROR
        assert controller.state.error == "network down"
        assert not controller.state.loading
        assert gateway.fetches == []

    def test_error_keeps_previous_layout(self, controller, gateway):
        loaded(controller)
        previous = controller.state.layout
        gateway.fail_fetch = "Backend unavailable"
        loaded(controller)
        assert controller.state.status == TreeStatus.ERROR
        assert controller.state.layout is previous

    def test_superseded_response_is_dropped(self, people):
        old = make_people({"me": Gender.MALE}, [])
        new = people

        async def scenario():
            first_gate, second_gate = asyncio.Event(), asyncio.Event()
            controller = TreeController(
                QueuedGateway([(first_gate, old), (second_gate, new)]), "me", SIZE, TREE_ID
            )
            first = asyncio.create_task(controller.load())
            await asyncio.sleep(0)
            second = asyncio.create_task(controller.load())
            await asyncio.sleep(0)
            second_gate.set()
            await second
            first_gate.set()
            await first
            return controller

        controller = asyncio.run(scenario())
        assert len(controller.model) == len(new)
        assert len(controller.state.layout.nodes) == len(new) - 1


class TestSelection:
    def test_select_reroots(self, controller):
        loaded(controller)
        controller.select_node("gf")
        assert controller.state.selected_node_id == "gf"
        assert controller.state.root_id == "gf"
        assert controller.state.layout.root_id == "gf"

    def test_select_again_deselects(self, controller):
        loaded(controller)
        controller.select_node("gf")
        controller.select_node("gf")
        assert controller.state.selected_node_id is None
        assert controller.state.root_id == "gf"

    def test_unknown_node_is_ignored(self, controller):
        loaded(controller)
        before = controller.state
        controller.select_node("nobody")
        assert controller.state is before

    def test_selection_survives_reload(self, controller):
        loaded(controller)
        controller.select_node("sis")
        loaded(controller)
        assert controller.state.selected_node_id == "sis"
        assert controller.state.root_id == "sis"


class TestViewportCommands:
    def test_zoom_clamped(self, controller):
        loaded(controller)
        for _ in range(100):
            controller.zoom_in()
        assert controller.state.scale == pytest.approx(2.0)
        for _ in range(100):
            controller.zoom_out()
        assert controller.state.scale == pytest.approx(0.1)

    def test_wheel_moves_against_scroll(self, controller):
        loaded(controller)
        start = controller.state.position
        controller.wheel(30, -20)
        assert controller.state.position.x == pytest.approx(start.x - 30)
        assert controller.state.position.y == pytest.approx(start.y + 20)

    def test_recenter_after_pan(self, controller):
        loaded(controller)
        fitted = controller.state.position
        controller.pan(500, 500)
        controller.recenter("me")
        assert controller.state.position == fitted

    def test_unsubscribe(self, controller):
        calls = []
        unsubscribe = controller.subscribe(calls.append)
        unsubscribe()
        loaded(controller)
        assert calls == []


class TestDelete:
    def test_refused_delete_does_not_call_backend(self, controller, gateway):
        loaded(controller)
        controller.select_node("gf")
        assert asyncio.run(controller.request_delete()) is False
        assert controller.state.refusal.reason == DeleteRefusal.HAS_DESCENDANTS
        assert "descendants" in controller.state.error
        assert gateway.deleted == []

    def test_delete_self_refused(self, controller, gateway):
        loaded(controller)
        controller.select_node("me")
        asyncio.run(controller.request_delete())
        assert controller.state.refusal.reason == DeleteRefusal.SELF
        assert gateway.deleted == []

    def test_delete_leaf_reloads(self, controller, gateway):
        loaded(controller)
        controller.select_node("sis")
        assert asyncio.run(controller.request_delete()) is True
        assert gateway.deleted == [("sis", TREE_ID)]
        assert "sis" not in controller.model
        assert controller.state.selected_node_id is None
        assert controller.state.pending == frozenset()

    def test_backend_failure_clears_pending(self, controller, gateway):
        loaded(controller)
        controller.select_node("sis")
        gateway.fail_mutation = "Failed to delete member"
        assert asyncio.run(controller.request_delete()) is False
        assert controller.state.error == "Failed to delete member"
        assert not controller.is_pending("sis")
        assert "sis" in controller.model

    def test_nothing_selected(self, controller, gateway):
        loaded(controller)
        assert asyncio.run(controller.request_delete()) is False
        assert gateway.deleted == []


class TestAdd:
    def test_add_child(self, controller, gateway):
        loaded(controller)
        controller.select_node("me")
        new_id = asyncio.run(controller.request_add(RelationType.CHILD, MEMBER))
        assert new_id == "new-1"
        (member, relation, selected, options), = gateway.created
        assert (relation, selected) == (RelationType.CHILD, "me")
        assert options == ConnectionOptions()
        assert controller.state.selected_node_id is None
        assert len(gateway.fetches) == 2

    def test_invalid_member_never_reaches_backend(self, controller, gateway):
        loaded(controller)
        controller.select_node("me")
        blank = NewMember(first_name=" ", last_name="Lovelace", gender=Gender.FEMALE)
        assert asyncio.run(controller.request_add(RelationType.CHILD, blank)) is None
        assert controller.state.error == "First name is required."
        assert gateway.created == []

    def test_third_parent_refused(self, controller, gateway):
        loaded(controller)
        controller.select_node("me")
        assert asyncio.run(controller.request_add(RelationType.PARENT, MEMBER)) is None
        assert controller.state.error == "This member already has two parents."
        assert gateway.created == []

    def test_duplicate_submission_blocked(self, controller, gateway):
        async def scenario():
            gateway.gate = asyncio.Event()
            await controller.load()
            controller.select_node("me")
            first = asyncio.create_task(controller.request_add(RelationType.CHILD, MEMBER))
            await asyncio.sleep(0)
            assert controller.is_pending("me")
            second = await controller.request_add(RelationType.CHILD, MEMBER)
            gateway.gate.set()
            return await first, second

        first, second = asyncio.run(scenario())
        assert first == "new-1"
        assert second is None
        assert len(gateway.created) == 1
        assert controller.state.pending == frozenset()

    def test_backend_failure(self, controller, gateway):
        loaded(controller)
        controller.select_node("me")
        gateway.fail_mutation = "Failed to add family member"
        assert asyncio.run(controller.request_add(RelationType.SPOUSE, MEMBER)) is None
        assert controller.state.error == "Failed to add family member"
        assert controller.state.pending == frozenset()
        assert controller.state.selected_node_id == "me"
        assert len(gateway.fetches) == 1
