"""Tests for the document store and the live store adapter."""

import asyncio
from datetime import date

import pytest
from conftest import make_task

from src.launchpad.adapter import MAX_QUEUED_SNAPSHOTS, LiveStoreAdapter, parse_projects
from src.launchpad.auth import AuthContext, AuthStatus, SessionUser
from src.launchpad.errors import StoreReadError, StoreWriteError
from src.launchpad.schemas import ProjectPatch, TaskStatus
from src.launchpad.store import DocumentNotFound, DocumentSnapshot, InMemoryDocumentStore


def _project_doc(name="Launch A", tasks=None):
    return {
        "name": name,
        "launchDate": "2025-06-01",
        "tasks": [task.to_document() for task in (tasks or [])],
    }


class FailingStore(InMemoryDocumentStore):
    async def update_document(self, collection, doc_id, fields):
        raise ConnectionError("store unreachable")


class TestInMemoryDocumentStore:
    def test_subscriber_gets_current_snapshot(self, store):
        asyncio.run(store.add_document("projects", {"name": "A"}))
        received = []

        store.subscribe("projects", received.append)

        assert len(received) == 1
        assert received[0][0].data == {"name": "A"}

    def test_writes_broadcast_full_snapshots(self, store):
        received = []
        store.subscribe("projects", received.append)

        doc_id = asyncio.run(store.add_document("projects", {"name": "A"}))
        asyncio.run(store.update_document("projects", doc_id, {"name": "B"}))

        assert [len(snapshot) for snapshot in received] == [0, 1, 1]
        assert received[-1] == [DocumentSnapshot(doc_id, {"name": "B"})]

    def test_snapshots_are_copies(self, store):
        received = []
        store.subscribe("projects", received.append)
        doc_id = asyncio.run(store.add_document("projects", {"name": "A"}))

        received[-1][0].data["name"] = "mutated"

        assert asyncio.run(store.get_document("projects", doc_id)) == {"name": "A"}

    def test_unsubscribe_stops_callbacks(self, store):
        received = []
        unsubscribe = store.subscribe("projects", received.append)
        unsubscribe()
        unsubscribe()

        asyncio.run(store.add_document("projects", {"name": "A"}))

        assert len(received) == 1
        assert store.listener_count("projects") == 0

    def test_update_missing_document(self, store):
        with pytest.raises(DocumentNotFound):
            asyncio.run(store.update_document("projects", "missing", {"name": "B"}))


class TestParseProjects:
    def test_skips_malformed_documents(self):
        documents = [
            DocumentSnapshot("good", _project_doc()),
            DocumentSnapshot("bad", {"launchDate": "2025-06-01"}),
        ]
        projects = parse_projects(documents)
        assert [p.id for p in projects] == ["good"]


class TestProjectSubscription:
    def test_waits_for_authentication(self, store):
        auth = AuthContext()
        adapter = LiveStoreAdapter(store, auth)
        subscription = adapter.subscribe_projects()

        assert subscription.poll() == []
        assert subscription.loading is True
        assert store.listener_count("projects") == 0

        auth.sign_in(SessionUser("Ops Lead", "lead@example.com"))
        snapshots = subscription.poll()

        assert snapshots == [[]]
        assert subscription.loading is False
        assert store.listener_count("projects") == 1

    def test_snapshots_arrive_in_order(self, store, adapter):
        subscription = adapter.subscribe_projects()
        subscription.poll()

        first = asyncio.run(adapter.create_project("Launch A", date(2025, 6, 1), [make_task("t1")]))
        asyncio.run(adapter.create_project("Launch B", date(2025, 7, 1), []))

        snapshots = subscription.poll()
        assert [[p.name for p in snapshot] for snapshot in snapshots] == [["Launch A"], ["Launch A", "Launch B"]]
        assert snapshots[0][0].id == first

    def test_idle_subscription_keeps_only_newest_snapshots(self, store, adapter):
        subscription = adapter.subscribe_projects()
        subscription.poll()

        for index in range(10):
            asyncio.run(adapter.create_project(f"Launch {index}", date(2025, 6, 1), []))

        assert subscription.pending == MAX_QUEUED_SNAPSHOTS
        snapshots = subscription.poll()
        assert [len(snapshot) for snapshot in snapshots] == list(range(11 - MAX_QUEUED_SNAPSHOTS, 11))
        assert subscription.pending == 0

    def test_async_iteration_and_close(self, store, adapter):
        async def scenario():
            subscription = adapter.subscribe_projects()
            received = []
            async for projects in subscription:
                received.append(projects)
                if len(received) == 1:
                    await adapter.create_project("Launch A", date(2025, 6, 1), [])
                else:
                    subscription.close()
            return received, subscription

        received, subscription = asyncio.run(scenario())
        assert [len(snapshot) for snapshot in received] == [0, 1]
        assert subscription.closed
        assert store.listener_count("projects") == 0

    def test_iteration_starts_after_sign_in(self, store):
        auth = AuthContext()
        adapter = LiveStoreAdapter(store, auth)

        async def scenario():
            subscription = adapter.subscribe_projects()
            first = asyncio.create_task(subscription.__anext__())
            await asyncio.sleep(0)
            assert not first.done()
            auth.sign_in(SessionUser("Ops Lead", "lead@example.com"))
            projects = await first
            subscription.close()
            return projects

        assert asyncio.run(scenario()) == []
        assert auth.status is AuthStatus.AUTHENTICATED

    def test_close_before_sign_in_ends_iteration(self, store):
        adapter = LiveStoreAdapter(store, AuthContext())

        async def scenario():
            subscription = adapter.subscribe_projects()
            pending = asyncio.create_task(subscription.__anext__())
            await asyncio.sleep(0)
            subscription.close()
            with pytest.raises(StopAsyncIteration):
                await pending

        asyncio.run(scenario())
        assert store.listener_count("projects") == 0

    def test_store_error_surfaces_as_read_error(self, store, adapter):
        subscription = adapter.subscribe_projects()
        subscription.poll()

        store.fail_subscribers("projects", RuntimeError("permission denied"))

        with pytest.raises(StoreReadError):
            subscription.poll()


class TestWrites:
    def test_create_project_serializes_tasks(self, store, adapter):
        project_id = asyncio.run(adapter.create_project("Launch A", date(2025, 6, 1), [make_task("t1")]))

        document = asyncio.run(store.get_document("projects", project_id))
        assert document["launchDate"] == "2025-06-01"
        assert document["tasks"][0]["assignedTo"] == {"name": "Priya K.", "email": "priya@example.com"}
        assert document["tasks"][0]["status"] == "To Do"
        assert document["tasks"][0]["dueDate"] == "2020-01-01"

    def test_update_task_status_touches_one_task(self, store, adapter):
        project_id = asyncio.run(store.add_document("projects", _project_doc(tasks=[make_task("t1"), make_task("t2")])))

        asyncio.run(adapter.update_task_status(project_id, "t2", TaskStatus.DONE))

        document = asyncio.run(store.get_document("projects", project_id))
        assert [t["status"] for t in document["tasks"]] == ["To Do", "Done"]

    def test_update_task_status_unknown_task(self, store, adapter):
        project_id = asyncio.run(store.add_document("projects", _project_doc(tasks=[make_task("t1")])))
        with pytest.raises(StoreWriteError):
            asyncio.run(adapter.update_task_status(project_id, "nope", TaskStatus.DONE))

    def test_update_missing_project(self, adapter):
        with pytest.raises(StoreWriteError):
            asyncio.run(adapter.update_task_status("missing", "t1", TaskStatus.DONE))

    def test_update_project_details_partial(self, store, adapter):
        project_id = asyncio.run(store.add_document("projects", _project_doc(tasks=[make_task("t1")])))

        asyncio.run(adapter.update_project_details(project_id, ProjectPatch(name="Launch B")))

        document = asyncio.run(store.get_document("projects", project_id))
        assert document["name"] == "Launch B"
        assert len(document["tasks"]) == 1

    def test_store_failure_becomes_write_error(self, auth):
        failing = FailingStore()
        adapter = LiveStoreAdapter(failing, auth)
        project_id = asyncio.run(failing.add_document("projects", _project_doc(tasks=[make_task("t1")])))

        with pytest.raises(StoreWriteError) as excinfo:
            asyncio.run(adapter.update_task_status(project_id, "t1", TaskStatus.DONE))
        assert isinstance(excinfo.value.__cause__, ConnectionError)
