import threading

from tradegate.network.resume_store import ResumeState, ResumeStore


def test_empty_store_has_no_resume_state():
    assert ResumeStore().get() is None


def test_partial_record_is_never_returned():
    store = ResumeStore()
    store.update_sequence(5)
    assert store.get() is None

    store.clear()
    store.update_from_ready("wss://resume.test", "abc")
    assert store.get() is None
    assert store.snapshot() == {
        "has_url": True,
        "has_session_id": True,
        "sequence": None,
        "resumable": False,
    }


def test_complete_record_is_returned_and_sequence_advances():
    store = ResumeStore()
    store.update_sequence(1)
    store.update_from_ready("wss://resume.test", "abc")

    assert store.get() == ResumeState(url="wss://resume.test", session_id="abc", sequence=1)

    store.update_sequence(2)
    assert store.get().sequence == 2
    assert store.snapshot()["resumable"] is True


def test_ready_replaces_session_but_keeps_sequence():
    store = ResumeStore()
    store.update_from_ready("wss://one.test", "one")
    store.update_sequence(9)

    store.update_from_ready("wss://two.test", "two")

    assert store.get() == ResumeState(url="wss://two.test", session_id="two", sequence=9)


def test_clear_drops_everything():
    store = ResumeStore()
    store.update_from_ready("wss://resume.test", "abc")
    store.update_sequence(3)

    store.clear()

    assert store.get() is None
    assert store.snapshot()["sequence"] is None


def test_concurrent_updates_keep_a_consistent_record():
    store = ResumeStore()
    store.update_from_ready("wss://resume.test", "abc")

    def writer(offset: int) -> None:
        for value in range(offset, offset + 500):
            store.update_sequence(value)

    threads = [threading.Thread(target=writer, args=(n * 1000,)) for n in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    state = store.get()
    assert state is not None
    assert state.session_id == "abc"
    assert state.sequence in {499, 1499, 2499, 3499}
