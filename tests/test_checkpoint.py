from storage.checkpoint import CheckpointManager, CrawlSession, SessionTracker, session_name

URLS = [f"https://n.news.naver.com/mnews/article/001/001400000{i}" for i in range(5)]


def test_session_progress():
    session = CrawlSession(category="politics", total_urls=4)
    session.mark_processed(URLS[0])
    session.mark_failed(URLS[1], "timeout")
    session.mark_skipped(URLS[2])

    assert session.current_index == 3
    assert session.remaining() == 1
    assert session.completion_percentage() == 75.0
    assert not session.is_complete()
    assert session.pending(URLS[:4]) == [URLS[1], URLS[3]]
    assert (session.stats.success_count, session.stats.failed_count, session.stats.skipped_count) == (1, 1, 1)


def test_failed_url_attempts_and_retry_limit():
    session = CrawlSession(category="it", total_urls=10)
    for _ in range(3):
        session.mark_failed(URLS[0], "500")
    session.mark_failed(URLS[1], "500")

    assert len(session.failed_urls) == 2
    assert session.failed_urls[0].attempts == 3
    assert session.retry_urls() == [URLS[1]]


def test_empty_session_is_complete():
    session = CrawlSession(category="world")
    assert session.is_complete()
    assert session.completion_percentage() == 100.0


def test_manager_save_load_list_delete(tmp_path):
    manager = CheckpointManager(tmp_path)
    session = CrawlSession(category="economy", total_urls=2)
    session.mark_processed(URLS[0])
    session.mark_failed(URLS[1], "boom")

    manager.save(session.name, session)
    assert manager.exists(session.name)
    assert manager.list() == [session.name]
    assert not list(tmp_path.glob("*.tmp"))

    loaded = manager.load(session.name)
    assert loaded.session_id == session.session_id
    assert loaded.processed_urls == {URLS[0]}
    assert loaded.failed_urls[0].error == "boom"
    assert loaded.stats.success_count == 1

    manager.delete(session.name)
    assert manager.load(session.name) is None
    assert manager.list() == []


def test_auto_save_interval(tmp_path):
    manager = CheckpointManager(tmp_path, auto_save_interval=3)
    assert [manager.should_auto_save() for _ in range(6)] == [False, False, True, False, False, True]


def test_tracker_resumes_same_day_session(tmp_path):
    tracker = SessionTracker(CheckpointManager(tmp_path, auto_save_interval=2))
    session = tracker.init_session("politics", URLS)
    assert session.name == session_name("politics")
    tracker.mark_processed(URLS[0])
    tracker.mark_processed(URLS[1])  # auto-saved here
    tracker.mark_failed(URLS[2], "timeout")
    tracker.force_save()

    resumed = SessionTracker(CheckpointManager(tmp_path)).init_session("politics", URLS)
    assert resumed.session_id == session.session_id
    assert resumed.pending(URLS) == URLS[2:]


def test_tracker_finalize_deletes_clean_session(tmp_path):
    manager = CheckpointManager(tmp_path)
    tracker = SessionTracker(manager)
    tracker.init_session("it", URLS[:1])
    tracker.mark_processed(URLS[0])
    tracker.finalize(delete_on_success=True)
    assert manager.list() == []

    tracker.init_session("world", URLS[:2])
    tracker.mark_failed(URLS[0], "boom")
    tracker.finalize(delete_on_success=True)
    assert manager.list() == [session_name("world")]


def test_tracker_without_session_is_noop(tmp_path):
    tracker = SessionTracker(CheckpointManager(tmp_path))
    tracker.mark_processed(URLS[0])
    assert tracker.force_save() is None
    tracker.finalize()
